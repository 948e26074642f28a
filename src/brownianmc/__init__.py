"""brownianmc package public API."""

from .analytics import (
    arcsine_cdf,
    arcsine_density,
    first_passage_probability,
    normal_cdf,
    symmetric_first_passage_probability,
)
from .config import MAX_RECORDED_PATHS, ArcsineConfig, ConfigurationError, SimulationConfig
from .core import (
    ArcsineResult,
    FirstPassageResult,
    PathSample,
    SamplePath,
    SimulationFramework,
)
from .histogram import EmptyInputWarning, HistogramBin, build_histogram
from .integrator import PathIntegrator, euler_maruyama_step
from .sampling import GaussianSampler, make_generator
from .simulation import PathSimulation
from .sims import ArcsineSimulation, FirstPassageSimulation, run_arcsine_laws, run_first_passage
from .stats_engine import (
    ARCSINE_ENGINE,
    PROPORTION_ENGINE,
    FnMetric,
    StatsContext,
    StatsEngine,
)
from .tasks import (
    CancellationToken,
    SimulationBusyError,
    SimulationCancelled,
    SimulationTask,
    TaskState,
)
from .utils import autocrit, t_crit, z_crit

__all__ = [
    "SimulationConfig",
    "ArcsineConfig",
    "ConfigurationError",
    "MAX_RECORDED_PATHS",
    "PathSample",
    "SamplePath",
    "FirstPassageResult",
    "ArcsineResult",
    "SimulationFramework",
    "PathSimulation",
    "FirstPassageSimulation",
    "ArcsineSimulation",
    "run_first_passage",
    "run_arcsine_laws",
    "GaussianSampler",
    "make_generator",
    "PathIntegrator",
    "euler_maruyama_step",
    "normal_cdf",
    "first_passage_probability",
    "symmetric_first_passage_probability",
    "arcsine_density",
    "arcsine_cdf",
    "HistogramBin",
    "EmptyInputWarning",
    "build_histogram",
    "StatsEngine",
    "StatsContext",
    "FnMetric",
    "PROPORTION_ENGINE",
    "ARCSINE_ENGINE",
    "TaskState",
    "CancellationToken",
    "SimulationTask",
    "SimulationBusyError",
    "SimulationCancelled",
    "z_crit",
    "t_crit",
    "autocrit",
]

__version__ = "0.1.0"
