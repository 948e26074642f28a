r"""

brownianmc.core
===============

Result containers and the simulation registry.

This module provides:

* :class:`~brownianmc.core.PathSample` – one retained trajectory.
* :class:`~brownianmc.core.SamplePath` – a trajectory with its hit flag.
* :class:`~brownianmc.core.FirstPassageResult` – outcome of a first-passage run.
* :class:`~brownianmc.core.ArcsineResult` – per-path arcsine statistics.
* :class:`~brownianmc.core.SimulationFramework` – registry + guarded, optionally
  background, runner.

Results are frozen and their arrays read-only: nothing changes after the run
that produced them returns.

One run at a time
-----------------

:class:`SimulationFramework` allows at most one in-flight run per registered
simulation. Starting another while one is running raises
:class:`~brownianmc.tasks.SimulationBusyError` instead of interleaving two runs.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, Optional

import numpy as np

from .histogram import DEFAULT_BIN_COUNT, HistogramBin, build_histogram
from .stats_engine import ARCSINE_ENGINE, StatsContext, StatsEngine
from .tasks import CancellationToken, SimulationBusyError, SimulationCancelled, SimulationTask

if TYPE_CHECKING:
    from .simulation import PathSimulation

logger = logging.getLogger(__name__)  # pragma: no cover
_pkg_logger = logging.getLogger("brownianmc")
if not _pkg_logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    _pkg_logger.addHandler(handler)
    _pkg_logger.setLevel(logging.INFO)


def _frozen_array(values: Any) -> np.ndarray:
    arr = np.array(values, dtype=float).ravel()
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class PathSample:
    r"""
    Discretized trajectory :math:`(t_k, X_{t_k})`, :math:`t_0 = 0`.

    Attributes
    ----------
    times : ndarray of float
        Strictly increasing sample times starting at 0.
    values : ndarray of float
        Process values at ``times``.
    """

    times: np.ndarray
    values: np.ndarray

    def __post_init__(self) -> None:
        times = _frozen_array(self.times)
        values = _frozen_array(self.values)
        if times.shape != values.shape:
            raise ValueError("times and values must have the same length")
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return int(self.times.size)

    def __iter__(self) -> Iterator[tuple[float, float]]:
        for t, x in zip(self.times, self.values):
            yield float(t), float(x)

    def to_list(self) -> list[dict[str, float]]:
        """``[{"t": ..., "x": ...}, ...]`` for chart consumers."""
        return [{"t": t, "x": x} for t, x in self]


@dataclass(frozen=True)
class SamplePath:
    """A retained first-passage trajectory and whether it reached the barrier."""

    path: PathSample
    hit: bool


@dataclass(frozen=True)
class FirstPassageResult:
    r"""
    Outcome of a first-passage run.

    Attributes
    ----------
    empirical_probability : float
        ``hit_count / path_count``.
    theoretical_probability : float
        Reflection-principle probability from
        :func:`~brownianmc.analytics.first_passage_probability`.
    hit_count : int
        Number of paths that reached the barrier.
    sample_paths : tuple of SamplePath
        Trajectories of the first ``min(n_recorded, path_count)`` paths, in path order.
    horizon : float
        Time limit :math:`T`.
    path_count : int
        Number of simulated paths.
    execution_time : float
        Wall-clock time in seconds.
    stats : dict
        Output of the proportion stats engine (``"mean"``, ``"std"``, ``"ci_mean"``).
    metadata : dict
        ``"simulation_name"``, ``"timestamp"``, ``"seed_entropy"``, ``"backend"``,
        ``"step_count"``.
    """

    empirical_probability: float
    theoretical_probability: float
    hit_count: int
    sample_paths: tuple[SamplePath, ...]
    horizon: float
    path_count: int = 0
    execution_time: float = 0.0
    stats: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def absolute_error(self) -> float:
        """``|empirical - theoretical|``."""
        return abs(self.empirical_probability - self.theoretical_probability)

    def result_to_string(self) -> str:
        """Multiline human-readable summary."""
        if simulation_name := self.metadata.get("simulation_name"):
            title = f"Results for simulation '{simulation_name}':"
        else:
            title = "Results for simulation:"
        lines = [
            title,
            f"  Paths: {self.path_count}   Horizon: {self.horizon}",
            f"  Execution time: {self.execution_time:.2f} seconds",
            f"  Hits: {self.hit_count}",
            f"  Empirical P(hit): {self.empirical_probability:.5f}",
            f"  Theoretical P(hit): {self.theoretical_probability:.5f}",
            f"  Absolute error: {self.absolute_error:.5f}",
        ]
        ci = self.stats.get("ci_mean")
        if isinstance(ci, dict) and np.isfinite(ci.get("low", float("nan"))):
            lines.append(
                f"  {int(ci['confidence'] * 100)}% {ci['method']}-CI: [{ci['low']:.5f}, {ci['high']:.5f}]"
            )
        if self.metadata:
            lines.append("Metadata:")
        for k, v in self.metadata.items():
            lines.append(f"    {k}: {v}")
        return "\n".join(lines)


ARCSINE_STATISTICS = ("occupation_fraction", "last_zero_fraction", "max_time_fraction")


@dataclass(frozen=True)
class ArcsineResult:
    r"""
    Per-path arcsine statistics of a driftless run, as fractions of the horizon.

    Attributes
    ----------
    occupation_fraction : ndarray of float
        Fraction of time spent strictly above zero.
    last_zero_fraction : ndarray of float
        Time of the last sign change or touch of zero.
    max_time_fraction : ndarray of float
        Time at which the running maximum was first attained.
    path_count : int
        Number of simulated paths.
    horizon : float
        Time limit :math:`T`.
    step_size : float
        Discretization width.
    execution_time : float
        Wall-clock time in seconds.
    metadata : dict
        ``"simulation_name"``, ``"timestamp"``, ``"seed_entropy"``, ``"backend"``,
        ``"step_count"``.

    Notes
    -----
    Entries are index-aligned within each array. Each statistic is binned on
    its own, so no alignment is implied across the three after aggregation.
    """

    occupation_fraction: np.ndarray
    last_zero_fraction: np.ndarray
    max_time_fraction: np.ndarray
    path_count: int = 0
    horizon: float = 1.0
    step_size: float = 0.001
    execution_time: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ARCSINE_STATISTICS:
            object.__setattr__(self, name, _frozen_array(getattr(self, name)))

    @property
    def statistics(self) -> dict[str, np.ndarray]:
        """The three statistic arrays keyed by field name."""
        return {name: getattr(self, name) for name in ARCSINE_STATISTICS}

    def histograms(self, bin_count: int = DEFAULT_BIN_COUNT) -> dict[str, list[HistogramBin]]:
        """Empirical-versus-arcsine histograms of each statistic."""
        return {name: build_histogram(values, bin_count) for name, values in self.statistics.items()}

    def goodness_of_fit(
        self,
        engine: Optional[StatsEngine] = None,
        confidence: float = 0.95,
    ) -> dict[str, dict[str, Any]]:
        r"""
        Compare each statistic with the arcsine law.

        Parameters
        ----------
        engine : StatsEngine, optional
            Defaults to :data:`~brownianmc.stats_engine.ARCSINE_ENGINE`.
        confidence : float, default 0.95
            Forwarded to the :class:`~brownianmc.stats_engine.StatsContext`.

        Returns
        -------
        dict
            ``{statistic: {metric: value}}``. Metrics that cannot be computed on
            an empty run come back empty.
        """
        eng = engine or ARCSINE_ENGINE
        ctx = StatsContext(n=self.path_count, confidence=confidence)
        return {name: eng.compute(values, ctx) for name, values in self.statistics.items()}

    def result_to_string(self) -> str:
        """Multiline human-readable summary."""
        lines = [
            f"Results for simulation '{self.metadata.get('simulation_name', 'Arcsine Laws')}':",
            f"  Paths: {self.path_count}   Horizon: {self.horizon}   Step: {self.step_size}",
            f"  Execution time: {self.execution_time:.2f} seconds",
        ]
        for name, metrics in self.goodness_of_fit().items():
            ks = metrics.get("ks_arcsine") or {}
            if ks:
                lines.append(
                    f"  {name}: mean={metrics['mean']:.4f}  KS D={ks['statistic']:.4f} (p={ks['pvalue']:.3g})"
                )
            else:
                lines.append(f"  {name}: no data")
        return "\n".join(lines)


class SimulationFramework:
    r"""
    Registry for named simulations with a one-run-per-simulation guard.

    Parameters
    ----------
    max_workers : int, optional
        Size of the thread pool used by :meth:`submit`. Defaults to the number
        of registered simulations at first submission (at least 1).

    Examples
    --------
    >>> from brownianmc import ArcsineSimulation, FirstPassageSimulation, SimulationConfig
    >>> framework = SimulationFramework()
    >>> framework.register_simulation(FirstPassageSimulation())
    >>> framework.register_simulation(ArcsineSimulation())
    >>> task = framework.submit("First Passage", SimulationConfig(path_count=500))  # doctest: +SKIP
    >>> task.result().empirical_probability  # doctest: +SKIP
    0.604
    """

    def __init__(self, max_workers: Optional[int] = None):
        self.simulations: dict[str, "PathSimulation"] = {}
        self.results: dict[str, Any] = {}
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    def register_simulation(
        self,
        simulation: "PathSimulation",
        name: Optional[str] = None,
    ) -> None:
        r"""
        Register a simulation instance under a name.

        Parameters
        ----------
        simulation : PathSimulation
            The simulation instance to register.
        name : str, optional
            If omitted, :attr:`PathSimulation.name` is used.
        """
        sim_name = name or simulation.name
        self.simulations[sim_name] = simulation

    def is_busy(self, name: str) -> bool:
        with self._lock:
            return name in self._in_flight

    def _acquire(self, name: str) -> "PathSimulation":
        if name not in self.simulations:
            raise ValueError(f"Simulation '{name}' not found")
        with self._lock:
            if name in self._in_flight:
                raise SimulationBusyError(f"Simulation '{name}' is already running")
            self._in_flight.add(name)
        return self.simulations[name]

    def _release(self, name: str) -> None:
        with self._lock:
            self._in_flight.discard(name)

    def run_simulation(self, name: str, config: Any, **kwargs: Any) -> Any:
        r"""
        Run a registered simulation on the calling thread.

        Parameters
        ----------
        name : str
            Key used in :meth:`register_simulation`.
        config :
            Configuration accepted by the simulation's ``run``.
        **kwargs :
            Forwarded to ``run`` (``backend``, ``n_workers``, ``cancel_token``...).

        Raises
        ------
        SimulationBusyError
            If a run of ``name`` is already in flight.
        """
        sim = self._acquire(name)
        try:
            res = sim.run(config, **kwargs)
        finally:
            self._release(name)
        self.results[name] = res
        return res

    def submit(self, name: str, config: Any, **kwargs: Any) -> SimulationTask:
        r"""
        Start a registered simulation in the background.

        Returns immediately with a :class:`~brownianmc.tasks.SimulationTask`.
        On success the result is also stored in :attr:`results`.

        Raises
        ------
        SimulationBusyError
            If a run of ``name`` is already in flight.
        """
        sim = self._acquire(name)
        token = kwargs.pop("cancel_token", None) or CancellationToken()

        def _job() -> Any:
            try:
                res = sim.run(config, cancel_token=token, **kwargs)
                self.results[name] = res
                return res
            except SimulationCancelled:
                logger.warning("Simulation '%s' cancelled", name)
                raise
            except Exception:
                logger.exception("Simulation '%s' failed", name)
                raise
            finally:
                self._release(name)

        def _on_done(f: Future) -> None:
            # A run cancelled while still queued never reaches _job
            if f.cancelled():
                self._release(name)
                logger.info("Simulation '%s' cancelled before it started", name)

        try:
            future = self._get_executor().submit(_job)
        except BaseException:
            self._release(name)
            raise
        future.add_done_callback(_on_done)
        logger.info("Submitted simulation '%s'", name)
        return SimulationTask(name, future, token)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                workers = self._max_workers or max(1, len(self.simulations))
                self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="brownianmc")
            return self._executor

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background pool. Pending runs are cancelled when ``wait`` is False."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=not wait)

    def __enter__(self) -> "SimulationFramework":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown(wait=True)

    def latest(self, name: str) -> Any:
        """Most recent completed result of ``name``."""
        if name not in self.results:
            raise ValueError(f"No results found for simulation '{name}'")
        return self.results[name]


__all__ = [
    "PathSample",
    "SamplePath",
    "FirstPassageResult",
    "ArcsineResult",
    "ARCSINE_STATISTICS",
    "SimulationFramework",
]
