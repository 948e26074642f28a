r"""
Path simulation base class and orchestration logic.

This module provides:

Classes
    :class:`PathSimulation` — Abstract base class for per-path simulations

The simulation class handles:
- Reproducible seeding via :class:`numpy.random.SeedSequence`
- Sequential and parallel execution (delegated to backends)
- Cancellation and progress reporting
- Timing and run metadata

Subclasses implement :meth:`PathSimulation.simulate_path` (one path, a fixed
number of float outputs, optionally its trajectory) and
:meth:`PathSimulation.run` (validate a configuration, call :meth:`_execute`,
reduce the per-path outputs into a result).

Example
-------
>>> from brownianmc.simulation import PathSimulation
>>> class EndpointSim(PathSimulation):
...     def simulate_path(self, rng, record=False, n_steps=100):
...         return (float(rng.standard_normal(n_steps).sum()),), None
...     def run(self, config, **kwargs):
...         outputs, _, _, _ = self._execute(config, **kwargs)
...         return outputs
>>> sim = EndpointSim(name="endpoint")
>>> sim.set_seed(42)
>>> sim.run(1000).shape  # doctest: +SKIP
(1000, 1)

See Also
--------
brownianmc.backends
    Execution backends for sequential and parallel execution.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Sequence

import numpy as np

from .backends import ProcessBackend, SequentialBackend, ThreadBackend, is_windows_platform
from .config import ConfigurationError
from .tasks import CancellationToken

if TYPE_CHECKING:
    from .core import PathSample

logger = logging.getLogger(__name__)

__all__ = ["PathSimulation"]


class PathSimulation(ABC):
    r"""
    Abstract base class for simulations made of independent paths.

    Notes
    -----
    **Backends.**
    ``backend`` can be ``"auto"``, ``"sequential"``, ``"thread"`` or ``"process"``.
    ``"auto"`` runs small jobs sequentially and otherwise uses threads (or
    processes on Windows).

    **Randomness.**
    The sequential backend draws from :attr:`rng`; parallel backends spawn one
    Philox stream per block from :attr:`seed_seq`. A seeded simulation is
    therefore deterministic for a fixed backend and worker count.
    """

    # Minimum number of paths for "auto" to go parallel
    _PARALLEL_THRESHOLD = 2_000
    _VALID_BACKENDS = ("auto", "sequential", "thread", "process")
    # Number of float outputs per path (columns of the backend output)
    n_outputs: int = 1

    def __init__(self, name: str = "Simulation"):
        self.name = name
        self.seed_seq: np.random.SeedSequence | None = None
        self.rng = np.random.default_rng()
        self.backend: str = "auto"

    def __getstate__(self):
        """Avoid pickling the RNG (not pickleable)."""
        state = self.__dict__.copy()
        state["rng"] = None
        return state

    def __setstate__(self, state):
        """Recreate the RNG after unpickling."""
        self.__dict__.update(state)
        if self.seed_seq is not None:
            self.rng = np.random.default_rng(self.seed_seq)
        else:
            self.rng = np.random.default_rng()

    def set_seed(self, seed: int | None) -> None:
        r"""
        Set the random seed for reproducible experiments.

        Parameters
        ----------
        seed : int or None
            Seed for :class:`numpy.random.SeedSequence`. :data:`None` chooses entropy
            from the OS.
        """
        self.seed_seq = np.random.SeedSequence(seed)
        self.rng = np.random.default_rng(self.seed_seq)

    @abstractmethod
    def simulate_path(
        self, rng: np.random.Generator, record: bool = False, **kwargs: Any
    ) -> tuple[Sequence[float], "PathSample | None"]:
        r"""
        Simulate one path.

        Parameters
        ----------
        rng : numpy.random.Generator
            Stream to draw from (owned by the calling backend block).
        record : bool, default False
            Whether to return the trajectory.

        Returns
        -------
        tuple
            ``(outputs, path)`` with exactly :attr:`n_outputs` floats and a
            :class:`~brownianmc.core.PathSample` or ``None``.
        """
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def run(self, config: Any, **kwargs: Any) -> Any:
        """Validate ``config``, simulate every path and return a result object."""
        raise NotImplementedError  # pragma: no cover

    def _validate_run_params(self, n_workers: int | None, backend: str) -> None:
        if n_workers is not None and n_workers <= 0:
            raise ConfigurationError("n_workers must be positive")
        if backend not in self._VALID_BACKENDS:
            raise ConfigurationError(f"backend must be one of {self._VALID_BACKENDS}, got '{backend}'")

    def _resolve_backend_type(self, requested: str | None = None) -> str:
        r"""
        Resolve ``"auto"`` to a parallel backend type.

        ``"thread"`` on POSIX-like platforms, ``"process"`` on Windows where
        threads tend to serialize under the GIL.
        """
        backend = requested or self.backend
        if backend == "auto":
            on_windows = is_windows_platform()
            if on_windows:
                logger.info("Parallel backend 'auto' resolved to 'process' on Windows platform.")
            return "process" if on_windows else "thread"
        return backend

    def _create_backend(
        self, backend: str, n_workers: int | None
    ) -> SequentialBackend | ThreadBackend | ProcessBackend:
        if backend == "sequential":
            return SequentialBackend()
        if n_workers is None:
            n_workers = mp.cpu_count()  # pragma: no cover
        if backend == "thread":
            return ThreadBackend(n_workers=n_workers)
        return ProcessBackend(n_workers=n_workers)

    def _execute(
        self,
        n_paths: int,
        *,
        backend: str | None = None,
        n_workers: int | None = None,
        n_recorded: int = 0,
        progress_callback: Callable[[int, int], None] | None = None,
        cancel_token: CancellationToken | None = None,
        **simulation_kwargs: Any,
    ) -> tuple[np.ndarray, dict[int, "PathSample"], float, dict[str, Any]]:
        r"""
        Simulate ``n_paths`` paths with the selected backend.

        Returns
        -------
        tuple
            ``(outputs, recorded_paths, execution_time, metadata)`` where
            ``outputs`` has shape ``(n_paths, n_outputs)``.

        Raises
        ------
        ConfigurationError
            For an unknown backend or a non-positive worker count.
        SimulationCancelled
            If ``cancel_token`` is cancelled mid-run.
        """
        backend = backend or self.backend
        self._validate_run_params(n_workers, backend)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        if backend == "auto":
            if n_workers is None:
                n_workers = mp.cpu_count()  # pragma: no cover
            if n_workers <= 1 or n_paths < self._PARALLEL_THRESHOLD:
                backend = "sequential"
            else:
                backend = self._resolve_backend_type(backend)

        t0 = time.time()
        if n_paths == 0:
            outputs = np.empty((0, self.n_outputs), dtype=float)
            recorded: dict[int, "PathSample"] = {}
        else:
            if backend == "sequential":
                logger.info("Simulating %d paths sequentially...", n_paths)
            else:
                if n_workers is None:
                    n_workers = mp.cpu_count()  # pragma: no cover
                logger.info(
                    "Simulating %d paths in parallel using %s backend with %d workers...",
                    n_paths, backend, n_workers,
                )
            runner = self._create_backend(backend, n_workers)
            outputs, recorded = runner.run(
                self,
                n_paths,
                self.seed_seq,
                progress_callback,
                n_recorded=n_recorded,
                cancel_token=cancel_token,
                **simulation_kwargs,
            )
        exec_time = time.time() - t0
        logger.info("Simulation '%s' finished %d paths in %.2fs", self.name, n_paths, exec_time)

        meta = {
            "simulation_name": self.name,
            "timestamp": time.time(),
            "seed_entropy": self.seed_seq.entropy if self.seed_seq else None,
            "backend": backend,
        }
        return outputs, recorded, exec_time, meta
