r"""
Background-run lifecycle for simulations.

This module provides:

Classes
    :class:`TaskState` — lifecycle states of a submitted run
    :class:`CancellationToken` — cooperative cancellation flag checked between paths
    :class:`SimulationTask` — handle to one background run

Exceptions
    :class:`SimulationCancelled` — the run stopped because its token was cancelled
    :class:`SimulationBusyError` — a run of the same simulation is already in flight

A task is created by :meth:`brownianmc.core.SimulationFramework.submit`. The
simulation itself stays a pure function of its configuration; the task only
tracks where that function is in its life.
"""

from __future__ import annotations

import threading
from concurrent.futures import CancelledError, Future
from enum import Enum
from typing import Any

__all__ = [
    "TaskState",
    "CancellationToken",
    "SimulationTask",
    "SimulationCancelled",
    "SimulationBusyError",
]


class SimulationCancelled(RuntimeError):
    """Raised inside a run when its :class:`CancellationToken` is cancelled."""


class SimulationBusyError(RuntimeError):
    """Raised when a simulation is started while a previous run is still in flight."""


class TaskState(str, Enum):
    r"""
    Lifecycle of a submitted run.

    Attributes
    ----------
    not_started : str
        Queued but not yet running.
    running : str
        Paths are being simulated.
    completed : str
        A result is available.
    failed : str
        The run raised; see :meth:`SimulationTask.exception`.
    cancelled : str
        The run was cancelled before producing a result.
    """

    not_started = "not_started"
    running = "running"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Backends call :meth:`raise_if_cancelled` between paths, so a cancelled run
    stops at the next path boundary.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SimulationCancelled("Simulation cancelled")


class SimulationTask:
    """
    Handle to a simulation running in the background.

    Parameters
    ----------
    name : str
        Registered simulation name.
    future : concurrent.futures.Future
        Future of the underlying run.
    token : CancellationToken
        Token passed to the run.
    """

    def __init__(self, name: str, future: Future, token: CancellationToken):
        self.name = name
        self._future = future
        self._token = token

    @property
    def state(self) -> TaskState:
        f = self._future
        if f.cancelled():
            return TaskState.cancelled
        if not f.done():
            return TaskState.running if f.running() else TaskState.not_started
        exc = f.exception()
        if isinstance(exc, SimulationCancelled):
            return TaskState.cancelled
        if exc is not None:
            return TaskState.failed
        return TaskState.completed

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> None:
        """Request cancellation; a queued run is dropped, a running one stops at the next path."""
        self._token.cancel()
        self._future.cancel()

    def result(self, timeout: float | None = None) -> Any:
        """
        Block until the run finishes and return its result.

        Raises
        ------
        SimulationCancelled
            If the run was cancelled.
        Exception
            Whatever the run raised, e.g. :class:`~brownianmc.config.ConfigurationError`.
        """
        try:
            return self._future.result(timeout)
        except CancelledError as e:
            raise SimulationCancelled(f"Simulation '{self.name}' cancelled") from e

    def exception(self, timeout: float | None = None) -> BaseException | None:
        try:
            return self._future.exception(timeout)
        except CancelledError:
            return SimulationCancelled(f"Simulation '{self.name}' cancelled")

    def __repr__(self) -> str:
        return f"SimulationTask(name={self.name!r}, state={self.state.value})"
