r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` — Interface for path execution strategies

Functions
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`run_block` — Simulate a contiguous block of paths on one RNG stream
    :func:`worker_run_chunk` — Top-level worker for process-based parallelism

Helpers
    :func:`is_windows_platform` — Platform detection for backend selection

Every backend returns the same pair: an ``(n_paths, sim.n_outputs)`` float array
with one row per path, and a ``{path_index: PathSample}`` map holding the
trajectories of paths whose index is below ``n_recorded``.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, Callable, Protocol

import numpy as np

from ..sampling import make_generator

if TYPE_CHECKING:
    from ..core import PathSample
    from ..simulation import PathSimulation
    from ..tasks import CancellationToken

__all__ = [
    "ExecutionBackend",
    "BlockOutput",
    "make_blocks",
    "run_block",
    "worker_run_chunk",
    "is_windows_platform",
]

BlockOutput = tuple[np.ndarray, dict[int, "PathSample"]]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 1_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of paths.
    block_size : int, default: 1_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def run_block(
    sim: "PathSimulation",
    rng: np.random.Generator,
    start: int,
    stop: int,
    n_recorded: int,
    simulation_kwargs: dict[str, Any],
    cancel_token: "CancellationToken | None" = None,
    on_path: Callable[[int], None] | None = None,
) -> BlockOutput:
    r"""
    Simulate paths ``start .. stop - 1`` with a single generator.

    Parameters
    ----------
    sim : PathSimulation
        Provides :meth:`~brownianmc.simulation.PathSimulation.simulate_path`.
    rng : numpy.random.Generator
        Stream owned by this block.
    start, stop : int
        Global path indices of the block.
    n_recorded : int
        Paths with a global index below this keep their trajectory.
    simulation_kwargs : dict
        Forwarded to ``simulate_path``.
    cancel_token : CancellationToken, optional
        Checked before every path.
    on_path : callable, optional
        Called with the global index after each path completes.

    Returns
    -------
    tuple[ndarray, dict[int, PathSample]]
        Block outputs of shape ``(stop - start, sim.n_outputs)`` and recorded paths.
    """
    out = np.empty((stop - start, sim.n_outputs), dtype=float)
    recorded: dict[int, "PathSample"] = {}
    for k in range(stop - start):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        index = start + k
        values, path = sim.simulate_path(rng, record=index < n_recorded, **simulation_kwargs)
        out[k] = values
        if path is not None:
            recorded[index] = path
        if on_path is not None:
            on_path(index)
    return out, recorded


def worker_run_chunk(
    sim: "PathSimulation",
    start: int,
    stop: int,
    seed_seq: np.random.SeedSequence,
    n_recorded: int,
    simulation_kwargs: dict[str, Any],
) -> BlockOutput:
    r"""
    Execute one block of paths in a **separate worker process**.

    Parameters
    ----------
    sim :
        Simulation instance; must be pickleable.
    start, stop : int
        Global path indices of the block.
    seed_seq : :class:`numpy.random.SeedSequence`
        Seed for an **independent** :class:`numpy.random.Philox` stream.
    n_recorded : int
        Recording cutoff on the global path index.
    simulation_kwargs : dict
        Keyword arguments forwarded to ``simulate_path``.
    """
    return run_block(sim, make_generator(seed_seq), start, stop, n_recorded, simulation_kwargs)


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends decide how paths are spread over threads or processes, own the
    per-block random streams, check the cancellation token and report progress.
    """

    def run(
        self,
        sim: "PathSimulation",
        n_paths: int,
        seed_seq: np.random.SeedSequence | None,
        progress_callback: Callable[[int, int], None] | None,
        *,
        n_recorded: int = 0,
        cancel_token: "CancellationToken | None" = None,
        **simulation_kwargs: Any,
    ) -> BlockOutput:
        r"""
        Simulate ``n_paths`` paths and return ``(outputs, recorded_paths)``.

        Raises
        ------
        SimulationCancelled
            If ``cancel_token`` is cancelled before all paths complete.
        """
