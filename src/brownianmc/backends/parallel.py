r"""
Parallel execution backends.

This module provides:

Classes
    :class:`ThreadBackend` — Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend` — Process-based parallelism using ProcessPoolExecutor

Paths are split into blocks with :func:`~brownianmc.backends.base.make_blocks`.
Each block simulates on its own :class:`numpy.random.Philox` stream spawned from
the simulation's seed sequence and writes into its own slice of the output
array; merging recorded paths is the only step done after a block returns.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any, Callable

import numpy as np

from ..sampling import make_generator
from .base import BlockOutput, make_blocks, run_block, worker_run_chunk

if TYPE_CHECKING:
    from ..core import PathSample
    from ..simulation import PathSimulation
    from ..tasks import CancellationToken

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]

# Number of blocks per worker for load balancing
_CHUNKS_PER_WORKER = 8


class _BlockedBackend:
    """Block layout and seeding shared by the pool backends."""

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def _prepare_blocks(
        self, n_paths: int, seed_seq: np.random.SeedSequence | None
    ) -> tuple[list[tuple[int, int]], list[np.random.SeedSequence]]:
        """Prepare work blocks and independent random seeds."""
        block_size = max(1, n_paths // (self.n_workers * self.chunks_per_worker))
        blocks = make_blocks(n_paths, block_size)

        if seed_seq is not None:
            child_seqs = seed_seq.spawn(len(blocks))
        else:
            child_seqs = [np.random.SeedSequence() for _ in range(len(blocks))]

        logger.debug("Split %d paths into %d blocks of ~%d", n_paths, len(blocks), block_size)
        return blocks, child_seqs


class ThreadBackend(_BlockedBackend):
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor`. Effective because the
    per-path work is dominated by NumPy calls that release the GIL.

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.
    chunks_per_worker : int, default 8
        Number of blocks per worker for load balancing.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> outputs, recorded = backend.run(sim, 100_000, seed_seq, None)  # doctest: +SKIP
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
        Run paths in parallel using threads.

        The cancellation token is shared with every worker and checked before
        each path.

        Returns
        -------
        tuple[ndarray, dict[int, PathSample]]
            Outputs of shape ``(n_paths, sim.n_outputs)`` and recorded paths.
        """
        blocks, child_seqs = self._prepare_blocks(n_paths, seed_seq)
        results = np.empty((n_paths, sim.n_outputs), dtype=float)
        recorded: dict[int, "PathSample"] = {}
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        def _work(args):
            (a, b), ss = args
            out = run_block(
                sim, make_generator(ss), a, b, n_recorded, simulation_kwargs, cancel_token=cancel_token
            )
            return (a, b), out

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(_work, (blk, ss)) for blk, ss in zip(blocks, child_seqs)]
            try:
                for f in as_completed(futs):
                    (i, j), (arr, paths) = f.result()
                    results[i:j] = arr
                    recorded.update(paths)
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, n_paths)
            except BaseException:
                for f in futs:
                    f.cancel()
                raise

        return results, recorded


class ProcessBackend(_BlockedBackend):
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with the spawn context.
    Required on Windows for true parallelism.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.
    chunks_per_worker : int, default 8
        Number of blocks per worker for load balancing.

    Notes
    -----
    The simulation instance must be pickleable. The cancellation token cannot
    cross the process boundary, so it is checked whenever a block completes
    and pending blocks are dropped once it is set.
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
        Run paths in parallel using processes.

        Returns
        -------
        tuple[ndarray, dict[int, PathSample]]
            Outputs of shape ``(n_paths, sim.n_outputs)`` and recorded paths.
        """
        blocks, child_seqs = self._prepare_blocks(n_paths, seed_seq)
        results = np.empty((n_paths, sim.n_outputs), dtype=float)
        recorded: dict[int, "PathSample"] = {}
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs: list[Future] = []
            for (i, j), ss in zip(blocks, child_seqs):
                f = ex.submit(worker_run_chunk, sim, i, j, ss, n_recorded, dict(simulation_kwargs))
                f.blk = (i, j)  # type: ignore[attr-defined]
                futs.append(f)
            try:
                for f in as_completed(futs):
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    i, j = f.blk  # type: ignore[attr-defined]
                    arr, paths = f.result()
                    results[i:j] = arr
                    recorded.update(paths)
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, n_paths)
            except BaseException:
                for f in futs:
                    f.cancel()
                raise

        return results, recorded
