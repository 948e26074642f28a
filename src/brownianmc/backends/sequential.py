r"""
Sequential execution backend.

Runs every path on the calling thread with the simulation's own generator,
with optional progress reporting and cancellation between paths.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

import numpy as np

from .base import BlockOutput, run_block

if TYPE_CHECKING:
    from ..simulation import PathSimulation
    from ..tasks import CancellationToken

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Draws come from ``sim.rng``, so a seeded simulation produces the same
    paths on every run.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> outputs, recorded = backend.run(sim, 1000, None, None)  # doctest: +SKIP
    """

    def run(
        self,
        sim: "PathSimulation",
        n_paths: int,
        _seed_seq: np.random.SeedSequence | None,
        progress_callback: Callable[[int, int], None] | None,
        *,
        n_recorded: int = 0,
        cancel_token: "CancellationToken | None" = None,
        **simulation_kwargs: Any,
    ) -> BlockOutput:
        r"""
        Run all paths on a single thread.

        Parameters
        ----------
        sim : PathSimulation
            The simulation instance to run.
        n_paths : int
            Number of paths.
        progress_callback : callable or None
            Optional callback ``f(completed, total)``, called every 1% of paths.
        n_recorded : int, default 0
            Number of leading paths whose trajectory is kept.
        cancel_token : CancellationToken, optional
            Checked before every path.
        **simulation_kwargs : Any
            Forwarded to ``simulate_path``.

        Returns
        -------
        tuple[ndarray, dict[int, PathSample]]
            Outputs of shape ``(n_paths, sim.n_outputs)`` and recorded paths.
        """
        # Report progress every 1% of paths
        step = max(1, n_paths // 100)

        def _report(index: int) -> None:
            done = index + 1
            if done % step == 0 or done == n_paths:
                progress_callback(done, n_paths)

        return run_block(
            sim,
            sim.rng,
            0,
            n_paths,
            n_recorded,
            simulation_kwargs,
            cancel_token=cancel_token,
            on_path=_report if progress_callback else None,
        )
