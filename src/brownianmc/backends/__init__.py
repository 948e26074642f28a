"""
Execution backends for path simulations.

Backends
    :class:`SequentialBackend` — every path on the calling thread
    :class:`ThreadBackend` — blocks of paths on a thread pool
    :class:`ProcessBackend` — blocks of paths on a spawn-context process pool

Helpers
    :func:`make_blocks` — split ``[0, n)`` into contiguous blocks
    :func:`run_block` — simulate one block of paths on one stream
    :func:`worker_run_chunk` — picklable entry point for process pools
    :func:`is_windows_platform` — used by ``"auto"`` backend selection

Protocol
    :class:`ExecutionBackend` — what :class:`~brownianmc.simulation.PathSimulation` expects
"""

from .base import ExecutionBackend, is_windows_platform, make_blocks, run_block, worker_run_chunk
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

__all__ = [
    "ExecutionBackend",
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    "make_blocks",
    "run_block",
    "worker_run_chunk",
    "is_windows_platform",
]
