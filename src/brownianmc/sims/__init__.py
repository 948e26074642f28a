"""Simulation catalog for :mod:`brownianmc`."""

from __future__ import annotations

from .arcsine import ArcsineSimulation, arcsine_statistics, run_arcsine_laws
from .first_passage import FirstPassageSimulation, run_first_passage

__all__ = [
    "FirstPassageSimulation",
    "ArcsineSimulation",
    "arcsine_statistics",
    "run_first_passage",
    "run_arcsine_laws",
]
