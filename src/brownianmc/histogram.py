r"""
Empirical density histograms paired with the arcsine density.

The unit interval is split into ``bin_count`` equal bins. A value :math:`v`
falls in bin :math:`\lfloor v \cdot \text{bin\_count} \rfloor` when that index is
in range; anything else (including exactly 1.0) is dropped rather than clamped
into the last bin. Counts become densities by dividing by
:math:`n \cdot w`, where :math:`w = 1/\text{bin\_count}`, so the densities
integrate to the in-range fraction of the sample.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .analytics import arcsine_density

logger = logging.getLogger(__name__)

__all__ = ["EmptyInputWarning", "HistogramBin", "build_histogram", "bin_midpoints"]

DEFAULT_BIN_COUNT = 40


class EmptyInputWarning(UserWarning):
    """Issued when a histogram is built from no values."""


@dataclass(frozen=True)
class HistogramBin:
    r"""
    One bin of an empirical-versus-theoretical density comparison.

    Attributes
    ----------
    midpoint : float
        Bin centre :math:`(i + 0.5) / \text{bin\_count}`.
    empirical_density : float
        Normalized sample count.
    theoretical_density : float
        :func:`~brownianmc.analytics.arcsine_density` at the midpoint.
    """

    midpoint: float
    empirical_density: float
    theoretical_density: float


def bin_midpoints(bin_count: int) -> np.ndarray:
    """Midpoints of ``bin_count`` equal bins on ``[0, 1)``."""
    return (np.arange(bin_count) + 0.5) / bin_count


def build_histogram(values: Iterable[float], bin_count: int = DEFAULT_BIN_COUNT) -> list[HistogramBin]:
    r"""
    Bin ``values`` on :math:`[0, 1)` and pair each bin with the arcsine density.

    Parameters
    ----------
    values : iterable of float
        Per-path statistics, nominally in :math:`[0, 1]`.
    bin_count : int, default 40
        Number of equal-width bins.

    Returns
    -------
    list of HistogramBin
        ``bin_count`` bins in increasing midpoint order.

    Warns
    -----
    EmptyInputWarning
        If ``values`` is empty. Empirical densities are then all zero.

    Examples
    --------
    >>> bins = build_histogram([0.1, 0.1, 0.6], bin_count=2)
    >>> [round(b.empirical_density, 4) for b in bins]
    [1.3333, 0.6667]
    """
    if int(bin_count) != bin_count or bin_count <= 0:
        raise ValueError(f"bin_count must be a positive integer, got {bin_count!r}")
    bin_count = int(bin_count)

    arr = np.asarray(list(values) if not isinstance(values, np.ndarray) else values, dtype=float).ravel()
    mids = bin_midpoints(bin_count)
    theoretical = arcsine_density(mids)

    if arr.size == 0:
        warnings.warn("No values to histogram; empirical density is undefined and reported as 0.",
                      EmptyInputWarning, stacklevel=2)
        logger.warning("Histogram requested for an empty sample")
        empirical = np.zeros(bin_count)
    else:
        idx = np.floor(arr * bin_count)
        in_range = (idx >= 0) & (idx < bin_count)
        counts = np.bincount(idx[in_range].astype(np.int64), minlength=bin_count)
        bin_width = 1.0 / bin_count
        empirical = counts / (arr.size * bin_width)
        dropped = arr.size - int(in_range.sum())
        if dropped:
            logger.debug("Dropped %d out-of-range value(s) from histogram", dropped)

    return [
        HistogramBin(midpoint=float(m), empirical_density=float(e), theoretical_density=float(t))
        for m, e, t in zip(mids, empirical, theoretical)
    ]
