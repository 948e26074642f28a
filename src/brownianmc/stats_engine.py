r"""
brownianmc.stats_engine
=======================
Summary statistics computed over per-path simulation outputs.

This module defines:

- :class:`StatsContext`: confidence level, interval method and evaluation points.
- :class:`FnMetric`: a metric function with the name it is reported under.
- :class:`StatsEngine`: runs a list of metrics over one sample.

Two engines are built at import time:

- :data:`PROPORTION_ENGINE` for 0/1 hit indicators of a first-passage run
  (mean, standard deviation and a z/t interval for the hitting probability).
- :data:`ARCSINE_ENGINE` for arcsine statistics in :math:`[0, 1]`
  (Kolmogorov-Smirnov test and CDF gaps against the arcsine law).

See Also
--------
brownianmc.utils.autocrit
    Selects a z/t critical value for a target confidence level and sample size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

import numpy as np
from scipy.stats import arcsine as sp_arcsine
from scipy.stats import kstest

from .analytics import arcsine_cdf
from .utils import autocrit

logger = logging.getLogger(__name__)

# Points at which the empirical CDF is compared with the arcsine law
_EVAL_POINTS = (0.1, 0.5, 0.9)


class CIMethod(str, Enum):
    r"""
    Strategies for selecting confidence-interval critical values.

    Attributes
    ----------
    auto : str
        Student-t when :math:`n < 30`, otherwise z.
    z : str
        Always the normal critical value.
    t : str
        Always the Student-t critical value.
    """

    auto = "auto"
    z = "z"
    t = "t"


@dataclass(slots=True)
class StatsContext:
    r"""
    Shared configuration for metric computations.

    Attributes
    ----------
    n : int
        Declared sample size.
    confidence : float, default 0.95
        Confidence level in :math:`(0, 1)`.
    ci_method : {"auto", "z", "t"}, default "auto"
        Strategy for :func:`ci_mean`.
    eval_points : tuple of float, default ``(0.1, 0.5, 0.9)``
        Points in :math:`[0, 1]` used by :func:`arcsine_cdf_gaps`.
    ddof : int, default 1
        Degrees of freedom for :func:`std`.

    Examples
    --------
    >>> ctx = StatsContext(n=5000, confidence=0.9)
    >>> round(ctx.alpha, 2)
    0.1
    """

    n: int
    confidence: float = 0.95
    ci_method: CIMethod = CIMethod.auto
    eval_points: tuple[float, ...] = _EVAL_POINTS
    ddof: int = 1

    def with_overrides(self, **changes) -> "StatsContext":
        """Return a copy with selected fields replaced (validated again)."""
        return replace(self, **changes)

    @property
    def alpha(self) -> float:
        r"""Tail probability :math:`\alpha = 1 - \text{confidence}`."""
        return 1.0 - self.confidence

    def __post_init__(self) -> None:
        if not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")
        self.ci_method = CIMethod(self.ci_method)
        if any(p < 0 or p > 1 for p in self.eval_points):
            raise ValueError("eval_points must be in [0,1]")
        if self.ddof < 0:
            raise ValueError("ddof must be >= 0")


class Metric(Protocol):
    r"""
    Protocol for metric callables used by :class:`StatsEngine`.

    ``metric(x: numpy.ndarray, ctx: StatsContext) -> Any`` with a ``name`` attribute.
    """

    name: str

    def __call__(self, x: np.ndarray, ctx: StatsContext, /) -> Any: ...


T = TypeVar("T")


@dataclass(frozen=True)
class FnMetric(Generic[T]):
    r"""
    Bind a ``name`` to a metric function.

    Parameters
    ----------
    name : str
        Key under which the result is stored by :meth:`StatsEngine.compute`.
    fn : callable
        ``fn(x: ndarray, ctx: StatsContext) -> T``.
    doc : str, optional
        Short description.

    Examples
    --------
    >>> m = FnMetric("mean", lambda a, ctx: float(np.mean(a)))
    >>> m(np.array([1, 2, 3]), StatsContext(n=3))
    2.0
    """

    name: str
    fn: Callable[[np.ndarray, StatsContext], T]
    doc: str = ""

    def __call__(self, x: np.ndarray, ctx: StatsContext) -> T:
        return self.fn(x, ctx)


class StatsEngine:
    r"""
    Evaluate a set of metrics over an input array.

    Parameters
    ----------
    metrics : iterable of Metric
        Callables with a ``name`` and signature ``metric(x, ctx)``.

    Notes
    -----
    A metric raising :class:`ValueError` propagates. Any other failure is
    logged and the metric is left out of the output.

    Examples
    --------
    >>> eng = StatsEngine([FnMetric("mean", mean), FnMetric("std", std)])
    >>> eng.compute(np.array([1., 2., 3.]))
    {'mean': 2.0, 'std': 1.0}
    """

    def __init__(self, metrics: Iterable[Metric]):
        self._metrics = list(metrics)

    def available(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._metrics)

    def compute(
        self,
        x: np.ndarray,
        ctx: Optional[StatsContext] = None,
        select: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        r"""
        Evaluate the registered metrics on ``x``.

        Parameters
        ----------
        x : ndarray
            Sample values.
        ctx : StatsContext, optional
            If omitted, one is built from ``**kwargs`` with ``n = x.size``.
        select : sequence of str, optional
            Compute only the metrics with these names.

        Returns
        -------
        dict
            Mapping from metric name to value.
        """
        x = np.asarray(x, dtype=float).ravel()
        if ctx is None:
            base = dict(kwargs)
            base.setdefault("n", int(x.size))
            ctx = StatsContext(**base)

        wanted = None if select is None else set(select)
        out: dict[str, Any] = {}
        for m in self._metrics:
            if wanted is not None and m.name not in wanted:
                continue
            try:
                out[m.name] = m(x, ctx)
            except ValueError:
                raise
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Error computing metric %s", m.name)
        return out


def mean(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Sample mean; for 0/1 hit indicators this is the empirical hitting probability.

    Returns ``nan`` for an empty sample.
    """
    return float(np.mean(x)) if x.size else float("nan")


def std(x: np.ndarray, ctx: StatsContext) -> float:
    r"""Sample standard deviation (``ddof`` from the context; ``0.0`` when :math:`n \le 1`)."""
    if x.size <= 1:
        return 0.0
    return float(np.std(x, ddof=ctx.ddof))


def ci_mean(x: np.ndarray, ctx: StatsContext) -> dict[str, float | str]:
    r"""
    Parametric interval :math:`\bar X \pm c\,s/\sqrt{n}`.

    Applied to hit indicators this is the Wald interval for the hitting
    probability, with :math:`s^2 = \hat p (1 - \hat p)\,n/(n-1)`.

    Returns
    -------
    dict[str, float | str]
        ``confidence``, ``method``, ``se``, ``crit``, ``low``, ``high``.
        Endpoints are ``nan`` when fewer than two values are available.
    """
    n = int(x.size)
    if n < 2:
        return {
            "confidence": ctx.confidence,
            "method": ctx.ci_method.value,
            "se": float("nan"),
            "crit": float("nan"),
            "low": float("nan"),
            "high": float("nan"),
        }
    mu = float(np.mean(x))
    se = float(np.std(x, ddof=ctx.ddof)) / np.sqrt(n)
    crit, method = autocrit(ctx.confidence, n, ctx.ci_method)
    return {
        "confidence": ctx.confidence,
        "method": method,
        "se": float(se),
        "crit": float(crit),
        "low": float(mu - crit * se),
        "high": float(mu + crit * se),
    }


def ks_arcsine(x: np.ndarray, ctx: StatsContext) -> dict[str, float]:
    r"""
    One-sample Kolmogorov-Smirnov test of ``x`` against the arcsine law on :math:`[0, 1]`.

    Uses :func:`scipy.stats.kstest` with :data:`scipy.stats.arcsine`. Returns an
    empty dict for an empty sample.

    Notes
    -----
    Discretization puts atoms at multiples of the step size (the last zero is
    often exactly one step), so p-values are only indicative for coarse grids.
    """
    if x.size == 0:
        return {}
    res = kstest(x, sp_arcsine.cdf)
    return {"statistic": float(res.statistic), "pvalue": float(res.pvalue)}


def arcsine_cdf_gaps(x: np.ndarray, ctx: StatsContext) -> dict[float, float]:
    r"""
    Empirical CDF minus :math:`\tfrac{2}{\pi}\arcsin\sqrt{u}` at each of ``ctx.eval_points``.

    Returns an empty dict for an empty sample.
    """
    if x.size == 0:
        return {}
    out: dict[float, float] = {}
    for u in ctx.eval_points:
        out[float(u)] = float(np.mean(x <= u) - arcsine_cdf(u))
    return out


def build_proportion_engine() -> StatsEngine:
    """Engine applied to the 0/1 hit indicators of a first-passage run."""
    return StatsEngine(
        [
            FnMetric[float]("mean", mean, "Empirical hitting probability"),
            FnMetric[float]("std", std, "Sample standard deviation of hit indicators"),
            FnMetric[dict[str, float | str]]("ci_mean", ci_mean, "z/t interval for the hitting probability"),
        ]
    )


def build_arcsine_engine() -> StatsEngine:
    """Engine applied to each arcsine statistic."""
    return StatsEngine(
        [
            FnMetric[float]("mean", mean, "Sample mean (1/2 under the arcsine law)"),
            FnMetric[dict[str, float]]("ks_arcsine", ks_arcsine, "KS test against the arcsine law"),
            FnMetric[dict[float, float]]("arcsine_cdf_gaps", arcsine_cdf_gaps, "Empirical minus arcsine CDF"),
        ]
    )


PROPORTION_ENGINE = build_proportion_engine()
ARCSINE_ENGINE = build_arcsine_engine()

__all__ = [
    "CIMethod",
    "StatsContext",
    "Metric",
    "FnMetric",
    "StatsEngine",
    "mean",
    "std",
    "ci_mean",
    "ks_arcsine",
    "arcsine_cdf_gaps",
    "build_proportion_engine",
    "build_arcsine_engine",
    "PROPORTION_ENGINE",
    "ARCSINE_ENGINE",
]
