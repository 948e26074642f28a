r"""
Critical-value helpers shared by the stats engine and result summaries.

Functions
    :func:`z_crit` — two-sided normal critical value
    :func:`t_crit` — two-sided Student-t critical value
    :func:`autocrit` — pick z or t from the sample size
"""

from __future__ import annotations

from scipy.stats import norm
from scipy.stats import t as student_t

__all__ = ["z_crit", "t_crit", "autocrit"]

# Below this effective sample size ``"auto"`` switches to Student-t
_T_SWITCH_N = 30


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}`.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.

    Returns
    -------
    float

    Examples
    --------
    >>> round(z_crit(0.95), 4)
    1.96
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in the interval (0, 1)")
    return float(norm.ppf(0.5 + confidence / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""Two-sided Student-t critical value :math:`t_{1-\alpha/2,\,df}`."""
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in the interval (0, 1)")
    if df < 1:
        raise ValueError("df must be >= 1")
    return float(student_t.ppf(0.5 + confidence / 2.0, df))


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Select a critical value for a confidence interval on the mean.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Effective sample size.
    method : {"auto", "z", "t"}, default ``"auto"``
        ``"auto"`` uses t when ``n < 30`` and z otherwise.

    Returns
    -------
    tuple[float, str]
        ``(critical value, "z" | "t")``.
    """
    method = getattr(method, "value", method)
    if method not in ("auto", "z", "t"):
        raise ValueError(f"method must be one of 'auto', 'z', 't', got '{method}'")
    if method == "z" or (method == "auto" and n >= _T_SWITCH_N) or n < 2:
        return z_crit(confidence), "z"
    return t_crit(confidence, n - 1), "t"
