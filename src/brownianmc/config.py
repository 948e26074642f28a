r"""
Run configuration for the Brownian-motion simulators.

Classes
    :class:`SimulationConfig`: drifted first-passage run
    :class:`ArcsineConfig`: driftless arcsine-law run

Exceptions
    :class:`ConfigurationError`: invalid configuration, raised before any path is simulated

Both configurations are frozen dataclasses validated in ``__post_init__``, so an
instance that exists is always runnable.

Example
-------
>>> cfg = SimulationConfig(drift=0.0, volatility=1.0, barrier=2.0, horizon=10.0,
...                        step_size=0.01, path_count=5000)
>>> cfg.step_count
1000
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

__all__ = [
    "ConfigurationError",
    "SimulationConfig",
    "ArcsineConfig",
    "MAX_RECORDED_PATHS",
    "step_count",
]

# Relative slack for horizon / step_size so that e.g. 0.3 / 0.1 yields 3 steps
_STEP_TOLERANCE = 1e-9

# Upper bound on retained trajectories per first-passage run
MAX_RECORDED_PATHS = 10

# Keys of the external (camelCase) contract mapped to field names
_ALIASES = {
    "stepSize": "step_size",
    "pathCount": "path_count",
    "nRecorded": "n_recorded",
}


class ConfigurationError(ValueError):
    """Raised when a simulation configuration is rejected."""


def step_count(horizon: float, step_size: float) -> int:
    r"""
    Number of discrete steps covering ``horizon``.

    Computes :math:`\lfloor T / \Delta t \rfloor`, truncating when the step size
    does not divide the horizon evenly.

    Raises
    ------
    ConfigurationError
        If the result is zero (step size larger than the horizon).
    """
    ratio = horizon / step_size
    n = int(math.floor(ratio * (1.0 + _STEP_TOLERANCE)))
    if n <= 0:
        raise ConfigurationError(
            f"step_size ({step_size}) must not exceed horizon ({horizon})"
        )
    return n


def _require_real(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be a real number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return value


def _require_positive(name: str, value: Any) -> float:
    value = _require_real(name, value)
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive and finite, got {value!r}")
    return value


def _require_count(name: str, value: Any, minimum: int, maximum: int | None = None) -> int:
    """Validate a whole-number count and return it as ``int``; ``5000.0`` becomes ``5000``."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, numbers.Integral):
        count = int(value)
    elif math.isfinite(value) and float(value).is_integer():
        count = int(value)
    else:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if count < minimum or (maximum is not None and count > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f"at least {minimum}"
        raise ConfigurationError(f"{name} must be {bound}, got {value!r}")
    return count


def _normalize_keys(data: Mapping[str, Any], allowed: set[str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        name = _ALIASES.get(key, key)
        if name not in allowed:
            raise ConfigurationError(f"Unknown configuration option '{key}'")
        out[name] = value
    return out


@dataclass(frozen=True)
class SimulationConfig:
    r"""
    Configuration of a first-passage run for :math:`dX_t = \mu\,dt + \sigma\,dW_t`, :math:`X_0 = 0`.

    Attributes
    ----------
    drift : float, default 0.05
        Systematic trend :math:`\mu` per unit time.
    volatility : float, default 1.0
        Diffusion intensity :math:`\sigma > 0`.
    barrier : float, default 2.0
        Absolute threshold :math:`b > 0`.
    horizon : float, default 10.0
        Time limit :math:`T > 0`.
    step_size : float, default 0.01
        Discretization width :math:`\Delta t > 0`; should divide ``horizon``.
    path_count : int, default 1000
        Number of independent paths (``> 0``). Whole-number floats such as
        ``5000.0`` are stored as ``int``.
    n_recorded : int, default 10
        Number of leading paths whose trajectory is retained, between 0 and
        :data:`MAX_RECORDED_PATHS`.
    """

    drift: float = 0.05
    volatility: float = 1.0
    barrier: float = 2.0
    horizon: float = 10.0
    step_size: float = 0.01
    path_count: int = 1000
    n_recorded: int = 10

    def __post_init__(self) -> None:
        # frozen: normalized values are written back through object.__setattr__
        object.__setattr__(self, "drift", _require_real("drift", self.drift))
        for name in ("volatility", "barrier", "horizon", "step_size"):
            object.__setattr__(self, name, _require_positive(name, getattr(self, name)))
        object.__setattr__(self, "path_count", _require_count("path_count", self.path_count, 1))
        object.__setattr__(
            self, "n_recorded", _require_count("n_recorded", self.n_recorded, 0, MAX_RECORDED_PATHS)
        )
        step_count(self.horizon, self.step_size)

    @property
    def step_count(self) -> int:
        """Number of Euler steps per path."""
        return step_count(self.horizon, self.step_size)

    @property
    def recorded_count(self) -> int:
        """Number of trajectories actually retained, ``min(n_recorded, path_count)``."""
        return min(self.n_recorded, self.path_count)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SimulationConfig":
        """
        Build a config from a mapping.

        Accepts field names and the camelCase keys ``stepSize``, ``pathCount``.
        Missing keys take the defaults; unknown keys raise :class:`ConfigurationError`.
        """
        return cls(**_normalize_keys(data, {f.name for f in fields(cls)}))

    def with_overrides(self, **changes: Any) -> "SimulationConfig":
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)


@dataclass(frozen=True)
class ArcsineConfig:
    r"""
    Configuration of a driftless arcsine-law run.

    Drift is fixed at zero and volatility at one: the arcsine laws are stated
    for standard Brownian motion.

    Attributes
    ----------
    path_count : int, default 5000
        Number of paths. ``0`` is allowed and yields empty statistics.
    step_size : float, default 0.001
        Discretization width.
    horizon : float, default 1.0
        Time limit; statistics are reported as fractions of it.
    """

    path_count: int = 5000
    step_size: float = 0.001
    horizon: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "path_count", _require_count("path_count", self.path_count, 0))
        object.__setattr__(self, "horizon", _require_positive("horizon", self.horizon))
        object.__setattr__(self, "step_size", _require_positive("step_size", self.step_size))
        step_count(self.horizon, self.step_size)

    @property
    def step_count(self) -> int:
        return step_count(self.horizon, self.step_size)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ArcsineConfig":
        return cls(**_normalize_keys(data, {f.name for f in fields(cls)}))

    def with_overrides(self, **changes: Any) -> "ArcsineConfig":
        return replace(self, **changes)
