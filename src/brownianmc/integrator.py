r"""
Euler-Maruyama integration of :math:`dX_t = \mu\,dt + \sigma\,dW_t`.

The update for one step of width :math:`\Delta t` is

.. math::

   X_{k+1} = X_k + \mu\,\Delta t + \sigma\sqrt{\Delta t}\,Z_k,
   \qquad Z_k \sim \mathcal{N}(0, 1).

Both simulators advance their paths exclusively through this module.
"""

from __future__ import annotations

import math

import numpy as np

from .sampling import GaussianSampler

__all__ = ["euler_maruyama_step", "PathIntegrator"]


def euler_maruyama_step(x: float, drift: float, volatility: float, step_size: float, z: float) -> float:
    """One Euler-Maruyama update of ``x`` driven by the normal draw ``z``."""
    return x + drift * step_size + volatility * math.sqrt(step_size) * z


class PathIntegrator:
    r"""
    Advance a scalar process with constant drift and diffusion.

    Parameters
    ----------
    drift : float
        :math:`\mu`.
    volatility : float
        :math:`\sigma`.
    step_size : float
        :math:`\Delta t`. Must be positive; not validated here.
    sampler : GaussianSampler
        Source of the :math:`Z_k`.

    Notes
    -----
    :meth:`advance` accumulates increments sequentially with
    :func:`numpy.cumsum` and consumes the same draws as repeated :meth:`step`
    calls from the same sampler state, so both agree up to rounding.
    """

    def __init__(self, drift: float, volatility: float, step_size: float, sampler: GaussianSampler):
        self.drift = drift
        self.volatility = volatility
        self.step_size = step_size
        self.sampler = sampler
        self._mean_increment = drift * step_size
        self._scale = volatility * math.sqrt(step_size)

    def step(self, x: float) -> float:
        """Return the value one step after ``x``."""
        return euler_maruyama_step(x, self.drift, self.volatility, self.step_size, self.sampler.sample())

    def advance(self, x: float, n: int) -> np.ndarray:
        """Return the next ``n`` values of a path currently at ``x``."""
        increments = self._mean_increment + self._scale * self.sampler.sample_array(n)
        increments[0] += x
        return np.cumsum(increments)
