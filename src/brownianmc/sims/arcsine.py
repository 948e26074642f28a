r"""
Lévy's arcsine laws for standard Brownian motion.

For :math:`W` on :math:`[0, T]` the three statistics

- occupation time :math:`\tfrac{1}{T}\int_0^T \mathbf{1}\{W_t > 0\}\,dt`,
- last zero :math:`\tfrac{1}{T}\sup\{t \le T : W_t = 0\}`,
- time of the maximum :math:`\tfrac{1}{T}\arg\max_{t \le T} W_t`

all follow the arcsine law with density :math:`1/(\pi\sqrt{x(1-x)})`.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

import numpy as np
from numpy.random import Generator

from ..config import ArcsineConfig, ConfigurationError
from ..core import ArcsineResult, PathSample
from ..integrator import PathIntegrator
from ..sampling import GaussianSampler
from ..simulation import PathSimulation
from ..tasks import CancellationToken

__all__ = ["ArcsineSimulation", "run_arcsine_laws", "arcsine_statistics"]


def arcsine_statistics(values: np.ndarray, step_size: float, horizon: float) -> tuple[float, float, float]:
    r"""
    Occupation, last-zero and argmax fractions of one discretized path.

    Parameters
    ----------
    values : ndarray
        :math:`X_1, \dots, X_n` at times :math:`k\,\Delta t`; :math:`X_0 = 0` is implied.
    step_size : float
        :math:`\Delta t`.
    horizon : float
        :math:`T` used for normalization.

    Notes
    -----
    * A step counts towards the occupation time when :math:`X_k > 0`.
    * Step :math:`k` is a zero crossing when :math:`X_{k-1} X_k \le 0`; the last
      one wins. Step 1 always qualifies because :math:`X_0 = 0`.
    * The maximum is tracked with a strict inequality from 0, so ties keep the
      earliest step and a path that never goes above 0 reports 0.

    Examples
    --------
    >>> arcsine_statistics(np.array([1.0, -1.0, 2.0, 2.0]), 0.25, 1.0)
    (0.75, 0.75, 0.75)
    """
    n = values.size
    if n == 0:
        return 0.0, 0.0, 0.0
    prev = np.empty_like(values)
    prev[0] = 0.0
    prev[1:] = values[:-1]

    time_above = step_size * np.count_nonzero(values > 0)

    crossings = np.flatnonzero(prev * values <= 0)
    last_zero = (int(crossings[-1]) + 1) * step_size if crossings.size else 0.0

    k = int(np.argmax(values))
    time_of_max = (k + 1) * step_size if values[k] > 0 else 0.0

    return (
        min(1.0, time_above / horizon),
        min(1.0, last_zero / horizon),
        min(1.0, time_of_max / horizon),
    )


class ArcsineSimulation(PathSimulation):
    r"""
    Sample the three arcsine statistics over many driftless paths.

    Drift is always 0 and volatility 1, whatever the caller uses elsewhere.
    Unlike :class:`~brownianmc.sims.first_passage.FirstPassageSimulation`, every
    path runs to the horizon: the crossings and the maximum depend on the whole
    trajectory.

    Example
    -------
    >>> sim = ArcsineSimulation()
    >>> sim.set_seed(3)
    >>> res = sim.run(ArcsineConfig(path_count=1000))  # doctest: +SKIP
    >>> res.occupation_fraction.shape  # doctest: +SKIP
    (1000,)
    """

    n_outputs = 3

    def __init__(self, name: str = "Arcsine Laws"):
        super().__init__(name)

    def simulate_path(  # pylint: disable=arguments-differ
        self,
        rng: Generator,
        record: bool = False,
        *,
        step_size: float = 0.001,
        step_count: int = 1000,
        horizon: float = 1.0,
        **kwargs: Any,
    ) -> tuple[tuple[float, float, float], Optional[PathSample]]:
        """Simulate one standard Brownian path and return its three statistics."""
        integrator = PathIntegrator(0.0, 1.0, step_size, GaussianSampler(rng))
        values = integrator.advance(0.0, step_count)
        stats = arcsine_statistics(values, step_size, horizon)
        path = None
        if record:
            full = np.concatenate([np.zeros(1), values])
            path = PathSample(times=np.arange(full.size) * step_size, values=full)
        return stats, path

    def run(  # pylint: disable=arguments-differ
        self,
        config: ArcsineConfig | Mapping[str, Any] | int | None = None,
        *,
        seed: int | None = None,
        backend: str | None = None,
        n_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ArcsineResult:
        r"""
        Run the arcsine experiment.

        Parameters
        ----------
        config : ArcsineConfig, mapping or int, optional
            An int is taken as the path count with default step and horizon.
        seed, backend, n_workers, progress_callback, cancel_token :
            As for :meth:`FirstPassageSimulation.run`.

        Returns
        -------
        ArcsineResult
            Empty arrays when ``path_count == 0``.

        Raises
        ------
        ConfigurationError
            For a negative path count or non-positive step size or horizon.
        """
        config = _coerce_config(config)
        if seed is not None:
            self.set_seed(seed)
        outputs, _, exec_time, meta = self._execute(
            config.path_count,
            backend=backend,
            n_workers=n_workers,
            progress_callback=progress_callback,
            cancel_token=cancel_token,
            step_size=config.step_size,
            step_count=config.step_count,
            horizon=config.horizon,
        )
        meta["step_count"] = config.step_count
        return ArcsineResult(
            occupation_fraction=outputs[:, 0],
            last_zero_fraction=outputs[:, 1],
            max_time_fraction=outputs[:, 2],
            path_count=config.path_count,
            horizon=config.horizon,
            step_size=config.step_size,
            execution_time=exec_time,
            metadata=meta,
        )


def _coerce_config(config: ArcsineConfig | Mapping[str, Any] | int | None) -> ArcsineConfig:
    if config is None:
        return ArcsineConfig()
    if isinstance(config, ArcsineConfig):
        return config
    if isinstance(config, Mapping):
        return ArcsineConfig.from_mapping(config)
    if isinstance(config, (int, np.integer)) and not isinstance(config, bool):
        return ArcsineConfig(path_count=int(config))
    raise ConfigurationError(f"Expected ArcsineConfig, mapping or int, got {type(config).__name__}")


def run_arcsine_laws(
    path_count: int = 5000,
    step_size: float = 0.001,
    horizon: float = 1.0,
    *,
    seed: int | None = None,
    **kwargs: Any,
) -> ArcsineResult:
    r"""
    Run an arcsine experiment with a fresh :class:`ArcsineSimulation`.

    Parameters
    ----------
    path_count : int, default 5000
        Number of paths; 0 returns empty statistics.
    step_size : float, default 0.001
        Discretization width.
    horizon : float, default 1.0
        Time limit.
    seed : int, optional
        Makes the run reproducible.
    **kwargs :
        Forwarded to :meth:`ArcsineSimulation.run`.
    """
    config = ArcsineConfig(path_count=path_count, step_size=step_size, horizon=horizon)
    return ArcsineSimulation().run(config, seed=seed, **kwargs)
