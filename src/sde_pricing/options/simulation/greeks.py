"""
Monte Carlo Greeks for the European call.

Pathwise (likelihood-free) estimators differentiate the discounted payoff
along each simulated path. Every path uses the first normal of its stream,
S_T = S_0 exp((r - σ²/2)T + σ√T Z), so the estimators share their random
numbers with each other and with a bumped run.

[T1] Delta: e^(-rT) E[1{S_T > K} S_T / S_0]
[T1] Vega:  e^(-rT) E[1{S_T > K} S_T (-σT + W_T)],  W_T = √T Z
[T1] Rho:   e^(-rT) E[-T max(S_T - K, 0) + 1{S_T > K} S_T T]
[T1] Gamma: (Δ(S_0 + ε) - Δ(S_0 - ε)) / 2ε with common random numbers

With antithetic sampling the per-path value is averaged over Z and -Z.
Other payoffs are not supported by the pathwise formulas and return 0.0.

See: Glasserman (2003) "Monte Carlo Methods in Financial Engineering", Ch. 7
"""

import logging
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable

import numpy as np

from sde_pricing.config.settings import SETTINGS, Settings
from sde_pricing.options.payoffs.base import PayoffKind
from sde_pricing.options.simulation.gbm import GBMParams, terminal_from_normals
from sde_pricing.options.simulation.monte_carlo import Greeks, SimulationConfig
from sde_pricing.options.simulation.parallel import Chunk, map_chunks, plan_chunks, reduce_in_order
from sde_pricing.options.simulation.streams import StreamBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GreeksResult:
    """
    Greeks requested through SimulationConfig.greeks.

    Attributes
    ----------
    delta, vega, rho, gamma : float, optional
        None when not requested
    """

    delta: float | None = None
    vega: float | None = None
    rho: float | None = None
    gamma: float | None = None


# =============================================================================
# Per-path estimators
# =============================================================================


def _delta_samples(params: GBMParams, strike: float, z: np.ndarray) -> np.ndarray:
    s_t = terminal_from_normals(params, z)
    return np.where(s_t > strike, s_t / params.spot, 0.0)


def _vega_samples(params: GBMParams, strike: float, z: np.ndarray) -> np.ndarray:
    t = params.time_to_expiry
    s_t = terminal_from_normals(params, z)
    return np.where(s_t > strike, s_t * (-params.volatility * t + np.sqrt(t) * z), 0.0)


def _rho_samples(params: GBMParams, strike: float, z: np.ndarray) -> np.ndarray:
    t = params.time_to_expiry
    s_t = terminal_from_normals(params, z)
    in_the_money = s_t > strike
    return -t * np.maximum(s_t - strike, 0.0) + np.where(in_the_money, s_t * t, 0.0)


_ESTIMATORS: dict[str, Callable[[GBMParams, float, np.ndarray], np.ndarray]] = {
    "delta": _delta_samples,
    "vega": _vega_samples,
    "rho": _rho_samples,
}


def _first_normals(config: SimulationConfig, chunk: Chunk) -> np.ndarray:
    return StreamBatch(config.seed, chunk.start, chunk.stop).standard_normal(1)[:, 0]


def _sample_sum(
    estimator: Callable[[GBMParams, float, np.ndarray], np.ndarray],
    params: GBMParams,
    strike: float,
    antithetic: bool,
    z: np.ndarray,
) -> float:
    values = estimator(params, strike, z)
    if antithetic:
        values = 0.5 * (values + estimator(params, strike, -z))
    return float(values.sum())


def _pathwise_chunk(config: SimulationConfig, greek: str, chunk: Chunk) -> float:
    z = _first_normals(config, chunk)
    return _sample_sum(_ESTIMATORS[greek], config.gbm_params, config.payoff.strike, config.antithetic, z)


def _bumped_delta_chunk(config: SimulationConfig, bump: float, chunk: Chunk) -> np.ndarray:
    z = _first_normals(config, chunk)
    up = replace(config.gbm_params, spot=config.spot + bump)
    down = replace(config.gbm_params, spot=config.spot - bump)
    strike = config.payoff.strike
    return np.array(
        [
            _sample_sum(_delta_samples, up, strike, config.antithetic, z),
            _sample_sum(_delta_samples, down, strike, config.antithetic, z),
        ]
    )


def _supported(config: SimulationConfig, greek: str) -> bool:
    if config.payoff.kind is PayoffKind.EUROPEAN_CALL:
        return True
    logger.debug(f"{greek}: no pathwise estimator for {config.payoff.kind.value}, returning 0.0")
    return False


def _pathwise(config: SimulationConfig, greek: str, n_workers: int | None, settings: Settings) -> float:
    config.validate(settings)
    if not _supported(config, greek):
        return 0.0
    workers = settings.engine.workers if n_workers is None else n_workers
    chunks = plan_chunks(config.n_paths, 1, settings.engine)
    total = reduce_in_order(map_chunks(partial(_pathwise_chunk, config, greek), chunks, workers), 0.0)
    return config.discount_factor * total / config.n_paths


# =============================================================================
# Public estimators
# =============================================================================


def delta_pathwise(config: SimulationConfig, n_workers: int | None = None, settings: Settings = SETTINGS) -> float:
    """
    Pathwise delta of a European call.

    Parameters
    ----------
    config : SimulationConfig
        Run description (n_steps is ignored: one terminal draw per path)
    n_workers : int, optional
        Worker processes
    settings : Settings
        Engine limits

    Returns
    -------
    float
        dV/dS_0, or 0.0 for payoffs other than the European call
    """
    return _pathwise(config, "delta", n_workers, settings)


def vega_pathwise(config: SimulationConfig, n_workers: int | None = None, settings: Settings = SETTINGS) -> float:
    """Pathwise vega of a European call (per unit volatility)."""
    return _pathwise(config, "vega", n_workers, settings)


def rho_pathwise(config: SimulationConfig, n_workers: int | None = None, settings: Settings = SETTINGS) -> float:
    """Pathwise rho of a European call (per unit rate)."""
    return _pathwise(config, "rho", n_workers, settings)


def gamma_finite_difference(
    config: SimulationConfig,
    n_workers: int | None = None,
    settings: Settings = SETTINGS,
) -> float:
    """
    Central finite-difference gamma from two pathwise deltas.

    Both deltas run with the same seed, so every path index sees the same
    normal in the up and down runs (common random numbers).

    Returns
    -------
    float
        (Δ(S_0 + ε) - Δ(S_0 - ε)) / 2ε, ε = config.gamma_bump
    """
    config.validate(settings)
    if not _supported(config, "gamma"):
        return 0.0
    bump = config.gamma_bump
    delta_up = delta_pathwise(replace(config, spot=config.spot + bump, bump=None), n_workers, settings)
    delta_down = delta_pathwise(replace(config, spot=config.spot - bump, bump=None), n_workers, settings)
    return (delta_up - delta_down) / (2.0 * bump)


def gamma_finite_difference_batched(
    config: SimulationConfig,
    n_workers: int | None = None,
    settings: Settings = SETTINGS,
) -> float:
    """
    Finite-difference gamma with both bumped deltas from one pass.

    Each path draws its normal once and evaluates the up and down deltas on
    it; the result equals gamma_finite_difference() for the same config.
    """
    config.validate(settings)
    if not _supported(config, "gamma"):
        return 0.0
    bump = config.gamma_bump
    workers = settings.engine.workers if n_workers is None else n_workers
    chunks = plan_chunks(config.n_paths, 1, settings.engine)
    sums = reduce_in_order(map_chunks(partial(_bumped_delta_chunk, config, bump), chunks, workers), np.zeros(2))

    delta_up = config.discount_factor * sums[0] / config.n_paths
    delta_down = config.discount_factor * sums[1] / config.n_paths
    return (delta_up - delta_down) / (2.0 * bump)


def compute_greeks(config: SimulationConfig, n_workers: int | None = None, settings: Settings = SETTINGS) -> GreeksResult:
    """
    Evaluate the Greeks selected by config.greeks.

    Examples
    --------
    >>> config = SimulationConfig.default(n_paths=100_000, greeks=Greeks.DELTA | Greeks.GAMMA)
    >>> result = compute_greeks(config)
    >>> result.vega is None
    True
    """
    config.validate(settings)
    requested = config.greeks
    return GreeksResult(
        delta=delta_pathwise(config, n_workers, settings) if Greeks.DELTA in requested else None,
        vega=vega_pathwise(config, n_workers, settings) if Greeks.VEGA in requested else None,
        rho=rho_pathwise(config, n_workers, settings) if Greeks.RHO in requested else None,
        gamma=gamma_finite_difference_batched(config, n_workers, settings) if Greeks.GAMMA in requested else None,
    )
