"""
Monte Carlo pricing engine with antithetic and control variates.

Each path index i draws from its own stream (seed, i), follows the exact
lognormal GBM update, and contributes one sample. Paths are processed in
fixed chunks (see parallel.py) and every chunk returns six running sums:

    Σ payoff, Σ control, Σ payoff·control, Σ control², Σ expectation, Σ payoff²

[T1] Antithetic variates: the mirror trajectory is driven by the same
     normals with the sign flipped; payoff and control are averaged into a
     single sample per path index.
[T1] Control variates: European call on the terminal price, whose expected
     (undiscounted) payoff is the Black-Scholes price grown at r. Applies to
     European and Asian calls. b* = Cov(payoff, control) / Var(control).
[T1] With control variates a second pass re-simulates the same streams to
     accumulate the residuals Y = e^(-rT)(payoff - b(control - E)); the
     variance of the mean is Σ(Y - Ȳ)² / (n(n - 1)).

See: Glasserman (2003) "Monte Carlo Methods in Financial Engineering", Ch. 4
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Flag, auto
from functools import partial
from typing import Sequence

import numpy as np

from sde_pricing.config.settings import SETTINGS, Settings
from sde_pricing.config.tolerances import (
    CONTROL_VARIANCE_FLOOR,
    DEFAULT_BUMP_FRACTION,
    MAX_BUMP_FRACTION,
    NEGATIVE_VARIANCE_TOLERANCE,
)
from sde_pricing.errors import InvalidParameterError, NumericalInstabilityError
from sde_pricing.options.payoffs.base import Payoff, PayoffKind
from sde_pricing.options.pricing.black_scholes import call_price
from sde_pricing.options.simulation.gbm import GBMParams, paths_from_normals
from sde_pricing.options.simulation.parallel import Chunk, map_chunks, plan_chunks, reduce_in_order
from sde_pricing.options.simulation.streams import StreamBatch
from sde_pricing.validation.guards import (
    validate_finite,
    validate_paths,
    validate_positive,
    validate_seed,
    validate_steps,
)

logger = logging.getLogger(__name__)

_N_SUMS = 6


class Greeks(Flag):
    """Greeks requested from compute_greeks(); members combine with |."""

    NONE = 0
    DELTA = auto()
    VEGA = auto()
    RHO = auto()
    GAMMA = auto()
    ALL = DELTA | VEGA | RHO | GAMMA


@dataclass(frozen=True)
class SimulationConfig:
    """
    Immutable description of one Monte Carlo run.

    Construction does not validate; validate() is called by every engine
    and Greeks entry point before any path is simulated.

    Attributes
    ----------
    n_paths : int
        Number of path indices (antithetic pairs count once)
    n_steps : int
        Time steps per path
    spot : float
        Initial spot price
    rate : float
        Risk-free rate (continuously compounded)
    volatility : float
        Black-Scholes volatility
    time_to_expiry : float
        Maturity in years
    seed : int
        Run seed, unsigned 64-bit
    payoff : Payoff
        Payoff to price
    antithetic : bool
        Average each path with its sign-flipped mirror
    control_variate : bool
        Use the European-call control where the payoff admits it
    greeks : Greeks
        Greeks evaluated by compute_greeks()
    bump : float, optional
        Spot bump for finite-difference gamma; 0.1% of spot when None
    """

    n_paths: int
    n_steps: int
    spot: float
    rate: float
    volatility: float
    time_to_expiry: float
    seed: int
    payoff: Payoff
    antithetic: bool = True
    control_variate: bool = True
    greeks: Greeks = Greeks.NONE
    bump: float | None = None

    @classmethod
    def default(cls, payoff: Payoff | None = None, settings: Settings = SETTINGS, **overrides) -> "SimulationConfig":
        """
        Config built from settings.simulation defaults.

        Examples
        --------
        >>> SimulationConfig.default(n_paths=1000).payoff.strike
        100.0
        """
        d = settings.simulation
        config = cls(
            n_paths=d.n_paths,
            n_steps=d.n_steps,
            spot=d.spot,
            rate=d.rate,
            volatility=d.volatility,
            time_to_expiry=d.time_to_expiry,
            seed=d.seed,
            payoff=payoff if payoff is not None else Payoff.european_call(d.spot),
            antithetic=d.antithetic,
            control_variate=d.control_variate,
        )
        return replace(config, **overrides)

    def validate(self, settings: Settings = SETTINGS) -> "SimulationConfig":
        """
        Check every field and return self.

        Raises
        ------
        InvalidConfigurationError
            If n_paths or n_steps is zero or above its limit
        InvalidParameterError
            If a market parameter, the seed, the payoff or the bump is invalid
        """
        validate_paths(self.n_paths, settings.simulation.max_paths)
        validate_steps(self.n_steps, settings.simulation.max_steps)
        validate_positive("spot", self.spot)
        validate_finite("rate", self.rate)
        validate_positive("volatility", self.volatility)
        validate_positive("time_to_expiry", self.time_to_expiry)
        validate_seed(self.seed)
        if not isinstance(self.payoff, Payoff):
            raise InvalidParameterError("payoff", self.payoff, "a Payoff")
        if not isinstance(self.greeks, Greeks):
            raise InvalidParameterError("greeks", self.greeks, "a Greeks flag")
        if self.bump is not None:
            limit = MAX_BUMP_FRACTION * self.spot
            if not math.isfinite(self.bump) or self.bump <= 0.0 or self.bump > limit:
                raise InvalidParameterError("bump", self.bump, f"in (0, {limit}]")
        return self

    @property
    def gbm_params(self) -> GBMParams:
        return GBMParams(
            spot=self.spot,
            rate=self.rate,
            volatility=self.volatility,
            time_to_expiry=self.time_to_expiry,
        )

    @property
    def discount_factor(self) -> float:
        """exp(-r*T)."""
        return math.exp(-self.rate * self.time_to_expiry)

    @property
    def gamma_bump(self) -> float:
        """Spot bump used by finite-difference gamma."""
        if self.bump is not None:
            return self.bump
        return DEFAULT_BUMP_FRACTION * self.spot


@dataclass(frozen=True)
class PriceEstimate:
    """
    Monte Carlo price with its sampling variance.

    Attributes
    ----------
    price : float
        Discounted price estimate
    variance : float
        Sampling variance of the estimate (>= 0); standard_error²
    n_paths : int
        Path indices used
    """

    price: float
    variance: float
    n_paths: int

    def __post_init__(self) -> None:
        """Reject impossible estimates."""
        if not math.isfinite(self.price):
            raise NumericalInstabilityError("PriceEstimate", f"price is {self.price}")
        if not math.isfinite(self.variance) or self.variance < 0.0:
            raise NumericalInstabilityError("PriceEstimate", f"variance is {self.variance}")

    @property
    def standard_error(self) -> float:
        return math.sqrt(self.variance)

    @property
    def confidence_interval(self) -> tuple[float, float]:
        """95% confidence interval (z = 1.96)."""
        half_width = 1.96 * self.standard_error
        return (self.price - half_width, self.price + half_width)

    @property
    def relative_error(self) -> float:
        """Relative standard error (SE / price)."""
        if abs(self.price) < 1e-10:
            return float("inf")
        return self.standard_error / abs(self.price)

    def as_tuple(self) -> tuple[float, float]:
        """(price, variance)."""
        return (self.price, self.variance)


# =============================================================================
# Chunk tasks (module level so they pickle for worker processes)
# =============================================================================


def has_control_variate(payoff: Payoff) -> bool:
    """Whether the European-call control applies to payoff."""
    return payoff.kind in (PayoffKind.EUROPEAN_CALL, PayoffKind.ASIAN_CALL)


def control_expectation(config: SimulationConfig) -> float:
    """
    Undiscounted expected value of the control, E[max(S_T - K, 0)].

    [T1] E = C_BS * e^(rT)
    """
    bs = call_price(config.spot, config.payoff.strike, config.rate, config.volatility, config.time_to_expiry)
    return bs * math.exp(config.rate * config.time_to_expiry)


def _control_values(payoff: Payoff, paths: np.ndarray) -> np.ndarray:
    return np.maximum(paths[:, -1] - payoff.strike, 0.0)


def chunk_samples(
    config: SimulationConfig,
    chunk: Chunk,
    use_control: bool,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Per-path payoff and control samples for one chunk.

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        (payoffs, controls), each of shape (chunk.n_paths,); controls are
        zero when use_control is False
    """
    params = config.gbm_params
    normals = StreamBatch(config.seed, chunk.start, chunk.stop).standard_normal(config.n_steps)

    paths = paths_from_normals(params, normals)
    payoffs = config.payoff.evaluate(paths)
    controls = _control_values(config.payoff, paths) if use_control else np.zeros(chunk.n_paths)

    if config.antithetic:
        mirror = paths_from_normals(params, -normals)
        payoffs = 0.5 * (payoffs + config.payoff.evaluate(mirror))
        if use_control:
            controls = 0.5 * (controls + _control_values(config.payoff, mirror))

    return payoffs, controls


def _moment_sums(
    config: SimulationConfig,
    use_control: bool,
    expectation: float,
    chunk: Chunk,
) -> np.ndarray:
    payoffs, controls = chunk_samples(config, chunk, use_control)
    return np.array(
        [
            payoffs.sum(),
            controls.sum(),
            (payoffs * controls).sum(),
            (controls * controls).sum(),
            expectation * chunk.n_paths,
            _within_sum_of_squares(payoffs),
        ]
    )


def _residual_sums(
    config: SimulationConfig,
    beta: float,
    expectation: float,
    center: float,
    chunk: Chunk,
) -> np.ndarray:
    payoffs, controls = chunk_samples(config, chunk, True)
    adjusted = config.discount_factor * (payoffs - beta * (controls - expectation))
    deviations = adjusted - center
    return np.array([adjusted.sum(), (deviations * deviations).sum()])


def _within_sum_of_squares(values: np.ndarray) -> float:
    deviations = values - values.mean()
    return float((deviations * deviations).sum())


def pooled_sum_of_squares(chunk_sums: Sequence[np.ndarray], chunks: Sequence[Chunk], mean: float) -> float:
    """
    Sum of squared deviations about the overall mean, assembled per chunk.

    Each entry of chunk_sums holds the chunk payoff sum first and the sum of
    squares about the chunk mean last.

    [T1] Σ(p - p̄)² = Σ_c Σ(p - p̄_c)² + Σ_c n_c (p̄_c - p̄)²

    Every term is centred, so large nearly constant payoffs do not cancel
    the way Σp² - n p̄² does. Chunks are visited in order, so the result
    does not depend on the worker count.
    """
    total = 0.0
    for values, chunk in zip(chunk_sums, chunks):
        gap = values[0] / chunk.n_paths - mean
        total += float(values[-1]) + chunk.n_paths * gap * gap
    return total


def checked_variance(method: str, variance: float) -> float:
    """
    Clamp round-off negatives to zero and reject everything else impossible.

    Raises
    ------
    NumericalInstabilityError
        If variance is not finite or below -NEGATIVE_VARIANCE_TOLERANCE
    """
    if not math.isfinite(variance):
        raise NumericalInstabilityError(method, f"variance is {variance}")
    if variance < -NEGATIVE_VARIANCE_TOLERANCE:
        raise NumericalInstabilityError(method, f"negative variance {variance:.3e}")
    return max(variance, 0.0)


# =============================================================================
# Engine
# =============================================================================


class MonteCarloEngine:
    """
    Parallel Monte Carlo pricing engine.

    Parameters
    ----------
    n_workers : int, optional
        Worker processes; defaults to settings.engine.workers
    settings : Settings
        Engine limits and defaults

    Examples
    --------
    >>> config = SimulationConfig.default(n_paths=100_000)
    >>> estimate = MonteCarloEngine(n_workers=1).price(config)
    >>> print(f"Price: {estimate.price:.4f} ± {estimate.standard_error:.4f}")
    """

    def __init__(self, n_workers: int | None = None, settings: Settings = SETTINGS):
        if n_workers is None:
            n_workers = settings.engine.workers
        if n_workers < 1:
            raise ValueError(f"CRITICAL: n_workers must be >= 1, got {n_workers}")
        self.n_workers = n_workers
        self.settings = settings

    def price(self, config: SimulationConfig) -> PriceEstimate:
        """
        Price config.payoff.

        Parameters
        ----------
        config : SimulationConfig
            Run description; validated before simulation

        Returns
        -------
        PriceEstimate
            Discounted price and sampling variance of the estimate

        Raises
        ------
        InvalidConfigurationError, InvalidParameterError
            If config is invalid
        NumericalInstabilityError
            If the price or the variance is not finite, or the variance is
            negative beyond round-off
        """
        config.validate(self.settings)
        n = config.n_paths
        chunks = plan_chunks(n, config.n_steps, self.settings.engine)
        use_control = config.control_variate and has_control_variate(config.payoff)
        expectation = control_expectation(config) if use_control else 0.0

        logger.debug(
            f"Pricing {config.payoff.kind.value}: {n} paths x {config.n_steps} steps, "
            f"{len(chunks)} chunks, antithetic={config.antithetic}, control={use_control}"
        )

        chunk_sums = map_chunks(partial(_moment_sums, config, use_control, expectation), chunks, self.n_workers)
        sums = reduce_in_order(chunk_sums, np.zeros(_N_SUMS))
        discount = config.discount_factor
        mean_payoff = sums[0] / n

        if use_control:
            mean_control = sums[1] / n
            mean_expectation = sums[4] / n
            control_var = sums[3] / n - mean_control**2
            covariance = sums[2] / n - mean_payoff * mean_control
            beta = covariance / control_var if control_var > CONTROL_VARIANCE_FLOOR else 0.0
            estimate = discount * (mean_payoff - beta * (mean_control - mean_expectation))

            if n > 1:
                residuals = reduce_in_order(
                    map_chunks(
                        partial(_residual_sums, config, beta, expectation, estimate),
                        chunks,
                        self.n_workers,
                    ),
                    np.zeros(2),
                )
                shift = residuals[0] / n - estimate
                variance = (residuals[1] - n * shift**2) / (n * (n - 1))
            else:
                variance = 0.0
            logger.debug(f"Control coefficient b={beta:.6f}")
        else:
            estimate = discount * mean_payoff
            if n > 1:
                spread = pooled_sum_of_squares(chunk_sums, chunks, mean_payoff)
                variance = spread * discount**2 / (n * (n - 1))
            else:
                variance = 0.0

        if not math.isfinite(estimate):
            raise NumericalInstabilityError("monte_carlo", f"price is {estimate}")
        variance = checked_variance("monte_carlo", float(variance))

        result = PriceEstimate(price=float(estimate), variance=variance, n_paths=n)
        logger.debug(f"Price {result.price:.6f} (SE {result.standard_error:.3e})")
        return result


def price(config: SimulationConfig, n_workers: int | None = None) -> PriceEstimate:
    """
    Convenience wrapper: MonteCarloEngine(n_workers).price(config).

    Examples
    --------
    >>> from sde_pricing import Payoff, SimulationConfig, price
    >>> estimate = price(SimulationConfig.default(Payoff.asian_call(100.0), n_paths=50_000, n_steps=12))
    """
    return MonteCarloEngine(n_workers=n_workers).price(config)


# =============================================================================
# Convergence
# =============================================================================


def convergence_analysis(
    config: SimulationConfig,
    analytical_price: float,
    path_counts: list[int] = [1_000, 5_000, 10_000, 50_000, 100_000],
    n_workers: int | None = None,
) -> dict:
    """
    Analyze MC convergence to an analytical price.

    [T1] MC error should converge at rate 1/√N.

    Parameters
    ----------
    config : SimulationConfig
        Base run; n_paths is replaced by each entry of path_counts
    analytical_price : float
        Reference price
    path_counts : list[int]
        Number of paths to test
    n_workers : int, optional
        Worker processes

    Returns
    -------
    dict
        Per-count results and the fitted convergence rate
    """
    engine = MonteCarloEngine(n_workers=n_workers)
    results = []

    for n in path_counts:
        estimate = engine.price(replace(config, n_paths=n))
        error = abs(estimate.price - analytical_price)
        low, high = estimate.confidence_interval

        results.append(
            {
                "n_paths": n,
                "mc_price": estimate.price,
                "analytical_price": analytical_price,
                "absolute_error": error,
                "relative_error": error / analytical_price if analytical_price > 0 else float("inf"),
                "standard_error": estimate.standard_error,
                "within_ci": low <= analytical_price <= high,
            }
        )

    return {
        "results": results,
        "convergence_rate": _estimate_convergence_rate(results),
    }


def _estimate_convergence_rate(results: list[dict]) -> float:
    """
    Slope of log(standard error) against log(N).

    [T1] Theory predicts rate = -0.5 (error ~ 1/√N). The standard error is
    used instead of the realized error, which is too noisy for a fit.
    """
    log_n = np.log([r["n_paths"] for r in results])
    log_error = np.log([r["standard_error"] + 1e-12 for r in results])

    n = len(log_n)
    slope = (n * np.sum(log_n * log_error) - np.sum(log_n) * np.sum(log_error)) / (
        n * np.sum(log_n**2) - np.sum(log_n) ** 2
    )
    return float(slope)
