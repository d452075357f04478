"""
Heston stochastic volatility path stepping.

One time step advances a (spot, variance) pair with one of three
discretization schemes:

- Full Truncation Euler (Lord, Koekkoek & van Dijk 2010): Euler on the
  variance with negative values truncated inside drift and diffusion
- Andersen QE (Andersen 2008): moment-matched quadratic or exponential law
  for the next variance, spot from the K0..K4 scheme with the martingale
  correction
- Alfonsi (2010): Milstein-type variance update floored at zero, spot driven
  by the average of the old and new volatility

[T1] Heston SDEs:
  dS = r S dt + sqrt(v) S dW1
  dv = kappa(theta - v) dt + xi sqrt(v) dW2
  dW1 dW2 = rho dt

Shocks per step: Z1, Z2 independent standard normals from the path's stream,
Z_S = Z1 and Z_V = rho Z1 + sqrt(1 - rho²) Z2.

Python floats are immutable, so step() returns the new (spot, variance)
pair instead of updating its arguments.

References
----------
[T1] Andersen, L. B. G. (2008). Simple and efficient simulation of the Heston
     stochastic volatility model. Journal of Computational Finance, 11(3), 1-42.
[T1] Lord, R., Koekkoek, R., & van Dijk, D. (2010). A comparison of biased
     simulation schemes for stochastic volatility models. Quantitative Finance.
[T1] Alfonsi, A. (2010). High order discretization schemes for the CIR process.
     Mathematics of Computation, 79(269), 209-237.
"""

import logging
import math
import warnings
from dataclasses import dataclass
from enum import Enum
from functools import partial

import numpy as np

from sde_pricing.config.settings import SETTINGS, Settings
from sde_pricing.config.tolerances import QE_PSI_CRITICAL
from sde_pricing.errors import (
    FellerConditionError,
    FellerConditionWarning,
    InvalidParameterError,
    NumericalInstabilityError,
)
from sde_pricing.options.payoffs.base import Payoff
from sde_pricing.options.pricing.heston import HestonParameters, cir_moments
from sde_pricing.options.simulation.monte_carlo import PriceEstimate, checked_variance, pooled_sum_of_squares
from sde_pricing.options.simulation.parallel import Chunk, map_chunks, plan_chunks, reduce_in_order
from sde_pricing.options.simulation.streams import RandomStream, stream_for
from sde_pricing.validation.guards import validate_paths, validate_positive, validate_seed, validate_steps

logger = logging.getLogger(__name__)


class HestonScheme(Enum):
    """Variance discretization schemes."""

    FULL_TRUNCATION_EULER = "full_truncation_euler"
    ANDERSEN_QE = "andersen_qe"
    ALFONSI = "alfonsi"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    HestonScheme.FULL_TRUNCATION_EULER: "Full Truncation Euler",
    HestonScheme.ANDERSEN_QE: "Andersen QE",
    HestonScheme.ALFONSI: "Alfonsi",
}


# =============================================================================
# Scheme steps
# =============================================================================


def full_truncation_euler_step(
    params: HestonParameters,
    spot: float,
    variance: float,
    dt: float,
    z1: float,
    z2: float,
    stream: RandomStream,
) -> tuple[float, float]:
    """
    [T1] v⁺ = max(v, 0)
         v' = max(0, v + kappa(theta - v⁺)dt + xi sqrt(v⁺ dt) Z_V)
         ln S' = ln S + (r - v⁺/2)dt + sqrt(v⁺ dt) Z_S
    """
    z_v = params.rho * z1 + math.sqrt(1.0 - params.rho**2) * z2
    v_plus = max(variance, 0.0)
    sqrt_v_dt = math.sqrt(v_plus * dt)

    new_variance = max(
        0.0,
        variance + params.kappa * (params.theta - v_plus) * dt + params.xi * sqrt_v_dt * z_v,
    )
    new_spot = spot * math.exp((params.rate - 0.5 * v_plus) * dt + sqrt_v_dt * z1)
    return new_spot, new_variance


def andersen_qe_step(
    params: HestonParameters,
    spot: float,
    variance: float,
    dt: float,
    z1: float,
    z2: float,
    stream: RandomStream,
) -> tuple[float, float]:
    """
    Andersen (2008) quadratic-exponential step with martingale correction.

    [T1] m, s² = conditional CIR mean and variance, psi = s²/m²
    [T1] psi <= 1.5: b² = 2/psi - 1 + sqrt(2/psi) sqrt(2/psi - 1),
         a = m / (1 + b²), v' = a (b + Z_V)²
    [T1] psi > 1.5: p = (psi - 1)/(psi + 1), beta = (1 - p)/m,
         v' = 0 if U <= p else ln((1 - p)/(1 - U)) / beta
    [T1] ln S' = ln S + r dt + K0* + K1 v + K2 v' + sqrt(K3 v + K4 v') Z⊥
         with gamma1 = gamma2 = 1/2 and Z⊥ independent of Z_V
    """
    kappa, theta, xi, rho = params.kappa, params.theta, params.xi, params.rho
    rho_bar = math.sqrt(1.0 - rho**2)
    z_v = rho * z1 + rho_bar * z2
    z_perp = rho_bar * z1 - rho * z2

    m, s2 = cir_moments(params, dt, v0=variance)
    psi = s2 / (m * m)

    k0 = -rho * kappa * theta * dt / xi
    k1 = 0.5 * dt * (kappa * rho / xi - 0.5) - rho / xi
    k2 = 0.5 * dt * (kappa * rho / xi - 0.5) + rho / xi
    k3 = 0.5 * dt * (1.0 - rho**2)
    k4 = k3
    big_a = k2 + 0.5 * k4

    if psi <= QE_PSI_CRITICAL:
        two_over_psi = 2.0 / psi
        b2 = two_over_psi - 1.0 + math.sqrt(two_over_psi) * math.sqrt(two_over_psi - 1.0)
        a = m / (1.0 + b2)
        new_variance = a * (math.sqrt(b2) + z_v) ** 2
        if big_a < 1.0 / (2.0 * a):
            k0 = (
                -big_a * b2 * a / (1.0 - 2.0 * big_a * a)
                + 0.5 * math.log(1.0 - 2.0 * big_a * a)
                - (k1 + 0.5 * k3) * variance
            )
    else:
        p = (psi - 1.0) / (psi + 1.0)
        beta = (1.0 - p) / m
        u = stream.uniform()
        new_variance = 0.0 if u <= p else math.log((1.0 - p) / (1.0 - u)) / beta
        if big_a < beta:
            k0 = -math.log(p + beta * (1.0 - p) / (beta - big_a)) - (k1 + 0.5 * k3) * variance

    log_increment = (
        params.rate * dt
        + k0
        + k1 * variance
        + k2 * new_variance
        + math.sqrt(k3 * variance + k4 * new_variance) * z_perp
    )
    return spot * math.exp(log_increment), new_variance


def alfonsi_step(
    params: HestonParameters,
    spot: float,
    variance: float,
    dt: float,
    z1: float,
    z2: float,
    stream: RandomStream,
) -> tuple[float, float]:
    """
    Alfonsi-style variance step with an averaged-volatility spot update.

    [T1] ΔW = sqrt(dt) Z_V
         v' = max(0, v + kappa(theta - v)dt + xi sqrt(v) ΔW + xi²(ΔW² - dt)/4)
         σ̄ = (sqrt(v) + sqrt(v'))/2
    [T1] ln S' = ln S + (r - σ̄²/2)dt
                 + (rho/xi)(v' - v - kappa(theta - (v + v')/2)dt)
                 + σ̄ sqrt(1 - rho²) sqrt(dt) Z⊥
         with Z⊥ independent of Z_V

    The correlated part of the spot shock is read off the variance increment,
    so σ̄ only multiplies the shock that is independent of v'.
    """
    kappa, theta, xi, rho = params.kappa, params.theta, params.xi, params.rho
    rho_bar = math.sqrt(1.0 - rho**2)
    z_v = rho * z1 + rho_bar * z2
    z_perp = rho_bar * z1 - rho * z2
    sqrt_dt = math.sqrt(dt)
    dw = sqrt_dt * z_v
    sqrt_v = math.sqrt(variance)

    new_variance = max(
        0.0,
        variance
        + kappa * (theta - variance) * dt
        + xi * sqrt_v * dw
        + 0.25 * xi**2 * (dw * dw - dt),
    )
    sigma_bar = 0.5 * (sqrt_v + math.sqrt(new_variance))
    correlated = (rho / xi) * (
        new_variance - variance - kappa * (theta - 0.5 * (variance + new_variance)) * dt
    )
    log_increment = (
        (params.rate - 0.5 * sigma_bar**2) * dt
        + correlated
        + sigma_bar * rho_bar * sqrt_dt * z_perp
    )
    return spot * math.exp(log_increment), new_variance


_STEPS = {
    HestonScheme.FULL_TRUNCATION_EULER: full_truncation_euler_step,
    HestonScheme.ANDERSEN_QE: andersen_qe_step,
    HestonScheme.ALFONSI: alfonsi_step,
}


# =============================================================================
# Stepper
# =============================================================================


class HestonStepper:
    """
    Advance Heston (spot, variance) pairs one time step at a time.

    Parameters
    ----------
    params : HestonParameters
        Model parameters
    scheme : HestonScheme
        Discretization scheme
    strict : bool
        Raise FellerConditionError when 2*kappa*theta <= xi^2
    suppress_warnings : bool
        Do not emit FellerConditionWarning (the violation is still logged)

    Examples
    --------
    >>> params = HestonParameters(spot=100.0, v0=0.04, rate=0.01, kappa=2.0,
    ...                           theta=0.04, xi=0.3, rho=-0.7)
    >>> stepper = HestonStepper(params, HestonScheme.ANDERSEN_QE)
    >>> spot, variance = stepper.step(100.0, 0.04, 1 / 252, stream_for(42, 0))
    """

    def __init__(
        self,
        params: HestonParameters,
        scheme: HestonScheme = HestonScheme.ANDERSEN_QE,
        strict: bool = False,
        suppress_warnings: bool = False,
    ):
        self.params = params
        self.scheme = HestonScheme(scheme)
        self.strict = strict
        self.suppress_warnings = suppress_warnings
        self._step = _STEPS[self.scheme]

        if not params.satisfies_feller():
            if strict:
                raise FellerConditionError(params.kappa, params.theta, params.xi)
            message = (
                f"Feller condition violated: 2*kappa*theta = {params.feller_value:.6g} "
                f"<= xi^2 = {params.xi**2:.6g}; variance can reach zero"
            )
            logger.warning(message)
            if not suppress_warnings:
                warnings.warn(message, FellerConditionWarning, stacklevel=2)

    def __repr__(self) -> str:
        return f"HestonStepper(scheme={self.scheme.value}, params={self.params})"

    @property
    def scheme_name(self) -> str:
        """Human-readable scheme name, used in error messages."""
        return self.scheme.label

    def step(
        self,
        spot: float,
        variance: float,
        dt: float,
        stream: RandomStream,
    ) -> tuple[float, float]:
        """
        Advance one time step.

        Parameters
        ----------
        spot : float
            Current spot (finite, > 0)
        variance : float
            Current variance (finite, >= 0)
        dt : float
            Step size in years (finite, > 0)
        stream : RandomStream
            Stream of the path being advanced; two normals are drawn, plus
            one uniform in the QE exponential branch

        Returns
        -------
        tuple[float, float]
            (new_spot, new_variance)

        Raises
        ------
        InvalidParameterError
            If dt is not finite and positive
        NumericalInstabilityError
            If an input or output state is invalid; the message names the scheme
        """
        if not math.isfinite(dt) or dt <= 0.0:
            raise InvalidParameterError("dt", dt, "> 0")
        if not math.isfinite(spot) or spot <= 0.0:
            raise NumericalInstabilityError(self.scheme_name, f"input spot is {spot}")
        if not math.isfinite(variance) or variance < 0.0:
            raise NumericalInstabilityError(self.scheme_name, f"input variance is {variance}")

        z1 = stream.normal()
        z2 = stream.normal()
        try:
            new_spot, new_variance = self._step(self.params, spot, variance, dt, z1, z2, stream)
        except (OverflowError, ValueError, ZeroDivisionError) as exc:
            raise NumericalInstabilityError(self.scheme_name, str(exc)) from exc

        if not math.isfinite(new_spot) or new_spot <= 0.0:
            raise NumericalInstabilityError(self.scheme_name, f"spot became {new_spot}")
        if not math.isfinite(new_variance) or new_variance < 0.0:
            raise NumericalInstabilityError(self.scheme_name, f"variance became {new_variance}")
        return new_spot, new_variance

    def simulate_path(
        self,
        time_to_expiry: float,
        n_steps: int,
        stream: RandomStream,
        out_spots: np.ndarray | None = None,
        out_variances: np.ndarray | None = None,
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Run n_steps equal steps from (params.spot, params.v0).

        Returns
        -------
        tuple[np.ndarray, np.ndarray]
            Spot and variance trajectories, each of length n_steps + 1
        """
        spots = np.empty(n_steps + 1) if out_spots is None else out_spots
        variances = np.empty(n_steps + 1) if out_variances is None else out_variances
        dt = time_to_expiry / n_steps

        spot, variance = self.params.spot, self.params.v0
        spots[0], variances[0] = spot, variance
        for i in range(1, n_steps + 1):
            spot, variance = self.step(spot, variance, dt, stream)
            spots[i], variances[i] = spot, variance
        return spots, variances


# =============================================================================
# Paths and pricing
# =============================================================================


@dataclass(frozen=True)
class HestonPathResult:
    """
    Result of Heston path generation.

    Attributes
    ----------
    spot_paths : np.ndarray
        Simulated spot paths, shape (n_paths, n_steps + 1)
    variance_paths : np.ndarray
        Simulated variance paths, shape (n_paths, n_steps + 1)
    times : np.ndarray
        Time points, shape (n_steps + 1,)
    params : HestonParameters
        Heston parameters used
    scheme : HestonScheme
        Discretization scheme used
    seed : int
        Run seed
    """

    spot_paths: np.ndarray
    variance_paths: np.ndarray
    times: np.ndarray
    params: HestonParameters
    scheme: HestonScheme
    seed: int

    @property
    def n_paths(self) -> int:
        """Number of paths."""
        return self.spot_paths.shape[0]

    @property
    def n_steps(self) -> int:
        """Number of time steps."""
        return self.spot_paths.shape[1] - 1

    @property
    def terminal_spots(self) -> np.ndarray:
        return self.spot_paths[:, -1]

    @property
    def terminal_variances(self) -> np.ndarray:
        return self.variance_paths[:, -1]


def simulate_heston_paths(
    stepper: HestonStepper,
    time_to_expiry: float,
    n_steps: int,
    n_paths: int,
    seed: int,
    start: int = 0,
) -> HestonPathResult:
    """
    Simulate paths start .. start + n_paths - 1, path i on stream (seed, i).

    Parameters
    ----------
    stepper : HestonStepper
        Configured stepper
    time_to_expiry : float
        Horizon in years (> 0)
    n_steps : int
        Equal time steps per path
    n_paths : int
        Number of paths
    seed : int
        Run seed
    start : int
        First path index

    Returns
    -------
    HestonPathResult
        Spot and variance trajectories
    """
    validate_positive("time_to_expiry", time_to_expiry)
    validate_steps(n_steps)
    validate_paths(n_paths)
    validate_seed(seed)

    spots = np.empty((n_paths, n_steps + 1))
    variances = np.empty((n_paths, n_steps + 1))
    for row in range(n_paths):
        stepper.simulate_path(
            time_to_expiry, n_steps, stream_for(seed, start + row), spots[row], variances[row]
        )

    return HestonPathResult(
        spot_paths=spots,
        variance_paths=variances,
        times=np.linspace(0.0, time_to_expiry, n_steps + 1),
        params=stepper.params,
        scheme=stepper.scheme,
        seed=seed,
    )


def _heston_payoff_sums(
    stepper: HestonStepper,
    payoff: Payoff,
    time_to_expiry: float,
    n_steps: int,
    seed: int,
    chunk: Chunk,
) -> np.ndarray:
    paths = simulate_heston_paths(stepper, time_to_expiry, n_steps, chunk.n_paths, seed, start=chunk.start)
    payoffs = payoff.evaluate(paths.spot_paths)
    deviations = payoffs - payoffs.mean()
    return np.array([payoffs.sum(), (deviations * deviations).sum()])


def price_heston(
    stepper: HestonStepper,
    payoff: Payoff,
    time_to_expiry: float,
    n_steps: int,
    n_paths: int,
    seed: int,
    n_workers: int | None = None,
    settings: Settings = SETTINGS,
) -> PriceEstimate:
    """
    Monte Carlo price of payoff under Heston dynamics.

    Path i is stepped on stream (seed, i); paths are split into the same
    fixed chunks as the GBM engine, so the result does not depend on the
    worker count.

    Returns
    -------
    PriceEstimate
        Discounted price and sampling variance of the estimate
    """
    validate_positive("time_to_expiry", time_to_expiry)
    validate_steps(n_steps, settings.simulation.max_steps)
    validate_paths(n_paths, settings.simulation.max_paths)
    validate_seed(seed)

    workers = settings.engine.workers if n_workers is None else n_workers
    chunks = plan_chunks(n_paths, n_steps, settings.engine)
    logger.debug(
        f"Heston {stepper.scheme_name}: {n_paths} paths x {n_steps} steps, {len(chunks)} chunks"
    )

    task = partial(_heston_payoff_sums, stepper, payoff, time_to_expiry, n_steps, seed)
    chunk_sums = map_chunks(task, chunks, workers)
    sums = reduce_in_order(chunk_sums, np.zeros(2))

    discount = math.exp(-stepper.params.rate * time_to_expiry)
    mean_payoff = sums[0] / n_paths
    estimate = discount * mean_payoff
    if n_paths > 1:
        spread = pooled_sum_of_squares(chunk_sums, chunks, mean_payoff)
        variance = spread * discount**2 / (n_paths * (n_paths - 1))
    else:
        variance = 0.0

    if not math.isfinite(estimate):
        raise NumericalInstabilityError(stepper.scheme_name, f"price is {estimate}")
    return PriceEstimate(
        price=float(estimate),
        variance=checked_variance(stepper.scheme_name, float(variance)),
        n_paths=n_paths,
    )


def validate_heston_simulation(
    stepper: HestonStepper,
    time: float,
    n_paths: int = 10_000,
    n_steps: int = 50,
    seed: int = 42,
) -> dict:
    """
    Validate Heston simulation against theoretical moments.

    [T1] Under the Heston model:
    - E[S(T)] = S(0) * exp(r*T) (forward price, risk-neutral)
    - E[v(T)] = theta + (v0 - theta) * exp(-kappa*T) (mean reversion)

    Returns
    -------
    dict
        Validation results with theoretical vs simulated values
    """
    params = stepper.params
    result = simulate_heston_paths(stepper, time, n_steps, n_paths, seed)

    expected_spot_mean = params.spot * np.exp(params.rate * time)
    expected_var_mean, _ = cir_moments(params, time)

    simulated_spot_mean = result.terminal_spots.mean()
    simulated_var_mean = result.terminal_variances.mean()

    se_spot = result.terminal_spots.std() / np.sqrt(n_paths)
    se_var = result.terminal_variances.std() / np.sqrt(n_paths)

    return {
        "n_paths": n_paths,
        "n_steps": n_steps,
        "scheme": stepper.scheme.value,
        "feller_condition_satisfied": params.satisfies_feller(),
        "theoretical_spot_mean": expected_spot_mean,
        "simulated_spot_mean": simulated_spot_mean,
        "spot_error_pct": abs(simulated_spot_mean - expected_spot_mean) / expected_spot_mean * 100,
        "spot_se": se_spot,
        "spot_z_score": (simulated_spot_mean - expected_spot_mean) / se_spot,
        "theoretical_var_mean": expected_var_mean,
        "simulated_var_mean": simulated_var_mean,
        "var_se": se_var,
        "var_z_score": (simulated_var_mean - expected_var_mean) / se_var if se_var > 0 else 0.0,
        "min_variance": float(result.variance_paths.min()),
    }
