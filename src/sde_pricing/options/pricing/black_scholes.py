"""
Black-Scholes closed-form prices and Greeks.

Used as the known expectation of the control variates and as ground truth for
the Monte Carlo and pathwise estimators. All sensitivities are in raw units:
vega per unit of volatility, rho per unit of rate, theta per year.

No dividend yield: the simulated asset pays none.

References
----------
[T1] Black, F., & Scholes, M. (1973). The pricing of options and corporate liabilities.
[T1] Hull, J. C. (2021). Options, Futures, and Other Derivatives (11th ed.).
"""

from dataclasses import dataclass

import numpy as np
from scipy import stats

from sde_pricing.options.payoffs.base import OptionType
from sde_pricing.validation.guards import validate_finite, validate_positive


@dataclass(frozen=True)
class BSResult:
    """
    Immutable Black-Scholes pricing result.

    Attributes
    ----------
    price : float
        Option price
    delta : float
        dV/dS
    gamma : float
        d²V/dS²
    vega : float
        dV/dσ (per unit volatility)
    theta : float
        dV/dt (per year)
    rho : float
        dV/dr (per unit rate)
    d1 : float
        d1 parameter
    d2 : float
        d2 parameter
    """

    price: float
    delta: float
    gamma: float
    vega: float
    theta: float
    rho: float
    d1: float
    d2: float


def _validate_inputs(
    spot: float,
    strike: float,
    rate: float,
    volatility: float,
    time_to_expiry: float,
) -> None:
    """Validate Black-Scholes inputs."""
    validate_positive("spot", spot)
    validate_positive("strike", strike)
    validate_finite("rate", rate)
    validate_positive("volatility", volatility)
    validate_positive("time_to_expiry", time_to_expiry)


def _calculate_d1_d2(
    spot: float,
    strike: float,
    rate: float,
    volatility: float,
    time_to_expiry: float,
) -> tuple[float, float]:
    """
    Calculate d1 and d2 parameters.

    [T1] d1 = (ln(S/K) + (r + σ²/2)T) / (σ√T)
    [T1] d2 = d1 - σ√T
    """
    vol_sqrt_t = volatility * np.sqrt(time_to_expiry)
    d1 = (np.log(spot / strike) + (rate + 0.5 * volatility**2) * time_to_expiry) / vol_sqrt_t
    d2 = d1 - vol_sqrt_t
    return float(d1), float(d2)


def call_price(
    spot: float,
    strike: float,
    rate: float,
    volatility: float,
    time_to_expiry: float,
) -> float:
    """
    European call price.

    [T1] C = S*N(d1) - K*e^(-rT)*N(d2)

    Parameters
    ----------
    spot : float
        Current spot price
    strike : float
        Strike price
    rate : float
        Risk-free rate (continuously compounded, decimal)
    volatility : float
        Volatility (decimal)
    time_to_expiry : float
        Time to expiry (years)

    Returns
    -------
    float
        Call price (>= 0)
    """
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    d1, d2 = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)
    price = spot * stats.norm.cdf(d1) - strike * np.exp(-rate * time_to_expiry) * stats.norm.cdf(d2)
    return max(float(price), 0.0)


def put_price(
    spot: float,
    strike: float,
    rate: float,
    volatility: float,
    time_to_expiry: float,
) -> float:
    """
    European put price.

    [T1] P = K*e^(-rT)*N(-d2) - S*N(-d1)
    """
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    d1, d2 = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)
    price = strike * np.exp(-rate * time_to_expiry) * stats.norm.cdf(-d2) - spot * stats.norm.cdf(-d1)
    return max(float(price), 0.0)


def call_delta(spot: float, strike: float, rate: float, volatility: float, time_to_expiry: float) -> float:
    """[T1] Δ = N(d1)"""
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    d1, _ = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)
    return float(stats.norm.cdf(d1))


def call_gamma(spot: float, strike: float, rate: float, volatility: float, time_to_expiry: float) -> float:
    """[T1] Γ = n(d1) / (S σ √T)"""
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    d1, _ = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)
    return float(stats.norm.pdf(d1) / (spot * volatility * np.sqrt(time_to_expiry)))


def call_vega(spot: float, strike: float, rate: float, volatility: float, time_to_expiry: float) -> float:
    """[T1] ν = S n(d1) √T (per unit volatility)"""
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    d1, _ = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)
    return float(spot * stats.norm.pdf(d1) * np.sqrt(time_to_expiry))


def call_rho(spot: float, strike: float, rate: float, volatility: float, time_to_expiry: float) -> float:
    """[T1] ρ = K T e^(-rT) N(d2) (per unit rate)"""
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    _, d2 = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)
    return float(strike * time_to_expiry * np.exp(-rate * time_to_expiry) * stats.norm.cdf(d2))


def call_theta(spot: float, strike: float, rate: float, volatility: float, time_to_expiry: float) -> float:
    """[T1] Θ = -S n(d1) σ / (2√T) - r K e^(-rT) N(d2) (per year)"""
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    d1, d2 = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)
    sqrt_t = np.sqrt(time_to_expiry)
    theta = (
        -spot * stats.norm.pdf(d1) * volatility / (2 * sqrt_t)
        - rate * strike * np.exp(-rate * time_to_expiry) * stats.norm.cdf(d2)
    )
    return float(theta)


def black_scholes_greeks(
    spot: float,
    strike: float,
    rate: float,
    volatility: float,
    time_to_expiry: float,
    option_type: OptionType = OptionType.CALL,
) -> BSResult:
    """
    Price and all Greeks in one evaluation.

    Parameters
    ----------
    spot : float
        Current spot price
    strike : float
        Strike price
    rate : float
        Risk-free rate (decimal)
    volatility : float
        Volatility (decimal)
    time_to_expiry : float
        Time to expiry (years)
    option_type : OptionType
        Call or put

    Returns
    -------
    BSResult
        Price and Greeks in raw units
    """
    _validate_inputs(spot, strike, rate, volatility, time_to_expiry)
    d1, d2 = _calculate_d1_d2(spot, strike, rate, volatility, time_to_expiry)

    sqrt_t = np.sqrt(time_to_expiry)
    exp_rate = np.exp(-rate * time_to_expiry)
    n_d1 = stats.norm.pdf(d1)

    gamma = n_d1 / (spot * volatility * sqrt_t)
    vega = spot * n_d1 * sqrt_t
    decay = -spot * n_d1 * volatility / (2 * sqrt_t)

    if option_type == OptionType.CALL:
        price = spot * stats.norm.cdf(d1) - strike * exp_rate * stats.norm.cdf(d2)
        delta = stats.norm.cdf(d1)
        theta = decay - rate * strike * exp_rate * stats.norm.cdf(d2)
        rho = strike * time_to_expiry * exp_rate * stats.norm.cdf(d2)
    else:
        price = strike * exp_rate * stats.norm.cdf(-d2) - spot * stats.norm.cdf(-d1)
        delta = -stats.norm.cdf(-d1)
        theta = decay + rate * strike * exp_rate * stats.norm.cdf(-d2)
        rho = -strike * time_to_expiry * exp_rate * stats.norm.cdf(-d2)

    return BSResult(
        price=max(float(price), 0.0),
        delta=float(delta),
        gamma=float(gamma),
        vega=float(vega),
        theta=float(theta),
        rho=float(rho),
        d1=d1,
        d2=d2,
    )


def put_call_parity_check(
    call: float,
    put: float,
    spot: float,
    strike: float,
    rate: float,
    time_to_expiry: float,
    tolerance: float = 1e-8,
) -> tuple[bool, float]:
    """
    Verify put-call parity holds.

    [T1] C - P = S - K*e^(-rT)

    Returns
    -------
    tuple[bool, float]
        (parity_holds, error)
    """
    expected_diff = spot - strike * np.exp(-rate * time_to_expiry)
    error = abs((call - put) - expected_diff)
    return error < tolerance, float(error)
