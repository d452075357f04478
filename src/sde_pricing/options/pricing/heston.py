"""
Heston stochastic volatility model: parameters and analytics.

[T1] Heston SDEs under the risk-neutral measure:
  dS = r S dt + sqrt(v) S dW1
  dv = kappa(theta - v) dt + xi sqrt(v) dW2
  dW1 dW2 = rho dt

Provides:
- HestonParameters with range checks and Feller diagnostics
- Exact conditional moments of the CIR variance (used by the QE scheme and
  by the moment tests)
- Semi-analytic European call price (Gil-Pelaez inversion of the
  characteristic function), the reference for Heston Monte Carlo

References
----------
[T1] Heston, S. L. (1993). A closed-form solution for options with stochastic
     volatility. Review of Financial Studies, 6(2), 327-343.
[T1] Albrecher, H. et al. (2007). The little Heston trap. Wilmott, 83-92.
[T1] Andersen, L. B. G. (2008). Simple and efficient simulation of the Heston
     stochastic volatility model. Journal of Computational Finance, 11(3), 1-42.
"""

from dataclasses import dataclass

import numpy as np
from scipy import integrate

from sde_pricing.config.tolerances import MAX_KAPPA, MAX_THETA, MAX_XI
from sde_pricing.validation.guards import (
    validate_correlation,
    validate_finite,
    validate_non_negative,
    validate_positive,
    validate_range,
)


@dataclass(frozen=True)
class HestonParameters:
    """
    Heston model parameters.

    Attributes
    ----------
    spot : float
        Initial asset price (> 0)
    v0 : float
        Initial variance (>= 0)
    rate : float
        Risk-free rate (finite)
    kappa : float
        Mean reversion speed, in (0, 100]
    theta : float
        Long-run variance, in (0, 1]
    xi : float
        Volatility of variance, in (0, 5]
    rho : float
        Correlation between asset and variance shocks, in [-1, 1]

    Notes
    -----
    [T1] Feller condition: 2*kappa*theta > xi^2. When it fails the variance
    can reach zero and the discretization schemes have to handle it.
    """

    spot: float
    v0: float
    rate: float
    kappa: float
    theta: float
    xi: float
    rho: float

    def __post_init__(self) -> None:
        """Validate Heston parameters."""
        validate_positive("spot", self.spot)
        validate_non_negative("v0", self.v0)
        validate_finite("rate", self.rate)
        validate_range("kappa", self.kappa, 0.0, MAX_KAPPA, lower_inclusive=False)
        validate_range("theta", self.theta, 0.0, MAX_THETA, lower_inclusive=False)
        validate_range("xi", self.xi, 0.0, MAX_XI, lower_inclusive=False)
        validate_correlation("rho", self.rho)

    @property
    def feller_value(self) -> float:
        """2*kappa*theta."""
        return 2.0 * self.kappa * self.theta

    @property
    def feller_ratio(self) -> float:
        """2*kappa*theta / xi^2; above 1 the variance stays strictly positive."""
        return self.feller_value / self.xi**2

    def satisfies_feller(self) -> bool:
        """
        Check if Feller condition is satisfied.

        [T1] Feller condition: 2*kappa*theta > xi^2

        Returns
        -------
        bool
            True if Feller condition satisfied
        """
        return self.feller_value > self.xi**2


def cir_moments(params: HestonParameters, time: float, v0: float | None = None) -> tuple[float, float]:
    """
    Conditional mean and variance of the CIR variance process.

    [T1] E[v_t | v_0] = theta + (v_0 - theta) e^(-kappa t)
    [T1] Var[v_t | v_0] = v_0 xi² e^(-kappa t)(1 - e^(-kappa t))/kappa
                          + theta xi² (1 - e^(-kappa t))² / (2 kappa)

    Parameters
    ----------
    params : HestonParameters
        Model parameters
    time : float
        Horizon (years, > 0)
    v0 : float, optional
        Starting variance; defaults to params.v0

    Returns
    -------
    tuple[float, float]
        (mean, variance)
    """
    validate_positive("time", time)
    start = params.v0 if v0 is None else validate_non_negative("v0", v0)
    decay = np.exp(-params.kappa * time)
    xi2 = params.xi**2
    mean = params.theta + (start - params.theta) * decay
    variance = (
        start * xi2 * decay * (1.0 - decay) / params.kappa
        + params.theta * xi2 * (1.0 - decay) ** 2 / (2.0 * params.kappa)
    )
    return float(mean), float(variance)


def heston_characteristic_function(
    u: complex,
    time: float,
    params: HestonParameters,
) -> complex:
    """
    Characteristic function of ln(S_T / S_0).

    [T1] phi(u) = exp{i u r T + A(u,T) + B(u,T) v0}, written in the
    "little trap" form, which avoids the branch cut of the complex log.

    Parameters
    ----------
    u : complex
        Frequency parameter (can be real or complex)
    time : float
        Time to expiry (years)
    params : HestonParameters
        Heston model parameters

    Returns
    -------
    complex
        Characteristic function value phi(u)
    """
    kappa = params.kappa
    theta = params.theta
    xi = params.xi
    rho = params.rho

    d = np.sqrt((rho * xi * u * 1j - kappa) ** 2 + xi**2 * (u * 1j + u**2))

    numerator = kappa - rho * xi * u * 1j - d
    denominator = kappa - rho * xi * u * 1j + d
    g = numerator / denominator

    exp_dt = np.exp(-d * time)
    A = (kappa * theta / xi**2) * (numerator * time - 2 * np.log((1 - g * exp_dt) / (1 - g)))
    B = numerator / xi**2 * (1 - exp_dt) / (1 - g * exp_dt)

    return complex(np.exp(1j * u * params.rate * time + A + B * params.v0))


def heston_call_price(
    params: HestonParameters,
    strike: float,
    time_to_expiry: float,
    upper_limit: float = 200.0,
) -> float:
    """
    Semi-analytic European call price under Heston.

    [T1] C = S0 P1 - K e^(-rT) P2 with, for k = ln(K/S0),
      P2 = 1/2 + (1/π) ∫ Re[e^(-iuk) φ(u) / (iu)] du
      P1 = 1/2 + (1/π) ∫ Re[e^(-iuk) φ(u - i) / (iu φ(-i))] du
    and φ(-i) = e^(rT) (the discounted asset is a martingale).

    Parameters
    ----------
    params : HestonParameters
        Model parameters (spot and rate included)
    strike : float
        Strike price (> 0)
    time_to_expiry : float
        Time to expiry (years, > 0)
    upper_limit : float
        Truncation of the Fourier integrals

    Returns
    -------
    float
        Call price, clipped to the no-arbitrage bounds
    """
    validate_positive("strike", strike)
    validate_positive("time_to_expiry", time_to_expiry)

    log_moneyness = np.log(strike / params.spot)
    forward_growth = np.exp(params.rate * time_to_expiry)

    def p1_integrand(u: float) -> float:
        phi = heston_characteristic_function(u - 1j, time_to_expiry, params)
        value = np.exp(-1j * u * log_moneyness) * phi / (1j * u * forward_growth)
        return float(value.real)

    def p2_integrand(u: float) -> float:
        phi = heston_characteristic_function(u, time_to_expiry, params)
        value = np.exp(-1j * u * log_moneyness) * phi / (1j * u)
        return float(value.real)

    p1_integral, _ = integrate.quad(p1_integrand, 1e-8, upper_limit, limit=500)
    p2_integral, _ = integrate.quad(p2_integrand, 1e-8, upper_limit, limit=500)
    p1 = 0.5 + p1_integral / np.pi
    p2 = 0.5 + p2_integral / np.pi

    discount = np.exp(-params.rate * time_to_expiry)
    price = params.spot * p1 - strike * discount * p2

    lower = max(params.spot - strike * discount, 0.0)
    return float(min(max(price, lower), params.spot))
