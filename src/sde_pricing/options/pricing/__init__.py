"""
Analytical pricing.

Provides:
- Black-Scholes prices and Greeks (control variate expectations, test oracle)
- Heston parameters, CIR moments and a semi-analytic Heston call price
"""

from sde_pricing.options.pricing.black_scholes import (
    BSResult,
    black_scholes_greeks,
    call_delta,
    call_gamma,
    call_price,
    call_rho,
    call_theta,
    call_vega,
    put_call_parity_check,
    put_price,
)
from sde_pricing.options.pricing.heston import (
    HestonParameters,
    cir_moments,
    heston_call_price,
    heston_characteristic_function,
)

__all__ = [
    # Black-Scholes
    "BSResult",
    "black_scholes_greeks",
    "call_delta",
    "call_gamma",
    "call_price",
    "call_rho",
    "call_theta",
    "call_vega",
    "put_call_parity_check",
    "put_price",
    # Heston
    "HestonParameters",
    "cir_moments",
    "heston_call_price",
    "heston_characteristic_function",
]
