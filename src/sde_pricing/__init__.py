"""
sde-pricing: Monte Carlo pricing of derivatives under SDE models.

Quick Start
-----------
>>> from sde_pricing import Payoff, SimulationConfig, price
>>> config = SimulationConfig.default(Payoff.european_call(100.0), n_paths=100_000)
>>> estimate = price(config)
>>> estimate.price, estimate.standard_error

Version: 0.1.0
"""

__version__ = "0.1.0"

# =============================================================================
# Errors
# =============================================================================
from sde_pricing.errors import (
    FellerConditionError,
    FellerConditionWarning,
    InvalidConfigurationError,
    InvalidParameterError,
    NumericalInstabilityError,
    SdePricingError,
)

# =============================================================================
# Payoffs and analytics
# =============================================================================
from sde_pricing.options.payoffs.base import OptionType, Payoff, PayoffKind
from sde_pricing.options.pricing.black_scholes import (
    black_scholes_greeks,
    call_delta,
    call_gamma,
    call_price,
    call_rho,
    call_theta,
    call_vega,
    put_price,
)
from sde_pricing.options.pricing.heston import HestonParameters, cir_moments, heston_call_price

# =============================================================================
# Simulation
# =============================================================================
from sde_pricing.options.simulation.greeks import (
    GreeksResult,
    compute_greeks,
    delta_pathwise,
    gamma_finite_difference,
    gamma_finite_difference_batched,
    rho_pathwise,
    vega_pathwise,
)
from sde_pricing.options.simulation.heston_paths import (
    HestonScheme,
    HestonStepper,
    price_heston,
    simulate_heston_paths,
)
from sde_pricing.options.simulation.monte_carlo import (
    Greeks,
    MonteCarloEngine,
    PriceEstimate,
    SimulationConfig,
    price,
)
from sde_pricing.options.simulation.streams import RandomStream, stream_for

__all__ = [
    "__version__",
    # Errors
    "SdePricingError",
    "InvalidParameterError",
    "InvalidConfigurationError",
    "NumericalInstabilityError",
    "FellerConditionError",
    "FellerConditionWarning",
    # Payoffs
    "OptionType",
    "Payoff",
    "PayoffKind",
    # Black-Scholes
    "black_scholes_greeks",
    "call_delta",
    "call_gamma",
    "call_price",
    "call_rho",
    "call_theta",
    "call_vega",
    "put_price",
    # Heston analytics
    "HestonParameters",
    "cir_moments",
    "heston_call_price",
    # Monte Carlo
    "Greeks",
    "MonteCarloEngine",
    "PriceEstimate",
    "SimulationConfig",
    "price",
    # Greeks
    "GreeksResult",
    "compute_greeks",
    "delta_pathwise",
    "gamma_finite_difference",
    "gamma_finite_difference_batched",
    "rho_pathwise",
    "vega_pathwise",
    # Heston
    "HestonScheme",
    "HestonStepper",
    "price_heston",
    "simulate_heston_paths",
    # Streams
    "RandomStream",
    "stream_for",
]
