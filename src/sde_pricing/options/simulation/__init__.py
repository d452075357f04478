"""
Monte Carlo simulation for option pricing.

Provides:
- Reproducible per-path random streams
- GBM path generation and the parallel pricing engine with antithetic and
  control variates
- Pathwise and finite-difference Greeks
- Heston path stepping (Full Truncation Euler, Andersen QE, Alfonsi)
"""

from sde_pricing.options.simulation.gbm import (
    GBMParams,
    PathResult,
    generate_gbm_paths,
    validate_gbm_simulation,
)
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
    HestonPathResult,
    HestonScheme,
    HestonStepper,
    price_heston,
    simulate_heston_paths,
    validate_heston_simulation,
)
from sde_pricing.options.simulation.monte_carlo import (
    Greeks,
    MonteCarloEngine,
    PriceEstimate,
    SimulationConfig,
    convergence_analysis,
    price,
)
from sde_pricing.options.simulation.streams import RandomStream, StreamBatch, stream_for

__all__ = [
    # Streams
    "RandomStream",
    "StreamBatch",
    "stream_for",
    # GBM
    "GBMParams",
    "PathResult",
    "generate_gbm_paths",
    "validate_gbm_simulation",
    # Monte Carlo
    "Greeks",
    "MonteCarloEngine",
    "PriceEstimate",
    "SimulationConfig",
    "convergence_analysis",
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
    "HestonPathResult",
    "HestonScheme",
    "HestonStepper",
    "price_heston",
    "simulate_heston_paths",
    "validate_heston_simulation",
]
