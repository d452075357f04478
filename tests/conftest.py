"""
Centralized pytest fixtures for the sde-pricing test suite.

This module provides shared fixtures used across all test categories:
- unit/
- validation/
- properties/
- anti_patterns/
- smoke/

Fixture Categories:
1. Tolerance tiers
2. Market parameters (Black-Scholes and Heston)
3. Simulation configs
4. Engine settings with small chunks, so that modest path counts still
   span several chunks
"""

from dataclasses import dataclass

import pytest

from sde_pricing.config.settings import EngineConfig, Settings, SimulationDefaults
from sde_pricing.options.payoffs.base import Payoff
from sde_pricing.options.pricing.heston import HestonParameters
from sde_pricing.options.simulation.monte_carlo import SimulationConfig

# =============================================================================
# TOLERANCE TIERS
# =============================================================================


@dataclass(frozen=True)
class ToleranceTiers:
    """
    Tiered tolerance framework for different test types.

    Derived from precision requirements, not ad hoc.
    """

    # Closed-form identities
    analytical: float = 1e-10

    # Textbook values quoted to 3-4 significant figures
    textbook: float = 1e-3

    # Monte Carlo vs analytical: relative, CLT-derived
    mc_control_variate: float = 0.01
    mc_pathwise_greeks: float = 0.03
    mc_gamma: float = 0.05


TOLERANCES = ToleranceTiers()


@pytest.fixture(scope="session")
def tolerances() -> ToleranceTiers:
    """Provide tiered tolerance settings for all tests."""
    return TOLERANCES


# =============================================================================
# MARKET PARAMETERS
# =============================================================================


@dataclass(frozen=True)
class MarketCase:
    """Black-Scholes market inputs."""

    spot: float
    strike: float
    rate: float
    volatility: float
    time_to_expiry: float

    def as_args(self) -> tuple[float, float, float, float, float]:
        return (self.spot, self.strike, self.rate, self.volatility, self.time_to_expiry)


#: Hull (2021) style ATM example: S = K = 100, r = 5%, σ = 20%, T = 1
HULL_ATM = MarketCase(spot=100.0, strike=100.0, rate=0.05, volatility=0.20, time_to_expiry=1.0)

#: Engine default market: S = K = 100, r = 1%, σ = 20%, T = 1
DEFAULT_MARKET = MarketCase(spot=100.0, strike=100.0, rate=0.01, volatility=0.20, time_to_expiry=1.0)


@pytest.fixture
def hull_atm() -> MarketCase:
    return HULL_ATM


@pytest.fixture
def default_market() -> MarketCase:
    return DEFAULT_MARKET


@pytest.fixture
def heston_params() -> HestonParameters:
    """Feller-satisfying Heston parameters (2κθ = 0.16 > ξ² = 0.09)."""
    return HestonParameters(
        spot=100.0, v0=0.04, rate=0.01, kappa=2.0, theta=0.04, xi=0.3, rho=-0.7
    )


@pytest.fixture
def heston_params_feller_violated() -> HestonParameters:
    """2κθ = 0.12 <= ξ² = 0.25."""
    return HestonParameters(
        spot=100.0, v0=0.04, rate=0.01, kappa=1.5, theta=0.04, xi=0.5, rho=-0.7
    )


# =============================================================================
# SIMULATION CONFIGS
# =============================================================================


def make_config(
    payoff: Payoff | None = None,
    market: MarketCase = DEFAULT_MARKET,
    **overrides,
) -> SimulationConfig:
    """SimulationConfig on a market case with test-sized defaults."""
    fields = dict(
        n_paths=20_000,
        n_steps=1,
        spot=market.spot,
        rate=market.rate,
        volatility=market.volatility,
        time_to_expiry=market.time_to_expiry,
        seed=12345,
        payoff=payoff if payoff is not None else Payoff.european_call(market.strike),
        antithetic=False,
        control_variate=False,
    )
    fields.update(overrides)
    return SimulationConfig(**fields)


# =============================================================================
# ENGINE SETTINGS
# =============================================================================


@pytest.fixture(scope="session")
def small_chunk_settings() -> Settings:
    """Single worker by default, 1000-path chunks."""
    return Settings(
        engine=EngineConfig(n_workers=1, max_chunk_paths=1_000),
        simulation=SimulationDefaults(),
    )


@pytest.fixture
def config_factory():
    """make_config as a fixture: config_factory(payoff, market, **overrides)."""
    return make_config
