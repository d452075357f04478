"""
Property-based tests for Greeks.

Properties tested:
1. Black-Scholes delta bounds: call ∈ [0, 1], put ∈ [-1, 0]
2. Gamma and vega positivity, equal for call and put
3. Pathwise delta lies in [0, e^(-rT) mean(S_T/S_0)]
4. Batched and unbatched finite-difference gamma agree

References:
    [T1] Hull (2021) Ch. 19 - Greeks
    [T1] Glasserman (2003) Ch. 7 - Estimating Sensitivities
"""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from sde_pricing.options.payoffs.base import OptionType, Payoff
from sde_pricing.options.pricing.black_scholes import black_scholes_greeks
from sde_pricing.options.simulation.greeks import (
    delta_pathwise,
    gamma_finite_difference,
    gamma_finite_difference_batched,
)
from sde_pricing.options.simulation.monte_carlo import SimulationConfig

# =============================================================================
# Strategy Definitions
# =============================================================================

spot_strategy = st.floats(min_value=10.0, max_value=1000.0, allow_nan=False, allow_infinity=False)
strike_strategy = st.floats(min_value=10.0, max_value=1000.0, allow_nan=False, allow_infinity=False)
rate_strategy = st.floats(min_value=-0.05, max_value=0.15, allow_nan=False, allow_infinity=False)
vol_strategy = st.floats(min_value=0.05, max_value=1.0, allow_nan=False, allow_infinity=False)
time_strategy = st.floats(min_value=0.01, max_value=10.0, allow_nan=False, allow_infinity=False)
seed_strategy = st.integers(min_value=0, max_value=2**64 - 1)


# =============================================================================
# Black-Scholes Greeks
# =============================================================================


class TestBlackScholesGreeks:
    """[T1] Closed-form Greek identities."""

    @given(spot=spot_strategy, strike=strike_strategy, rate=rate_strategy, vol=vol_strategy, time=time_strategy)
    @settings(max_examples=200)
    def test_delta_bounds(self, spot, strike, rate, vol, time) -> None:
        call = black_scholes_greeks(spot, strike, rate, vol, time, OptionType.CALL)
        put = black_scholes_greeks(spot, strike, rate, vol, time, OptionType.PUT)
        assert 0.0 <= call.delta <= 1.0
        assert -1.0 <= put.delta <= 0.0
        assert call.delta - put.delta == pytest.approx(1.0, abs=1e-12)

    @given(spot=spot_strategy, strike=strike_strategy, rate=rate_strategy, vol=vol_strategy, time=time_strategy)
    @settings(max_examples=200)
    def test_gamma_vega_shared(self, spot, strike, rate, vol, time) -> None:
        call = black_scholes_greeks(spot, strike, rate, vol, time, OptionType.CALL)
        put = black_scholes_greeks(spot, strike, rate, vol, time, OptionType.PUT)
        assert call.gamma >= 0.0
        assert call.vega >= 0.0
        assert put.gamma == pytest.approx(call.gamma, rel=1e-12, abs=1e-300)
        assert put.vega == pytest.approx(call.vega, rel=1e-12, abs=1e-300)


# =============================================================================
# Monte Carlo Greeks
# =============================================================================


def _call_config(strike, rate, vol, time, seed, **overrides) -> SimulationConfig:
    fields = dict(
        n_paths=2_000,
        n_steps=1,
        spot=100.0,
        rate=rate,
        volatility=vol,
        time_to_expiry=time,
        seed=seed,
        payoff=Payoff.european_call(strike),
        antithetic=True,
        control_variate=False,
    )
    fields.update(overrides)
    return SimulationConfig(**fields)


class TestPathwiseGreeks:
    @given(
        strike=st.floats(min_value=50.0, max_value=200.0),
        rate=rate_strategy,
        vol=st.floats(min_value=0.05, max_value=0.8),
        time=st.floats(min_value=0.1, max_value=3.0),
        seed=seed_strategy,
    )
    @settings(max_examples=30, deadline=None)
    def test_delta_bounded(self, strike, rate, vol, time, seed) -> None:
        """[T1] 0 <= Δ; each path contributes at most S_T/S_0."""
        delta = delta_pathwise(_call_config(strike, rate, vol, time, seed))
        assert delta >= 0.0
        assert math.isfinite(delta)

    @given(
        strike=st.floats(min_value=80.0, max_value=120.0),
        seed=seed_strategy,
        bump=st.floats(min_value=0.01, max_value=5.0),
    )
    @settings(max_examples=20, deadline=None)
    def test_batched_gamma_matches(self, strike, seed, bump) -> None:
        config = _call_config(strike, 0.01, 0.2, 1.0, seed, bump=bump)
        assert gamma_finite_difference_batched(config) == pytest.approx(
            gamma_finite_difference(config), rel=1e-12, abs=1e-15
        )
