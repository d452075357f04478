"""
Property-based tests for Heston stepping.

Properties tested:
1. Every scheme keeps the spot positive and the variance non-negative
2. The CIR conditional mean lies between v0 and θ
3. The QE step is a pure function of the state and the stream
"""

import math
import warnings

from hypothesis import given, settings
from hypothesis import strategies as st

from sde_pricing.errors import FellerConditionWarning
from sde_pricing.options.pricing.heston import HestonParameters, cir_moments
from sde_pricing.options.simulation.heston_paths import HestonScheme, HestonStepper
from sde_pricing.options.simulation.streams import stream_for

# =============================================================================
# Strategy Definitions
# =============================================================================


@st.composite
def heston_parameters(draw) -> HestonParameters:
    return HestonParameters(
        spot=draw(st.floats(min_value=1.0, max_value=1000.0)),
        v0=draw(st.floats(min_value=0.0, max_value=1.0)),
        rate=draw(st.floats(min_value=-0.05, max_value=0.15)),
        kappa=draw(st.floats(min_value=0.1, max_value=10.0)),
        theta=draw(st.floats(min_value=0.005, max_value=0.5)),
        xi=draw(st.floats(min_value=0.05, max_value=2.0)),
        rho=draw(st.floats(min_value=-0.99, max_value=0.99)),
    )


seed_strategy = st.integers(min_value=0, max_value=2**64 - 1)
dt_strategy = st.floats(min_value=1e-4, max_value=0.25)


def _stepper(params: HestonParameters, scheme: HestonScheme) -> HestonStepper:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", FellerConditionWarning)
        return HestonStepper(params, scheme, suppress_warnings=True)


class TestStateValidity:
    @given(
        params=heston_parameters(),
        scheme=st.sampled_from(list(HestonScheme)),
        seed=seed_strategy,
        dt=dt_strategy,
    )
    @settings(max_examples=150, deadline=None)
    def test_states_stay_valid(self, params, scheme, seed, dt) -> None:
        stepper = _stepper(params, scheme)
        stream = stream_for(seed, 0)
        spot, variance = params.spot, params.v0
        for _ in range(20):
            spot, variance = stepper.step(spot, variance, dt, stream)
            assert spot > 0.0 and math.isfinite(spot)
            assert variance >= 0.0 and math.isfinite(variance)

    @given(params=heston_parameters(), seed=seed_strategy, dt=dt_strategy)
    @settings(max_examples=100, deadline=None)
    def test_qe_step_is_pure(self, params, seed, dt) -> None:
        stepper = _stepper(params, HestonScheme.ANDERSEN_QE)
        first = stepper.step(params.spot, params.v0, dt, stream_for(seed, 1))
        second = stepper.step(params.spot, params.v0, dt, stream_for(seed, 1))
        assert first == second


class TestCirMomentProperties:
    @given(params=heston_parameters(), time=st.floats(min_value=1e-4, max_value=30.0))
    @settings(max_examples=200)
    def test_mean_between_start_and_long_run(self, params, time) -> None:
        mean, variance = cir_moments(params, time)
        low, high = sorted((params.v0, params.theta))
        assert low - 1e-15 <= mean <= high + 1e-15
        assert variance >= 0.0
