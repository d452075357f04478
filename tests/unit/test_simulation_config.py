"""
Tests for SimulationConfig validation and the parameter guards.

[T1] Invalid inputs must fail before any path is simulated, with a typed
error naming the offending field.
"""

import math

import pytest

from sde_pricing.errors import InvalidConfigurationError, InvalidParameterError, SdePricingError
from sde_pricing.options.payoffs.base import Payoff
from sde_pricing.options.simulation.greeks import delta_pathwise, gamma_finite_difference
from sde_pricing.options.simulation.monte_carlo import Greeks, SimulationConfig, price
from sde_pricing.validation.guards import (
    validate_correlation,
    validate_non_negative,
    validate_paths,
    validate_range,
    validate_seed,
    validate_steps,
)


class TestStructuralLimits:
    """Path and step counts."""

    @pytest.mark.parametrize("n_paths", [0, -1, 1_000_000_001])
    def test_invalid_paths(self, config_factory, n_paths):
        with pytest.raises(InvalidConfigurationError, match="n_paths"):
            config_factory(n_paths=n_paths).validate()

    @pytest.mark.parametrize("n_steps", [0, 100_001])
    def test_invalid_steps(self, config_factory, n_steps):
        with pytest.raises(InvalidConfigurationError, match="n_steps"):
            config_factory(n_steps=n_steps).validate()

    def test_limits_inclusive(self, config_factory):
        config = config_factory(n_paths=1_000_000_000, n_steps=100_000)
        assert config.validate() is config

    def test_non_integer_paths(self, config_factory):
        with pytest.raises(InvalidConfigurationError, match="integer"):
            config_factory(n_paths=10.5).validate()

    def test_error_fields(self, config_factory):
        with pytest.raises(InvalidConfigurationError) as excinfo:
            config_factory(n_paths=0).validate()
        assert excinfo.value.field == "n_paths"
        assert "CRITICAL" in str(excinfo.value)


class TestMarketParameters:
    """Numeric parameters."""

    @pytest.mark.parametrize(
        "field,value",
        [
            ("spot", 0.0),
            ("spot", -100.0),
            ("spot", math.nan),
            ("volatility", 0.0),
            ("volatility", -0.2),
            ("volatility", math.inf),
            ("time_to_expiry", 0.0),
            ("time_to_expiry", math.nan),
        ],
    )
    def test_must_be_positive(self, config_factory, field, value):
        with pytest.raises(InvalidParameterError, match=f"{field} must be > 0") as excinfo:
            config_factory(**{field: value}).validate()
        assert excinfo.value.parameter == field

    @pytest.mark.parametrize("rate", [math.nan, math.inf, -math.inf])
    def test_rate_must_be_finite(self, config_factory, rate):
        with pytest.raises(InvalidParameterError, match="rate must be finite"):
            config_factory(rate=rate).validate()

    def test_negative_rate_allowed(self, config_factory):
        config_factory(rate=-0.01).validate()

    def test_invalid_seed(self, config_factory):
        with pytest.raises(InvalidParameterError, match="seed"):
            config_factory(seed=-3).validate()

    def test_payoff_type_checked(self, config_factory):
        with pytest.raises(InvalidParameterError, match="payoff"):
            config_factory(payoff="call").validate()


class TestBump:
    """Finite-difference bump limits."""

    @pytest.mark.parametrize("bump", [0.0, -0.1, 10.0001, math.nan])
    def test_invalid_bump(self, config_factory, bump):
        with pytest.raises(InvalidParameterError, match="bump"):
            config_factory(bump=bump).validate()

    def test_max_bump_allowed(self, config_factory):
        config_factory(bump=10.0).validate()

    def test_default_bump(self, config_factory):
        assert config_factory().gamma_bump == pytest.approx(0.1)
        assert config_factory(bump=0.5).gamma_bump == 0.5


class TestEntryPointsValidate:
    """Every public entry point rejects an invalid config."""

    def test_price(self, config_factory):
        with pytest.raises(InvalidParameterError):
            price(config_factory(volatility=-0.2))

    def test_delta(self, config_factory):
        with pytest.raises(InvalidConfigurationError):
            delta_pathwise(config_factory(n_paths=0))

    def test_gamma(self, config_factory):
        with pytest.raises(InvalidParameterError):
            gamma_finite_difference(config_factory(bump=50.0))

    def test_errors_are_value_errors(self, config_factory):
        """Input errors stay catchable as ValueError and as SdePricingError."""
        with pytest.raises(ValueError):
            price(config_factory(spot=-1.0))
        with pytest.raises(SdePricingError):
            price(config_factory(n_steps=0))


class TestDefaults:
    """SimulationConfig.default()."""

    def test_defaults(self):
        config = SimulationConfig.default()
        assert config.n_paths == 1_000_000
        assert config.n_steps == 1
        assert config.spot == 100.0
        assert config.rate == 0.01
        assert config.volatility == 0.2
        assert config.time_to_expiry == 1.0
        assert config.seed == 12345
        assert config.antithetic and config.control_variate
        assert config.greeks == Greeks.NONE
        assert config.payoff == Payoff.european_call(100.0)

    def test_overrides(self):
        config = SimulationConfig.default(Payoff.asian_call(95.0), n_paths=10, greeks=Greeks.ALL)
        assert config.n_paths == 10
        assert config.payoff.strike == 95.0
        assert Greeks.GAMMA in config.greeks

    def test_discount_factor(self):
        assert SimulationConfig.default().discount_factor == pytest.approx(math.exp(-0.01))


class TestGuards:
    """Guard functions."""

    def test_non_negative(self):
        assert validate_non_negative("v0", 0.0) == 0.0
        with pytest.raises(InvalidParameterError, match=">= 0"):
            validate_non_negative("v0", -1e-12)

    def test_range_exclusive_lower(self):
        with pytest.raises(InvalidParameterError, match=r"in \(0.0, 1.0\]"):
            validate_range("theta", 0.0, 0.0, 1.0, lower_inclusive=False)
        assert validate_range("theta", 1.0, 0.0, 1.0, lower_inclusive=False) == 1.0

    @pytest.mark.parametrize("rho", [-1.0, 0.0, 1.0])
    def test_correlation_bounds_inclusive(self, rho):
        assert validate_correlation("rho", rho) == rho

    @pytest.mark.parametrize("rho", [-1.0001, 1.0001, math.nan])
    def test_correlation_out_of_range(self, rho):
        with pytest.raises(InvalidParameterError, match="rho"):
            validate_correlation("rho", rho)

    def test_bool_is_not_a_count(self):
        with pytest.raises(InvalidConfigurationError):
            validate_paths(True)

    def test_custom_limits(self):
        assert validate_steps(5, limit=5) == 5
        with pytest.raises(InvalidConfigurationError):
            validate_steps(6, limit=5)

    def test_seed_bounds(self):
        assert validate_seed(0) == 0
        assert validate_seed(2**64 - 1) == 2**64 - 1
        with pytest.raises(InvalidParameterError):
            validate_seed(2**64)
