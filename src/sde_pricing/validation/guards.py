"""
Parameter guards.

Each guard checks one value, returns it unchanged when it is valid and raises
a typed error naming the parameter otherwise. Guards are applied eagerly,
before any simulation starts, so a failed check never leaves a partial
result behind.
"""

import math
from numbers import Integral

from sde_pricing.config.tolerances import MAX_PATHS, MAX_SEED, MAX_STEPS
from sde_pricing.errors import InvalidConfigurationError, InvalidParameterError


def validate_finite(name: str, value: float) -> float:
    """Reject NaN and infinities."""
    if not math.isfinite(value):
        raise InvalidParameterError(name, value, "finite")
    return value


def validate_positive(name: str, value: float) -> float:
    """Require a finite value strictly greater than zero."""
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidParameterError(name, value, "> 0")
    return value


def validate_non_negative(name: str, value: float) -> float:
    """Require a finite value greater than or equal to zero."""
    if not math.isfinite(value) or value < 0.0:
        raise InvalidParameterError(name, value, ">= 0")
    return value


def validate_range(
    name: str,
    value: float,
    lower: float,
    upper: float,
    lower_inclusive: bool = True,
) -> float:
    """
    Require lower <= value <= upper (or lower < value when exclusive).

    Parameters
    ----------
    name : str
        Parameter name used in the error
    value : float
        Value to check
    lower, upper : float
        Bounds; upper is always inclusive
    lower_inclusive : bool
        Whether value == lower is accepted

    Returns
    -------
    float
        The value unchanged
    """
    bracket = "[" if lower_inclusive else "("
    constraint = f"in {bracket}{lower}, {upper}]"
    if not math.isfinite(value):
        raise InvalidParameterError(name, value, constraint)
    below = value < lower if lower_inclusive else value <= lower
    if below or value > upper:
        raise InvalidParameterError(name, value, constraint)
    return value


def validate_correlation(name: str, value: float) -> float:
    """Correlations live in [-1, 1]."""
    return validate_range(name, value, -1.0, 1.0)


def _validate_count(field: str, value: int, limit: int) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidConfigurationError(field, f"must be an integer, got {value!r}")
    if value < 1:
        raise InvalidConfigurationError(field, f"must be >= 1, got {value}")
    if value > limit:
        raise InvalidConfigurationError(field, f"must be <= {limit}, got {value}")
    return int(value)


def validate_paths(value: int, limit: int = MAX_PATHS) -> int:
    """Path count must be an integer in [1, limit]."""
    return _validate_count("n_paths", value, limit)


def validate_steps(value: int, limit: int = MAX_STEPS) -> int:
    """Step count must be an integer in [1, limit]."""
    return _validate_count("n_steps", value, limit)


def validate_seed(value: int) -> int:
    """Seeds are unsigned 64-bit integers."""
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidParameterError("seed", value, "an integer")
    if value < 0 or value > MAX_SEED:
        raise InvalidParameterError("seed", value, f"in [0, {MAX_SEED}]")
    return int(value)
