"""
Parameter validation.

Provides eager guards that raise typed errors before a simulation starts:
- validate_positive / validate_non_negative / validate_finite
- validate_range / validate_correlation
- validate_paths / validate_steps / validate_seed
"""

from sde_pricing.validation.guards import (
    validate_correlation,
    validate_finite,
    validate_non_negative,
    validate_paths,
    validate_positive,
    validate_range,
    validate_seed,
    validate_steps,
)

__all__ = [
    "validate_correlation",
    "validate_finite",
    "validate_non_negative",
    "validate_paths",
    "validate_positive",
    "validate_range",
    "validate_seed",
    "validate_steps",
]
