"""
Exception taxonomy for Monte Carlo SDE pricing.

Every failure raised by the package derives from SdePricingError, so callers
can catch the whole family at once. Input errors also derive from ValueError
and numerical failures from ArithmeticError, which keeps the package usable
from code that only knows the built-in hierarchy.

Hard failures carry the CRITICAL: prefix in their message.

FellerConditionWarning is not an error: it is emitted through the warnings
module when a Heston parameter set lets the variance process reach zero.
"""


class SdePricingError(Exception):
    """Base class for all sde_pricing failures."""


class InvalidParameterError(SdePricingError, ValueError):
    """
    A numeric input violates its constraint.

    Attributes
    ----------
    parameter : str
        Name of the offending parameter
    value : object
        Value that was rejected
    constraint : str
        Human-readable constraint, e.g. "> 0"
    """

    def __init__(self, parameter: str, value: object, constraint: str) -> None:
        self.parameter = parameter
        self.value = value
        self.constraint = constraint
        super().__init__(f"CRITICAL: {parameter} must be {constraint}, got {value}")


class InvalidConfigurationError(SdePricingError, ValueError):
    """
    A structural configuration value (path or step count) is unusable.

    Attributes
    ----------
    field : str
        Configuration field name
    reason : str
        Why the value was rejected
    """

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"CRITICAL: invalid configuration for {field}: {reason}")


class NumericalInstabilityError(SdePricingError, ArithmeticError):
    """
    A computation produced a NaN, an infinity or an impossible value.

    Attributes
    ----------
    method : str
        Name of the scheme or estimator that failed
    reason : str
        Description of the offending quantity
    """

    def __init__(self, method: str, reason: str) -> None:
        self.method = method
        self.reason = reason
        super().__init__(f"CRITICAL: numerical instability in {method}: {reason}")


class FellerConditionError(SdePricingError, ValueError):
    """
    Raised in strict mode when 2*kappa*theta <= xi^2.

    Attributes
    ----------
    kappa, theta, xi : float
        Offending Heston parameters
    feller_value : float
        2*kappa*theta
    """

    def __init__(self, kappa: float, theta: float, xi: float) -> None:
        self.kappa = kappa
        self.theta = theta
        self.xi = xi
        self.feller_value = 2.0 * kappa * theta
        super().__init__(
            f"CRITICAL: Feller condition violated: 2*kappa*theta = {self.feller_value:.6g} "
            f"<= xi^2 = {xi**2:.6g} (kappa={kappa}, theta={theta}, xi={xi})"
        )


class FellerConditionWarning(UserWarning):
    """The variance process can reach zero; simulation continues."""
