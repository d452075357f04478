"""
Numerical thresholds for Monte Carlo SDE pricing.

Thresholds are derived from floating-point and sampling considerations, not
tuned to make a particular run pass.

Tiers:
    Tier 1 (Engine): Guards applied inside the engine on every run
    Tier 2 (Limits): Hard bounds on configuration and model parameters
    Tier 3 (Stochastic): CLT-derived tolerances used by the test suite

References:
    [T1] Glasserman (2003) Ch. 4 - Variance reduction
    [T1] Andersen (2008) - QE scheme switching threshold
"""

from typing import Final

import numpy as np

# =============================================================================
# Tier 1: Engine Guards
# =============================================================================

#: Control variance below this is treated as degenerate; the optimal
#: coefficient b is then 0 and the estimator falls back to the plain mean.
CONTROL_VARIANCE_FLOOR: Final[float] = 1e-10

#: Round-off allowance for a computed sampling variance. Values in
#: (-NEGATIVE_VARIANCE_TOLERANCE, 0) are clamped to 0, anything lower fails.
NEGATIVE_VARIANCE_TOLERANCE: Final[float] = 1e-10

#: Andersen QE switching level: quadratic branch for psi <= PSI_CRITICAL.
QE_PSI_CRITICAL: Final[float] = 1.5

#: Finite-difference gamma bump as a fraction of spot when none is given.
DEFAULT_BUMP_FRACTION: Final[float] = 1e-3

#: Largest bump accepted, as a fraction of spot.
MAX_BUMP_FRACTION: Final[float] = 0.1


# =============================================================================
# Tier 2: Configuration and Model Limits
# =============================================================================

#: Upper bound on the number of simulated paths.
MAX_PATHS: Final[int] = 1_000_000_000

#: Upper bound on the number of time steps per path.
MAX_STEPS: Final[int] = 100_000

#: Seeds are 64-bit unsigned integers.
MAX_SEED: Final[int] = 2**64 - 1

#: Heston parameter boxes
MAX_KAPPA: Final[float] = 100.0
MAX_THETA: Final[float] = 1.0
MAX_XI: Final[float] = 5.0


# =============================================================================
# Tier 3: Stochastic Tolerances (CLT-Derived)
# =============================================================================


def mc_tolerance(n_paths: int, sigma: float = 0.20, confidence: float = 3.0) -> float:
    """
    Calculate CLT-derived Monte Carlo tolerance.

    [T1] Standard error of an MC estimate is sigma/sqrt(N).
    3 sigma gives a 99.7% confidence interval.

    Parameters
    ----------
    n_paths : int
        Number of Monte Carlo paths
    sigma : float
        Estimated relative standard deviation of the payoff
    confidence : float
        Number of standard deviations (default 3 for 99.7% CI)

    Returns
    -------
    float
        Relative tolerance for an MC vs analytical comparison

    Examples
    --------
    >>> round(mc_tolerance(10_000), 4)
    0.006
    """
    return confidence * sigma / np.sqrt(n_paths)


#: European call with control variate at 1M paths vs Black-Scholes
CV_PRICE_RELATIVE_TOLERANCE: Final[float] = 0.01

#: Pathwise delta/vega/rho at 500k paths vs Black-Scholes
PATHWISE_GREEK_RELATIVE_TOLERANCE: Final[float] = 0.03

#: Finite-difference gamma at 1M antithetic paths vs Black-Scholes
GAMMA_RELATIVE_TOLERANCE: Final[float] = 0.05


TOLERANCE_REGISTRY: dict[str, float] = {
    "control_variance_floor": CONTROL_VARIANCE_FLOOR,
    "negative_variance": NEGATIVE_VARIANCE_TOLERANCE,
    "qe_psi_critical": QE_PSI_CRITICAL,
    "cv_price_relative": CV_PRICE_RELATIVE_TOLERANCE,
    "pathwise_greek_relative": PATHWISE_GREEK_RELATIVE_TOLERANCE,
    "gamma_relative": GAMMA_RELATIVE_TOLERANCE,
}


def get_tolerance(name: str) -> float:
    """
    Get tolerance by name from registry.

    Raises
    ------
    KeyError
        If tolerance name not found
    """
    if name not in TOLERANCE_REGISTRY:
        available = ", ".join(sorted(TOLERANCE_REGISTRY.keys()))
        raise KeyError(f"Unknown tolerance '{name}'. Available: {available}")
    return TOLERANCE_REGISTRY[name]
