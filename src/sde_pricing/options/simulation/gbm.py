"""
Geometric Brownian Motion (GBM) trajectories from per-path streams.

Uses the exact lognormal update, so there is no discretization bias for any
step count:

[T1] S(t+dt) = S(t) * exp((r - σ²/2) dt + σ √dt Z)

Trajectories are built a chunk of path indices at a time: the normals of
path i come from its own stream, row-wise from a StreamBatch. An antithetic
trajectory reuses exactly the same normals with the sign flipped.

See: Glasserman (2003) "Monte Carlo Methods in Financial Engineering", Ch. 3
"""

from dataclasses import dataclass

import numpy as np

from sde_pricing.options.simulation.streams import StreamBatch
from sde_pricing.validation.guards import validate_finite, validate_paths, validate_positive, validate_steps


@dataclass(frozen=True)
class GBMParams:
    """
    Parameters for GBM simulation.

    Attributes
    ----------
    spot : float
        Initial spot price
    rate : float
        Risk-free rate (annualized, decimal)
    volatility : float
        Volatility (annualized, decimal)
    time_to_expiry : float
        Time to expiry in years
    """

    spot: float
    rate: float
    volatility: float
    time_to_expiry: float

    def __post_init__(self) -> None:
        """Validate parameters."""
        validate_positive("spot", self.spot)
        validate_finite("rate", self.rate)
        validate_positive("volatility", self.volatility)
        validate_positive("time_to_expiry", self.time_to_expiry)

    @property
    def drift(self) -> float:
        """Risk-neutral log drift: r - σ²/2."""
        return self.rate - 0.5 * self.volatility**2

    @property
    def forward(self) -> float:
        """Forward price: S * exp(r*T)."""
        return self.spot * np.exp(self.rate * self.time_to_expiry)

    @property
    def discount_factor(self) -> float:
        """exp(-r*T)."""
        return float(np.exp(-self.rate * self.time_to_expiry))


@dataclass(frozen=True)
class PathResult:
    """
    Result of GBM path generation.

    Attributes
    ----------
    paths : np.ndarray
        Simulated paths, shape (n_paths, n_steps + 1)
    times : np.ndarray
        Time points, shape (n_steps + 1,)
    params : GBMParams
        Parameters used for simulation
    seed : int
        Run seed
    antithetic_paths : np.ndarray, optional
        Mirror paths driven by -Z, same shape as paths
    """

    paths: np.ndarray
    times: np.ndarray
    params: GBMParams
    seed: int
    antithetic_paths: np.ndarray | None = None

    @property
    def n_paths(self) -> int:
        """Number of paths."""
        return self.paths.shape[0]

    @property
    def n_steps(self) -> int:
        """Number of time steps."""
        return self.paths.shape[1] - 1

    @property
    def terminal_values(self) -> np.ndarray:
        """Terminal values of all paths."""
        return self.paths[:, -1]


def paths_from_normals(params: GBMParams, normals: np.ndarray) -> np.ndarray:
    """
    Build trajectories from a block of standard normals.

    Parameters
    ----------
    params : GBMParams
        GBM parameters
    normals : np.ndarray
        Shape (n_paths, n_steps); row i drives path i

    Returns
    -------
    np.ndarray
        Shape (n_paths, n_steps + 1), first column equal to spot
    """
    n_paths, n_steps = normals.shape
    dt = params.time_to_expiry / n_steps

    log_returns = params.drift * dt + params.volatility * np.sqrt(dt) * normals
    cum_log_returns = np.cumsum(log_returns, axis=1)

    paths = np.empty((n_paths, n_steps + 1))
    paths[:, 0] = params.spot
    paths[:, 1:] = params.spot * np.exp(cum_log_returns)
    return paths


def terminal_from_normals(params: GBMParams, normals: np.ndarray) -> np.ndarray:
    """
    Terminal prices from one normal per path.

    [T1] S(T) = S(0) * exp((r - σ²/2)T + σ √T Z)
    """
    t = params.time_to_expiry
    return params.spot * np.exp(params.drift * t + params.volatility * np.sqrt(t) * normals)


def generate_gbm_paths(
    params: GBMParams,
    n_paths: int,
    n_steps: int,
    seed: int,
    antithetic: bool = False,
    start: int = 0,
) -> PathResult:
    """
    Generate GBM paths for path indices [start, start + n_paths).

    Parameters
    ----------
    params : GBMParams
        GBM parameters
    n_paths : int
        Number of paths
    n_steps : int
        Time steps per path
    seed : int
        Run seed
    antithetic : bool
        Also return the mirror paths driven by -Z
    start : int
        First path index

    Returns
    -------
    PathResult
        Simulated paths and metadata

    Examples
    --------
    >>> params = GBMParams(spot=100, rate=0.05, volatility=0.20, time_to_expiry=1.0)
    >>> result = generate_gbm_paths(params, n_paths=10000, n_steps=12, seed=42)
    >>> result.paths.shape
    (10000, 13)
    """
    validate_paths(n_paths)
    validate_steps(n_steps)

    normals = StreamBatch(seed, start, start + n_paths).standard_normal(n_steps)
    times = np.linspace(0.0, params.time_to_expiry, n_steps + 1)

    return PathResult(
        paths=paths_from_normals(params, normals),
        times=times,
        params=params,
        seed=seed,
        antithetic_paths=paths_from_normals(params, -normals) if antithetic else None,
    )


def validate_gbm_simulation(
    params: GBMParams,
    n_paths: int = 100_000,
    seed: int = 42,
) -> dict:
    """
    Validate GBM simulation against theoretical moments.

    [T1] Under the risk-neutral measure:
    - E[S(T)] = S(0) * exp(r*T) (forward price)
    - Var[log(S(T)/S(0))] = σ²T

    Returns
    -------
    dict
        Validation results with theoretical vs simulated values
    """
    normals = StreamBatch(seed, 0, n_paths).standard_normal(1)[:, 0]
    terminal = terminal_from_normals(params, normals)

    expected_mean = params.forward
    expected_log_var = params.volatility**2 * params.time_to_expiry

    simulated_mean = terminal.mean()
    simulated_log_var = np.log(terminal / params.spot).var()
    se_mean = terminal.std() / np.sqrt(n_paths)

    return {
        "n_paths": n_paths,
        "theoretical_mean": expected_mean,
        "simulated_mean": simulated_mean,
        "mean_error_pct": abs(simulated_mean - expected_mean) / expected_mean * 100,
        "mean_se": se_mean,
        "mean_z_score": (simulated_mean - expected_mean) / se_mean,
        "theoretical_log_variance": expected_log_var,
        "simulated_log_variance": simulated_log_var,
        "variance_error_pct": abs(simulated_log_var - expected_log_var) / expected_log_var * 100,
        "validation_passed": abs(simulated_mean - expected_mean) / expected_mean < 0.01,
    }
