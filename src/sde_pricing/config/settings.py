"""
Frozen configuration settings for Monte Carlo SDE pricing.

All configuration is immutable (frozen dataclasses) so that a run is fully
described by its inputs. Worker count and chunk size may be overridden from
the environment; neither changes a result, only how fast it is produced.
Overrides are read when a run is planned, so a malformed value fails that
run rather than the package import.
"""

import os
from dataclasses import dataclass

from sde_pricing.config.tolerances import MAX_PATHS, MAX_STEPS

# =============================================================================
# Engine Configuration
# =============================================================================


def _resolve_int_env(name: str, default: int) -> int:
    """
    Read a positive integer override from the environment.

    Parameters
    ----------
    name : str
        Environment variable name
    default : int
        Value used when the variable is unset or empty

    Returns
    -------
    int
        Resolved value

    Raises
    ------
    ValueError
        If the variable is set but is not a positive integer
    """
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"CRITICAL: {name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"CRITICAL: {name} must be >= 1, got {value}")
    return value


def _resolve_workers() -> int:
    """
    Resolve worker count with environment variable override.

    Priority:
    1. SDE_PRICING_WORKERS environment variable (if set)
    2. Default: 1 (run in the calling process)
    """
    return _resolve_int_env("SDE_PRICING_WORKERS", 1)


def _resolve_chunk_paths() -> int:
    """Resolve the per-chunk path cap (SDE_PRICING_CHUNK_PATHS, default 65536)."""
    return _resolve_int_env("SDE_PRICING_CHUNK_PATHS", 65_536)


@dataclass(frozen=True)
class EngineConfig:
    """
    Immutable parallel-execution configuration.

    Attributes
    ----------
    n_workers : int, optional
        Worker processes used for path chunks. 1 runs in-process.
        None reads SDE_PRICING_WORKERS when a run is planned.
    max_chunk_paths : int, optional
        Largest number of path indices in one chunk.
        None reads SDE_PRICING_CHUNK_PATHS when a run is planned.
    max_chunk_elements : int
        Bound on paths * (steps + 1) for one chunk, which bounds the memory
        held by a trajectory block (4M doubles = 32 MB).
    """

    n_workers: int | None = None
    max_chunk_paths: int | None = None
    max_chunk_elements: int = 4_194_304

    def __post_init__(self) -> None:
        """Validate explicit values; environment overrides are read on use."""
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError(f"CRITICAL: n_workers must be >= 1, got {self.n_workers}")
        if self.max_chunk_paths is not None and self.max_chunk_paths < 1:
            raise ValueError(f"CRITICAL: max_chunk_paths must be >= 1, got {self.max_chunk_paths}")
        if self.max_chunk_elements < 2:
            raise ValueError(
                f"CRITICAL: max_chunk_elements must be >= 2, got {self.max_chunk_elements}"
            )

    @property
    def workers(self) -> int:
        """
        Worker count for the next run.

        Raises
        ------
        ValueError
            If SDE_PRICING_WORKERS is read and is not a positive integer
        """
        return _resolve_workers() if self.n_workers is None else self.n_workers

    @property
    def chunk_paths(self) -> int:
        """Per-chunk path cap for the next run (SDE_PRICING_CHUNK_PATHS when unset)."""
        return _resolve_chunk_paths() if self.max_chunk_paths is None else self.max_chunk_paths


# =============================================================================
# Simulation Defaults
# =============================================================================

@dataclass(frozen=True)
class SimulationDefaults:
    """
    Default market and run parameters. [T3: Assumptions]

    Used by SimulationConfig.default() and the examples in the test suite.
    """

    n_paths: int = 1_000_000
    n_steps: int = 1
    spot: float = 100.0
    rate: float = 0.01
    volatility: float = 0.2
    time_to_expiry: float = 1.0
    seed: int = 12345
    antithetic: bool = True
    control_variate: bool = True

    # Hard limits (see tolerances.py)
    max_paths: int = MAX_PATHS
    max_steps: int = MAX_STEPS


# =============================================================================
# Master Configuration
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """
    Master frozen configuration combining all sub-configs.

    Usage
    -----
    >>> from sde_pricing.config.settings import SETTINGS
    >>> SETTINGS.simulation.seed
    12345
    """

    engine: EngineConfig = EngineConfig()
    simulation: SimulationDefaults = SimulationDefaults()


# Singleton instance - import this
SETTINGS = Settings()
