"""
Option payoffs on simulated trajectories.

A payoff is a small tagged value: a PayoffKind plus the strike and, for
barrier options, the barrier level. evaluate() works on one trajectory or on
a block of trajectories (one row per path) so the engine can apply it to a
whole chunk at once.

Conventions:
- A trajectory includes the initial spot as its first point.
- The Asian average is arithmetic over every trajectory point, initial spot
  included.
- Up-and-out options are knocked out when any point is >= barrier.

See: Hull (2021) Ch. 26 - Exotic options
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from sde_pricing.errors import InvalidParameterError
from sde_pricing.validation.guards import validate_positive


class OptionType(Enum):
    """Option type enumeration."""

    CALL = "call"
    PUT = "put"


class PayoffKind(Enum):
    """Supported payoff families."""

    EUROPEAN_CALL = "european_call"
    EUROPEAN_PUT = "european_put"
    ASIAN_CALL = "asian_call"
    UP_AND_OUT_CALL = "up_and_out_call"
    UP_AND_OUT_PUT = "up_and_out_put"

    @property
    def option_type(self) -> OptionType:
        """Call or put."""
        if self in (PayoffKind.EUROPEAN_PUT, PayoffKind.UP_AND_OUT_PUT):
            return OptionType.PUT
        return OptionType.CALL

    @property
    def is_barrier(self) -> bool:
        """Whether the kind carries a barrier level."""
        return self in (PayoffKind.UP_AND_OUT_CALL, PayoffKind.UP_AND_OUT_PUT)


@dataclass(frozen=True)
class Payoff:
    """
    Immutable payoff description.

    Attributes
    ----------
    kind : PayoffKind
        Payoff family
    strike : float
        Strike price (> 0)
    barrier : float, optional
        Knock-out level; required for barrier kinds, forbidden otherwise

    Examples
    --------
    >>> payoff = Payoff.european_call(100.0)
    >>> payoff.evaluate(np.array([100.0, 110.0]))
    10.0
    """

    kind: PayoffKind
    strike: float
    barrier: float | None = None

    def __post_init__(self) -> None:
        """Validate strike and barrier."""
        validate_positive("strike", self.strike)
        if self.kind.is_barrier:
            if self.barrier is None:
                raise InvalidParameterError("barrier", None, f"set for {self.kind.value}")
            validate_positive("barrier", self.barrier)
        elif self.barrier is not None:
            raise InvalidParameterError("barrier", self.barrier, f"None for {self.kind.value}")

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def european_call(cls, strike: float) -> "Payoff":
        return cls(PayoffKind.EUROPEAN_CALL, strike)

    @classmethod
    def european_put(cls, strike: float) -> "Payoff":
        return cls(PayoffKind.EUROPEAN_PUT, strike)

    @classmethod
    def asian_call(cls, strike: float) -> "Payoff":
        return cls(PayoffKind.ASIAN_CALL, strike)

    @classmethod
    def up_and_out_call(cls, strike: float, barrier: float) -> "Payoff":
        return cls(PayoffKind.UP_AND_OUT_CALL, strike, barrier)

    @classmethod
    def up_and_out_put(cls, strike: float, barrier: float) -> "Payoff":
        return cls(PayoffKind.UP_AND_OUT_PUT, strike, barrier)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    @property
    def option_type(self) -> OptionType:
        return self.kind.option_type

    @property
    def is_path_dependent(self) -> bool:
        """Whether the payoff looks at more than the terminal price."""
        return self.kind not in (PayoffKind.EUROPEAN_CALL, PayoffKind.EUROPEAN_PUT)

    def evaluate(self, prices: np.ndarray) -> float | np.ndarray:
        """
        Evaluate the payoff on one or many trajectories.

        Parameters
        ----------
        prices : np.ndarray
            Shape (n_points,) for a single trajectory or (n_paths, n_points)
            for a block, first column being the initial spot

        Returns
        -------
        float or np.ndarray
            Payoff (>= 0); a float for 1-D input, shape (n_paths,) otherwise
        """
        block = np.asarray(prices, dtype=np.float64)
        single = block.ndim == 1
        if single:
            block = block[np.newaxis, :]
        if block.ndim != 2 or block.shape[1] == 0:
            raise ValueError(f"CRITICAL: prices must be a non-empty 1-D or 2-D array, got shape {np.shape(prices)}")

        terminal = block[:, -1]
        kind = self.kind
        if kind is PayoffKind.EUROPEAN_CALL:
            values = np.maximum(terminal - self.strike, 0.0)
        elif kind is PayoffKind.EUROPEAN_PUT:
            values = np.maximum(self.strike - terminal, 0.0)
        elif kind is PayoffKind.ASIAN_CALL:
            values = np.maximum(block.mean(axis=1) - self.strike, 0.0)
        else:
            alive = np.all(block < self.barrier, axis=1)
            if kind is PayoffKind.UP_AND_OUT_CALL:
                intrinsic = np.maximum(terminal - self.strike, 0.0)
            else:
                intrinsic = np.maximum(self.strike - terminal, 0.0)
            values = np.where(alive, intrinsic, 0.0)

        if single:
            return float(values[0])
        return values
