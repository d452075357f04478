"""
Reproducible per-path random streams.

Every path index owns an independent stream that depends only on
(seed, path_index), so a path draws the same numbers no matter which worker
or chunk simulates it. Streams are counter based (splitmix64):

    key(seed, i)  = mix(mix(seed) + (i + 1) * GAMMA)
    draw(key, k)  = mix(key + (k + 1) * GAMMA)          k = 0, 1, 2, ...

Hashing the path index into the key keeps neighbouring streams unrelated;
a plain seed + i counter would make stream i+1 a shifted copy of stream i.

Two views of the same numbers:
- RandomStream: one path, Python integers, used by the Heston stepper
- StreamBatch: a contiguous range of paths as NumPy uint64 arrays, used by
  the vectorized GBM engine. Row j of a batch reproduces the stream of path
  start + j (bitwise for uniforms, to libm rounding for normals).

[T1] Uniforms lie in the open interval (0, 1): ((x >> 12) + 0.5) * 2^-52.
[T1] Normals: Box-Muller on consecutive uniform pairs (u1, u2); the cosine
     branch is returned first and the sine branch is kept as the stream's
     own spare for the next call.

References
----------
[T1] Steele, Lea & Flood (2014). Fast splittable pseudorandom number generators.
[T1] Salmon et al. (2011). Parallel random numbers: as easy as 1, 2, 3.
"""

import math

import numpy as np

from sde_pricing.validation.guards import validate_seed

_MASK = 0xFFFFFFFFFFFFFFFF
_GAMMA = 0x9E3779B97F4A7C15
_MIX1 = 0xBF58476D1CE4E5B9
_MIX2 = 0x94D049BB133111EB
_UNIT = 2.0**-52
_TWO_PI = 2.0 * math.pi


def _mix64(z: int) -> int:
    """splitmix64 finalizer on a 64-bit integer."""
    z = ((z ^ (z >> 30)) * _MIX1) & _MASK
    z = ((z ^ (z >> 27)) * _MIX2) & _MASK
    return z ^ (z >> 31)


def stream_key(seed: int, path_index: int) -> int:
    """64-bit key of the stream for (seed, path_index)."""
    return _mix64((_mix64(seed) + (path_index + 1) * _GAMMA) & _MASK)


class RandomStream:
    """
    Deterministic draw sequence for one path.

    Not thread-safe; a stream belongs to the path that owns it.

    Parameters
    ----------
    seed : int
        Run seed, unsigned 64-bit
    path_index : int
        Non-negative path index
    """

    __slots__ = ("seed", "path_index", "_key", "_counter", "_spare")

    def __init__(self, seed: int, path_index: int) -> None:
        if path_index < 0:
            raise ValueError(f"CRITICAL: path_index must be >= 0, got {path_index}")
        self.seed = validate_seed(seed)
        self.path_index = int(path_index)
        self._key = stream_key(self.seed, self.path_index)
        self._counter = 0
        self._spare: float | None = None

    def __repr__(self) -> str:
        return f"RandomStream(seed={self.seed}, path_index={self.path_index}, draws={self._counter})"

    def next_u64(self) -> int:
        """Next raw 64-bit draw."""
        self._counter += 1
        return _mix64((self._key + self._counter * _GAMMA) & _MASK)

    def uniform(self) -> float:
        """Uniform draw in the open interval (0, 1)."""
        return ((self.next_u64() >> 12) + 0.5) * _UNIT

    def normal(self) -> float:
        """Standard normal draw (Box-Muller with a stream-local spare)."""
        if self._spare is not None:
            value = self._spare
            self._spare = None
            return value
        radius = math.sqrt(-2.0 * math.log(self.uniform()))
        angle = _TWO_PI * self.uniform()
        self._spare = radius * math.sin(angle)
        return radius * math.cos(angle)


def stream_for(seed: int, path_index: int) -> RandomStream:
    """
    Stream for one path of a run.

    Parameters
    ----------
    seed : int
        Run seed
    path_index : int
        Path index (>= 0)

    Returns
    -------
    RandomStream
        Fresh stream positioned at its first draw
    """
    return RandomStream(seed, path_index)


class StreamBatch:
    """
    Vectorized streams for the path indices [start, stop).

    Each call draws from the beginning of every stream, so a batch is meant
    to be asked once for all the numbers a path needs.

    Parameters
    ----------
    seed : int
        Run seed
    start, stop : int
        Half-open range of path indices

    Examples
    --------
    >>> batch = StreamBatch(seed=7, start=0, stop=4)
    >>> batch.uniform(3).shape
    (4, 3)
    """

    def __init__(self, seed: int, start: int, stop: int) -> None:
        if start < 0 or stop < start:
            raise ValueError(f"CRITICAL: invalid path range [{start}, {stop})")
        self.seed = validate_seed(seed)
        self.start = int(start)
        self.stop = int(stop)
        indices = np.arange(self.start, self.stop, dtype=np.uint64)
        seeded = np.uint64(_mix64(self.seed))
        self._keys = _mix64_array(seeded + (indices + np.uint64(1)) * np.uint64(_GAMMA))

    @property
    def n_paths(self) -> int:
        return self.stop - self.start

    def raw(self, count: int) -> np.ndarray:
        """First `count` raw draws of every stream, shape (n_paths, count), uint64."""
        counters = np.arange(1, count + 1, dtype=np.uint64) * np.uint64(_GAMMA)
        return _mix64_array(self._keys[:, np.newaxis] + counters[np.newaxis, :])

    def uniform(self, count: int) -> np.ndarray:
        """First `count` uniforms of every stream, shape (n_paths, count)."""
        bits = self.raw(count) >> np.uint64(12)
        return (bits.astype(np.float64) + 0.5) * _UNIT

    def standard_normal(self, count: int) -> np.ndarray:
        """
        First `count` normals of every stream, shape (n_paths, count).

        Column 2m is the cosine branch of the m-th uniform pair and column
        2m + 1 its sine branch, matching RandomStream.normal().
        """
        n_pairs = (count + 1) // 2
        uniforms = self.uniform(2 * n_pairs)
        radius = np.sqrt(-2.0 * np.log(uniforms[:, 0::2]))
        angle = _TWO_PI * uniforms[:, 1::2]
        normals = np.empty((self.n_paths, 2 * n_pairs), dtype=np.float64)
        normals[:, 0::2] = radius * np.cos(angle)
        normals[:, 1::2] = radius * np.sin(angle)
        return normals[:, :count]


def _mix64_array(z: np.ndarray) -> np.ndarray:
    """splitmix64 finalizer on a uint64 array (wrapping arithmetic)."""
    z = (z ^ (z >> np.uint64(30))) * np.uint64(_MIX1)
    z = (z ^ (z >> np.uint64(27))) * np.uint64(_MIX2)
    return z ^ (z >> np.uint64(31))
