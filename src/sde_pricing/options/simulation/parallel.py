"""
Chunked map-reduce over path indices.

Paths are split into fixed chunks of contiguous indices. The chunk layout
depends only on the path count, the step count and the engine settings, never
on the number of workers, and chunk results are handed back in chunk order.
Together with per-path random streams this makes every reduction
bit-identical for any worker count.

Worker failures are not swallowed: the first exception cancels the pending
chunks and is re-raised to the caller.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

from sde_pricing.config.settings import EngineConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Chunk:
    """
    Contiguous block of path indices.

    Attributes
    ----------
    index : int
        Position of the chunk in the plan
    start : int
        First path index (inclusive)
    stop : int
        Last path index (exclusive)
    """

    index: int
    start: int
    stop: int

    @property
    def n_paths(self) -> int:
        return self.stop - self.start


def chunk_size(n_steps: int, engine: EngineConfig) -> int:
    """
    Paths per chunk for trajectories of n_steps + 1 points.

    Bounded by both engine.chunk_paths and the element budget
    engine.max_chunk_elements.
    """
    by_memory = engine.max_chunk_elements // (n_steps + 1)
    return max(1, min(engine.chunk_paths, by_memory))


def plan_chunks(n_paths: int, n_steps: int, engine: EngineConfig) -> list[Chunk]:
    """
    Split [0, n_paths) into chunks.

    Parameters
    ----------
    n_paths : int
        Total path count (>= 1)
    n_steps : int
        Steps per path (>= 1)
    engine : EngineConfig
        Chunk size limits

    Returns
    -------
    list[Chunk]
        Chunks in index order covering every path exactly once
    """
    size = chunk_size(n_steps, engine)
    return [
        Chunk(index=i, start=start, stop=min(start + size, n_paths))
        for i, start in enumerate(range(0, n_paths, size))
    ]


def map_chunks(
    task: Callable[[Chunk], T],
    chunks: Sequence[Chunk],
    n_workers: int,
) -> list[T]:
    """
    Apply task to every chunk and return results in chunk order.

    Parameters
    ----------
    task : Callable[[Chunk], T]
        Picklable callable (module-level function or functools.partial of
        one) when n_workers > 1
    chunks : Sequence[Chunk]
        Work items
    n_workers : int
        Process count; 1 runs in the calling process

    Returns
    -------
    list[T]
        task(chunk) for each chunk, in the order of chunks
    """
    if n_workers <= 1 or len(chunks) <= 1:
        return [task(chunk) for chunk in chunks]

    results: list[T | None] = [None] * len(chunks)
    max_workers = min(n_workers, len(chunks))
    logger.debug(f"Dispatching {len(chunks)} chunks to {max_workers} workers")

    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        future_to_position = {
            executor.submit(task, chunk): position for position, chunk in enumerate(chunks)
        }
        try:
            for future in as_completed(future_to_position):
                results[future_to_position[future]] = future.result()
        except Exception:
            for future in future_to_position:
                future.cancel()
            logger.error("Chunk evaluation failed; cancelled remaining chunks")
            raise

    return results  # type: ignore[return-value]


def reduce_in_order(results: Sequence, initial):
    """Left fold with + over results in the given order."""
    total = initial
    for value in results:
        total = total + value
    return total
