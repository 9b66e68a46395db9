"""
Bounded-concurrency batch processing.

Items are split into consecutive chunks of `concurrency`; each chunk is
awaited with asyncio.gather before the next one starts.
"""

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def process_batch(
    items: Sequence[T],
    concurrency: int,
    processor: Callable[[T], Awaitable[R]]
) -> List[R]:
    """
    Apply an async processor to every item, at most `concurrency` at a time.

    Results are returned in input order regardless of completion order.
    Processors are expected to turn their own failures into results; an
    exception escaping a processor propagates to the caller.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    results: List[R] = []
    for start in range(0, len(items), concurrency):
        chunk = items[start:start + concurrency]
        results.extend(await asyncio.gather(*(processor(item) for item in chunk)))
    return results
