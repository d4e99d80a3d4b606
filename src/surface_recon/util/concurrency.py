"""Concurrency primitives for controlled parallel execution.

We want speed but not chaos - every fan-out goes through a semaphore with
a fixed limit, so one scan never has more than N network operations in
flight no matter how many items the caller hands over.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Iterable, Iterator, List, Sequence, TypeVar, Union

T = TypeVar('T')
R = TypeVar('R')


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of `items`, each at most `size` long.

    Order is preserved across chunks.
    """
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class ConcurrencyController:
    """Bounded worker pool for one scan.

    Each item's result lands in its own slot of the returned list, so the
    caller aggregates after the batch settles and no shared state is written
    concurrently.
    """

    def __init__(self, max_workers: int = 10):
        """Initialize with the maximum number of concurrent operations."""
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.semaphore = asyncio.Semaphore(max_workers)
        self.max_workers = max_workers

    @asynccontextmanager
    async def acquire(self):
        """Hold one worker slot.

        Usage:
            async with controller.acquire():
                await do_network_call()
        """
        async with self.semaphore:
            yield

    async def gather(
        self,
        items: Iterable[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> List[Union[R, BaseException]]:
        """Run `worker` over every item with at most max_workers in flight.

        Waits for all of them. Results come back in input order; a worker
        that raised contributes its exception instead of a value, so one
        failure never cancels its siblings.
        """
        async def _run(item: T) -> Any:
            async with self.acquire():
                return await worker(item)

        return await asyncio.gather(*(_run(item) for item in items), return_exceptions=True)
