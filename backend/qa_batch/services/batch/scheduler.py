"""Bounded scheduler for AI invocations.

All per-conversation tasks of a job go through one BoundedScheduler, which
caps how many run at once and spaces successive dispatches by a minimum
interval to respect the AI service's rate limits.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Sequence, TypeVar

from qa_batch.services.batch.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BoundedScheduler:
    """Concurrency + spacing limiter.

    Args:
        max_concurrent: Max in-flight tasks.
        min_time: Minimum seconds between two dispatches. Uses a lock so the
            spacing applies across concurrent callers.
    """

    def __init__(self, max_concurrent: int = 5, min_time: float = 0.2):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self.min_time = max(0.0, min_time)
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._dispatch_lock = asyncio.Lock()
        self._last_dispatch: float | None = None

    async def _wait_for_slot_spacing(self) -> None:
        async with self._dispatch_lock:
            if self._last_dispatch is not None and self.min_time > 0:
                wait = self._last_dispatch + self.min_time - time.monotonic()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_dispatch = time.monotonic()

    async def run_all(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        *,
        token: CancellationToken | None = None,
    ) -> list[R | BaseException | None]:
        """Run worker(item) for every item and wait for all of them.

        The token is checked when a task acquires its slot, right before
        dispatch. Items not yet dispatched when cancellation is observed are
        skipped (result None); dispatched items run to completion.

        Returns:
            Results in input order. Failed items are exception instances.
        """
        if not items:
            return []

        async def _run_one(item: T):
            async with self._semaphore:
                if token is not None and token.cancelled:
                    return None
                await self._wait_for_slot_spacing()
                if token is not None and token.cancelled:
                    return None
                return await worker(item)

        tasks = [asyncio.create_task(_run_one(item)) for item in items]
        return await asyncio.gather(*tasks, return_exceptions=True)
