"""
Retry scheduler with exponential backoff.

Each call schedules at most one further invocation of an operation; callers
decide whether to schedule again. Scheduled retries are returned as handles
that can be cancelled on teardown.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set


logger = logging.getLogger(__name__)


class RetryHandle:
    """
    Handle for a single scheduled retry.

    Attributes:
        delay_ms: Backoff delay the retry was scheduled with
        fired: True once the delay elapsed and the operation was started
    """

    def __init__(self, delay_ms: int):
        self.delay_ms = delay_ms
        self.fired = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._task is not None and self._task.cancelled()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> bool:
        """Cancel the retry if it has not fired. Returns True if cancelled."""
        if self.fired or self._task is None:
            return False
        return self._task.cancel()

    def __await__(self):
        return self._task.__await__()


class RetryScheduler:
    """
    Exponential backoff scheduler: delay = 2^retry_count * base_delay_ms.

    Attributes:
        retry_count: Number of retries fired so far (zero-based counter)
        base_delay_ms: Backoff base in milliseconds
    """

    def __init__(
        self,
        base_delay_ms: int = 1000,
        sleep: Callable[[float], Awaitable[None]] = None,
    ):
        self.retry_count = 0
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep or asyncio.sleep
        self._pending: Set[RetryHandle] = set()

    def get_delay_ms(self, retry_count: Optional[int] = None) -> int:
        """Backoff delay in milliseconds for the given (or current) count."""
        count = self.retry_count if retry_count is None else retry_count
        return (2 ** count) * self.base_delay_ms

    def reset(self) -> None:
        self.retry_count = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule_retry(
        self,
        operation: Callable[[], Awaitable[object]],
        max_retries: int,
    ) -> Optional[RetryHandle]:
        """
        Schedule one more invocation of ``operation`` after the backoff delay.

        Must be called from within a running event loop.

        Args:
            operation: Zero-argument coroutine function to invoke
            max_retries: Ceiling for ``retry_count``

        Returns:
            A cancellable handle, or None when the ceiling has been reached
        """
        if self.retry_count >= max_retries:
            logger.info(
                f"Retry ceiling reached ({self.retry_count}/{max_retries}); not scheduling"
            )
            return None

        delay_ms = self.get_delay_ms()
        logger.info(f"Scheduling retry {self.retry_count + 1}/{max_retries} in {delay_ms}ms")

        handle = RetryHandle(delay_ms)
        handle._task = asyncio.get_running_loop().create_task(
            self._fire(handle, operation)
        )
        self._pending.add(handle)
        handle._task.add_done_callback(lambda _: self._pending.discard(handle))
        return handle

    async def _fire(self, handle: RetryHandle, operation: Callable[[], Awaitable[object]]):
        await self._sleep(handle.delay_ms / 1000)
        handle.fired = True
        self.retry_count += 1
        return await operation()

    def cancel_all(self) -> int:
        """Cancel every retry that has not fired yet. Returns the count cancelled."""
        return sum(1 for handle in list(self._pending) if handle.cancel())
