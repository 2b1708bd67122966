"""
Concurrency Helpers

Bounded concurrency, timeouts and batching for calls against the backing
database. Timeouts race the call against a timer without cancelling it, so
every wrapped operation must be safe to repeat.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from .results import Outcome, ServiceResult


logger = logging.getLogger("rental_billing.concurrency")

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyLimiter:
    """
    Counting semaphore with FIFO waiters.

    ``execute`` runs a coroutine factory while holding one permit, so at most
    ``permits`` wrapped calls are outstanding at any time.
    """

    def __init__(self, permits: int = 3):
        if permits < 1:
            raise ValueError("permits must be at least 1")
        self.permits = permits
        self._semaphore = asyncio.BoundedSemaphore(permits)
        self._active = 0
        self._waiting = 0

    @property
    def available(self) -> int:
        return self.permits - self._active

    @property
    def waiting(self) -> int:
        return self._waiting

    async def acquire(self) -> None:
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1
        self._active += 1

    def release(self) -> None:
        if self._active == 0:
            raise ValueError("release() called more times than acquire()")
        self._active -= 1
        self._semaphore.release()

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        await self.acquire()
        try:
            return await operation()
        finally:
            self.release()


def _consume_late_result(operation_name: str):
    def callback(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"{operation_name} failed after its timeout: {error}")
        else:
            logger.info(f"{operation_name} completed after its timeout")
    return callback


async def with_timeout(
    awaitable: Awaitable[Any],
    timeout_seconds: float = 15.0,
    operation_name: str = "Operation"
) -> ServiceResult:
    """
    Await an operation for at most ``timeout_seconds``.

    The operation is shielded: when the timer wins, the call keeps running in
    the background and its eventual outcome is only logged. A ServiceResult
    returned by the operation is passed through as is; any other value is
    wrapped in a successful result.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        value = await asyncio.wait_for(asyncio.shield(task), timeout_seconds)
    except asyncio.TimeoutError as e:
        task.add_done_callback(_consume_late_result(operation_name))
        logger.warning(f"{operation_name} timed out after {timeout_seconds}s")
        return ServiceResult.fail(
            f"{operation_name} timed out after {timeout_seconds}s",
            outcome=Outcome.TIMEOUT,
            error=e
        )
    except Exception as e:
        logger.error(f"Error in {operation_name}: {e}", exc_info=True)
        return ServiceResult.fail(f"Error in {operation_name}: {e}", error=e)

    if isinstance(value, ServiceResult):
        return value
    return ServiceResult.ok(value)


def _retry_transient(result: ServiceResult) -> bool:
    return result.outcome in (Outcome.TIMEOUT, Outcome.STORAGE_ERROR)


async def with_timeout_and_retry(
    operation: Callable[[], Awaitable[Any]],
    timeout_seconds: float = 8.0,
    retries: int = 2,
    retry_delay_seconds: float = 1.0,
    operation_name: str = "Operation",
    should_retry: Optional[Callable[[ServiceResult], bool]] = None
) -> ServiceResult:
    """Run ``operation`` with a timeout, retrying transient failures"""
    should_retry = should_retry or _retry_transient
    result = None

    for attempt in range(retries + 1):
        if attempt > 0:
            logger.info(f"Retrying {operation_name} (attempt {attempt}/{retries})")
            await asyncio.sleep(retry_delay_seconds)

        name = operation_name if attempt == 0 else f"{operation_name} (attempt {attempt + 1})"
        result = await with_timeout(operation(), timeout_seconds, name)

        if result.success or not should_retry(result):
            return result

    logger.error(f"{operation_name} failed after {retries + 1} attempts")
    return result


async def process_batches(
    items: Sequence[T],
    batch_size: int,
    max_concurrency: int,
    handler: Callable[[T], Awaitable[R]],
    on_batch_complete: Optional[Callable[[List[R], int], None]] = None
) -> List[R]:
    """
    Process ``items`` in consecutive batches.

    Within a batch at most ``max_concurrency`` handlers run at once; the next
    batch starts when the previous one has finished. Results keep input order.
    Handlers are expected to report failures in their return value.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    results: List[R] = []
    for batch_index, start in enumerate(range(0, len(items), batch_size)):
        batch = items[start:start + batch_size]
        limiter = ConcurrencyLimiter(max_concurrency)
        batch_results = await asyncio.gather(
            *(limiter.execute(lambda item=item: handler(item)) for item in batch)
        )
        batch_results = list(batch_results)
        results.extend(batch_results)

        if on_batch_complete:
            on_batch_complete(batch_results, batch_index)

    return results
