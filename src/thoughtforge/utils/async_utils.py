"""
Async Utilities for Rate Limiting and Retry Strategy

This module provides exponential backoff for external collaborator calls, decorators
for controlling async function call rates, and a sliding-window rate limiter.
"""

import asyncio
import functools
from functools import wraps
from typing import Any, Awaitable, Callable, Iterable, Optional, Pattern, TypeVar, Union

from .error_handling import AI_RETRYABLE_PATTERNS, NonRetryableError, is_retryable_error

T = TypeVar("T")


async def with_exponential_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    retryable_errors: Optional[Iterable[Union[str, Pattern]]] = None,
    timeout: Optional[float] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    logger=None,
    caller: str = "unknown",
) -> T:
    """
    Call ``fn`` with bounded retries and exponential backoff.

    A timeout is treated like any other transient failure. Non-retryable errors are
    re-raised immediately; after ``max_retries`` retries the last error is re-raised.

    Args:
        fn: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        initial_delay: Delay in seconds before the first retry
        max_delay: Cap on any single delay
        backoff_factor: Multiplier applied after every retry
        retryable_errors: Message patterns marking an error transient
            (defaults to the AI provider patterns)
        timeout: Optional per-attempt timeout in seconds
        sleep: Awaitable sleep function (injectable for tests)
        logger: Optional DebugLogger
        caller: Name used in log lines
    """
    patterns = list(retryable_errors) if retryable_errors is not None else AI_RETRYABLE_PATTERNS
    delay = initial_delay
    last_error: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        try:
            if timeout is not None:
                return await asyncio.wait_for(fn(), timeout=timeout)
            return await fn()
        except Exception as e:
            last_error = e

            if not is_retryable_error(e, patterns):
                if logger:
                    logger.log_warning(f"{caller}: non-retryable error: {e}", "async_utils")
                raise

            if attempt == max_retries:
                if logger:
                    logger.log_error(f"{caller}: all {max_retries + 1} attempts failed", "async_utils", e)
                raise

            if logger:
                logger.log_warning(
                    f"{caller}: attempt {attempt + 1}/{max_retries + 1} failed, retrying in {delay:.2f}s: {e}",
                    "async_utils"
                )
            await sleep(delay)
            delay = min(delay * backoff_factor, max_delay)

    # Unreachable: the loop either returns or raises
    raise NonRetryableError(f"{caller}: failed after {max_retries + 1} attempts: {last_error}")


async def with_ai_model_backoff(fn: Callable[[], Awaitable[T]], **options) -> T:
    """Exponential backoff tuned for model providers: 3 retries, 2s initial, 15s cap"""
    params = dict(
        max_retries=3,
        initial_delay=2.0,
        max_delay=15.0,
        backoff_factor=2.0,
        retryable_errors=AI_RETRYABLE_PATTERNS,
    )
    params.update(options)
    return await with_exponential_backoff(fn, **params)


def limit_async_func_call(max_size: int = 2, waitting_time: float = 0.0001):
    """
    Add restriction of maximum async calling times for a async func.

    Args:
        max_size: Maximum concurrent calls.
        waitting_time: Sleep time when waiting for available slot.
    """

    def decro(func):
        """Not using async.Semaphore to avoid use nest-asyncio"""
        __current_size = 0

        @wraps(func)
        async def wait_func(*args, **kwargs):
            nonlocal __current_size

            while __current_size >= max_size:
                await asyncio.sleep(waitting_time)
            __current_size += 1
            try:
                return await func(*args, **kwargs)
            finally:
                __current_size -= 1

        return wait_func

    return decro


class AsyncRateLimiter:
    """
    Rate limiter for async operations with configurable rates.
    """
    def __init__(self, max_calls: int, time_window: float):
        self.max_calls = max_calls
        self.time_window = time_window
        self.calls = []
        self._lock = asyncio.Lock()

    async def acquire(self):
        """Acquire permission to make a call, waiting if necessary"""
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()

            self.calls = [call_time for call_time in self.calls
                          if now - call_time < self.time_window]

            while len(self.calls) >= self.max_calls:
                sleep_time = self.time_window - (now - self.calls[0])
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)
                now = loop.time()
                self.calls = [call_time for call_time in self.calls
                              if now - call_time < self.time_window]

            self.calls.append(now)


def rate_limited(max_calls: int, time_window: float):
    """
    Rate limiting decorator using AsyncRateLimiter.

    Args:
        max_calls: Maximum number of calls allowed
        time_window: Time window in seconds
    """
    rate_limiter = AsyncRateLimiter(max_calls, time_window)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            await rate_limiter.acquire()
            return await func(*args, **kwargs)
        return wrapper
    return decorator
