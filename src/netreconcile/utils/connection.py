"""Connection retry utilities."""
import logging
from typing import Any, Awaitable, Callable, TypeVar

import paramiko
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_incrementing,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Network exceptions worth another connection attempt
RETRYABLE_EXCEPTIONS = (
    ConnectionRefusedError,
    ConnectionResetError,
    TimeoutError,
    OSError,
    EOFError,
    paramiko.SSHException,
)


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = 1,
    start_wait: float = 1,
    increment: float = 1,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> T:
    """Await ``func(*args)``, retrying with a linearly growing wait.

    Args:
        func: Coroutine function to call
        attempts: Maximum number of attempts (comes from the device settings)
        start_wait: Wait before the second attempt (seconds)
        increment: Added to the wait after every failed attempt (seconds)
        exceptions: Tuple of exception types to retry on
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_incrementing(start=start_wait, increment=increment),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await func(*args)
    raise AssertionError("unreachable")  # pragma: no cover
