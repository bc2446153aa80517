"""
Retry executor: Tenacity-based linear backoff around engine calls.

Attempt *i* that fails is followed by a wait of *i* seconds before the next
attempt; once ``max_attempts`` attempts failed, the last error is raised.
Every ``Exception`` is retried unless a narrower predicate is given.
Cancellation is never retried and interrupts a pending backoff wait.

Example:
    >>> executor = RetryExecutor(max_attempts=5)
    >>> response = await executor.execute(lambda: client.count(index="orders"))
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


def _retry_everything(exc: BaseException) -> bool:
    return isinstance(exc, Exception)


class RetryExecutor:
    """Serializes attempts of one logical call with linear backoff."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retryable: Optional[Callable[[BaseException], bool]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize retry executor.

        Args:
            max_attempts: Total number of attempts, first call included
            retryable: Predicate selecting retryable errors (default: all)
            sleep: Coroutine used for backoff waits
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.retryable = retryable or _retry_everything
        self.sleep = sleep

    def _policy(self) -> AsyncRetrying:
        predicate = self.retryable

        return AsyncRetrying(
            sleep=self.sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=1, increment=1),
            retry=retry_if_exception(
                lambda exc: isinstance(exc, Exception) and predicate(exc)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` until it succeeds or attempts are exhausted.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt

        Returns:
            Result of the first successful attempt

        Raises:
            The last error raised by ``operation``
        """
        async for attempt in self._policy():
            with attempt:
                return await operation()
        raise AssertionError("unreachable: retry policy ended without outcome")
