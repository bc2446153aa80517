"""
Abstract interfaces for repository collaborators.

These protocols define the minimal contracts the repository relies on,
so entities and executors can be supplied without inheriting from the
provided base classes.
"""

from typing import Any, Awaitable, Callable, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class IElasticEntity(Protocol):
    """
    A document that exposes a stable identifier.

    The identifier is used as the document ``_id`` and, stringified,
    as the routing key of every single-document call.
    """

    @property
    def id(self) -> Any:
        ...


class IRetryExecutor(Protocol):
    """
    Run an asynchronous operation with retries.

    Implementations must serialize attempts: a new attempt only starts
    once the previous one failed.
    """

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute ``operation`` until it succeeds or attempts are exhausted.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt

        Returns:
            The result of the first successful attempt
        """
        ...
