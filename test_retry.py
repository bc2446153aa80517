"""
Tests for the retry executor's attempt count, backoff and error propagation.
"""

import asyncio

import pytest

from elastic_wrapper.execution.retry import RetryExecutor


class Flaky:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, failures, error_type=ConnectionError):
        self.failures = failures
        self.error_type = error_type
        self.calls = 0
        self.errors = []

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            error = self.error_type(f"attempt {self.calls}")
            self.errors.append(error)
            raise error
        return "ok"


@pytest.mark.asyncio
async def test_always_failing_operation_is_attempted_five_times(retry_executor, sleeps):
    operation = Flaky(failures=100)

    with pytest.raises(ConnectionError) as exc_info:
        await retry_executor.execute(operation)

    assert operation.calls == 5
    assert sleeps == [1, 2, 3, 4]
    assert exc_info.value is operation.errors[-1]


@pytest.mark.asyncio
async def test_returns_first_success(retry_executor, sleeps):
    operation = Flaky(failures=2)

    assert await retry_executor.execute(operation) == "ok"
    assert operation.calls == 3
    assert sleeps == [1, 2]


@pytest.mark.asyncio
async def test_success_does_not_wait(retry_executor, sleeps):
    operation = Flaky(failures=0)

    assert await retry_executor.execute(operation) == "ok"
    assert sleeps == []


@pytest.mark.asyncio
async def test_non_retryable_errors_propagate_immediately(sleeps):
    async def record_sleep(seconds):
        sleeps.append(seconds)

    executor = RetryExecutor(
        max_attempts=5,
        retryable=lambda exc: not isinstance(exc, ValueError),
        sleep=record_sleep,
    )
    operation = Flaky(failures=3, error_type=ValueError)

    with pytest.raises(ValueError):
        await executor.execute(operation)

    assert operation.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_cancellation_is_not_retried(retry_executor, sleeps):
    operation = Flaky(failures=3, error_type=asyncio.CancelledError)

    with pytest.raises(asyncio.CancelledError):
        await retry_executor.execute(operation)

    assert operation.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_single_attempt_executor(sleeps):
    executor = RetryExecutor(max_attempts=1)
    operation = Flaky(failures=1)

    with pytest.raises(ConnectionError):
        await executor.execute(operation)

    assert operation.calls == 1


def test_rejects_non_positive_attempts():
    with pytest.raises(ValueError):
        RetryExecutor(max_attempts=0)


@pytest.mark.asyncio
async def test_cancellation_aborts_pending_backoff():
    waiting = asyncio.Event()

    async def long_sleep(seconds):
        waiting.set()
        await asyncio.sleep(3600)

    executor = RetryExecutor(max_attempts=5, sleep=long_sleep)
    operation = Flaky(failures=100)

    task = asyncio.create_task(executor.execute(operation))
    await asyncio.wait_for(waiting.wait(), timeout=5)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert operation.calls == 1
