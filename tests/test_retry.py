from __future__ import annotations

import asyncio

import allure
import pytest
from conftest import FakeClock, RecordingSleep

from studio_queue.config import RetrySettings
from studio_queue.queue.errors import ApiError, SafetyBlockedError
from studio_queue.queue.rate_limiter import RateLimiter
from studio_queue.queue.retry import RetryPolicy, retry_operation

pytestmark = [
    allure.epic("Generation Queue"),
    allure.feature("Retry"),
]


class FlakyOperation:
    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_transient_failures_are_retried_with_backoff(
    recording_sleep: RecordingSleep,
    fake_clock: FakeClock,
) -> None:
    operation = FlakyOperation([ApiError("quota", status_code=429)] * 2)
    limiter = RateLimiter(clock=fake_clock)

    result = asyncio.run(
        retry_operation(
            operation,
            policy=RetryPolicy(max_retries=3, base_delay_seconds=2.0),
            rate_limiter=limiter,
            sleep=recording_sleep,
        ),
    )

    assert result == "ok"
    assert operation.calls == 3
    assert recording_sleep.delays == [2.0, 4.0]
    assert limiter.rpm() == 2


def test_non_transient_failure_is_raised_immediately(recording_sleep: RecordingSleep) -> None:
    operation = FlakyOperation([ApiError("bad request", status_code=400)])

    with pytest.raises(ApiError):
        asyncio.run(retry_operation(operation, sleep=recording_sleep))

    assert operation.calls == 1
    assert recording_sleep.delays == []


def test_typed_generation_errors_are_not_retried(recording_sleep: RecordingSleep) -> None:
    operation = FlakyOperation([SafetyBlockedError("blocked")])

    with pytest.raises(SafetyBlockedError):
        asyncio.run(retry_operation(operation, sleep=recording_sleep))

    assert operation.calls == 1


def test_last_transient_error_propagates_when_attempts_run_out(
    recording_sleep: RecordingSleep,
) -> None:
    operation = FlakyOperation([ApiError("unavailable", status_code=503)] * 10)

    with pytest.raises(ApiError) as exc_info:
        asyncio.run(
            retry_operation(
                operation,
                policy=RetryPolicy(max_retries=3, base_delay_seconds=2.0),
                sleep=recording_sleep,
            ),
        )

    assert exc_info.value.status_code == 503
    assert operation.calls == 4
    assert recording_sleep.delays == [2.0, 4.0, 8.0]


def test_resource_exhausted_message_without_status_code_is_retried(
    recording_sleep: RecordingSleep,
) -> None:
    operation = FlakyOperation([RuntimeError("RESOURCE_EXHAUSTED: try later")])

    assert asyncio.run(retry_operation(operation, sleep=recording_sleep)) == "ok"
    assert operation.calls == 2
    assert recording_sleep.delays == [2.0]


def test_zero_retries_means_single_attempt(recording_sleep: RecordingSleep) -> None:
    operation = FlakyOperation([ApiError("quota", status_code=429)])

    with pytest.raises(ApiError):
        asyncio.run(
            retry_operation(
                operation,
                policy=RetryPolicy(max_retries=0),
                sleep=recording_sleep,
            ),
        )

    assert operation.calls == 1


def test_policy_from_settings() -> None:
    policy = RetryPolicy.from_settings(RetrySettings(max_retries=5, base_delay_seconds=3.0))

    assert policy.max_retries == 5
    assert [policy.delay_for(attempt) for attempt in range(3)] == [3.0, 6.0, 12.0]


def test_quota_message_with_server_error_status_is_retried(
    recording_sleep: RecordingSleep,
) -> None:
    operation = FlakyOperation([ApiError("RESOURCE_EXHAUSTED", status_code=500)])

    assert asyncio.run(retry_operation(operation, sleep=recording_sleep)) == "ok"
    assert operation.calls == 2
    assert recording_sleep.delays == [2.0]
