from __future__ import annotations

import asyncio

import pytest

from market_aggregator.errors import ErrorKind, NotFoundError, RateLimitedError, TransientError
from market_aggregator.observability import get_sample_value, reset_prometheus_metrics
from market_aggregator.retry import RetryConfig, RetryPolicy, with_retry

from utils.mock_upstream import RecordingSleep


class FlakyCall:
    def __init__(self, *outcomes: object) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        outcome = self._outcomes[min(self.calls, len(self._outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _transient() -> TransientError:
    return TransientError("upstream 502", provider="p1", status_code=502)


def test_delay_grows_linearly_and_rate_limits_wait_longer() -> None:
    config = RetryConfig(max_attempts=3, base_delay_seconds=1.0, rate_limit_multiplier=2.5)

    assert config.delay_before(2, ErrorKind.TRANSIENT) == 2.0
    assert config.delay_before(3, ErrorKind.TRANSIENT) == 3.0
    assert config.delay_before(2, ErrorKind.RATE_LIMITED) == 5.0
    # The multiplier never drops below 2x for rate limits.
    assert RetryConfig(rate_limit_multiplier=1.0).delay_before(2, ErrorKind.RATE_LIMITED) == 4.0
    assert RetryConfig(base_delay_seconds=20.0).delay_before(3, ErrorKind.TRANSIENT) == 30.0


@pytest.mark.asyncio
async def test_transient_errors_are_retried_up_to_max_attempts() -> None:
    sleep = RecordingSleep()
    call = FlakyCall(_transient())
    policy = RetryPolicy(RetryConfig(max_attempts=3, base_delay_seconds=1.0), provider="p1", sleep=sleep)

    with pytest.raises(TransientError) as excinfo:
        await policy.run(call, label="bitcoin")

    assert call.calls == 3
    assert excinfo.value.attempts == 3
    assert sleep.delays == [2.0, 3.0]


@pytest.mark.asyncio
async def test_not_found_is_never_retried() -> None:
    sleep = RecordingSleep()
    call = FlakyCall(NotFoundError("404", provider="p1", status_code=404))
    policy = RetryPolicy(RetryConfig(max_attempts=3), provider="p1", sleep=sleep)

    with pytest.raises(NotFoundError) as excinfo:
        await policy.run(call)

    assert call.calls == 1
    assert excinfo.value.attempts == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_rate_limited_failures_back_off_longer_then_succeed() -> None:
    sleep = RecordingSleep()
    call = FlakyCall(RateLimitedError("429", provider="p1", status_code=429), "ok")
    policy = RetryPolicy(RetryConfig(max_attempts=2, base_delay_seconds=1.0), provider="p1", sleep=sleep)

    assert await policy.run(call) == "ok"
    assert call.calls == 2
    assert sleep.delays == [4.0]


@pytest.mark.asyncio
async def test_unexpected_exceptions_become_transient() -> None:
    call = FlakyCall(KeyError("price"))

    with pytest.raises(TransientError) as excinfo:
        await with_retry(call, RetryConfig(max_attempts=2), provider="p1", sleep=RecordingSleep())

    assert call.calls == 2
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_cancellation_is_not_swallowed() -> None:
    async def scenario() -> None:
        started = asyncio.Event()

        async def slow() -> str:
            started.set()
            await asyncio.sleep(10)
            return "late"

        task = asyncio.create_task(RetryPolicy(RetryConfig(max_attempts=3), provider="p1").run(slow))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())


def test_invalid_attempt_budget_is_rejected() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(RetryConfig(max_attempts=0))


@pytest.mark.asyncio
async def test_attempts_are_counted_per_outcome() -> None:
    reset_prometheus_metrics()
    call = FlakyCall(_transient(), "ok")

    await with_retry(call, RetryConfig(max_attempts=2), provider="p1", capability="snapshot", sleep=RecordingSleep())

    labels = {"provider": "p1", "capability": "snapshot"}
    assert get_sample_value("aggregator_provider_attempts_total", {**labels, "result": "transient"}) == 1.0
    assert get_sample_value("aggregator_provider_attempts_total", {**labels, "result": "success"}) == 1.0
