from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .errors import ErrorKind, ProviderError, TransientError
from .observability import record_provider_attempt

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class RetryConfig:
    """Fixed per-provider backoff constants; response headers are not consulted."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    rate_limit_multiplier: float = 2.0
    max_delay_seconds: float = 30.0

    def delay_before(self, attempt: int, kind: ErrorKind) -> float:
        delay = self.base_delay_seconds * attempt
        if kind is ErrorKind.RATE_LIMITED:
            delay *= max(self.rate_limit_multiplier, 2.0)
        return min(delay, self.max_delay_seconds)


@dataclass(slots=True)
class RetryState:
    attempt: int = 0
    elapsed_delay: float = 0.0
    last_error_kind: ErrorKind | None = None


class RetryPolicy:
    """
    Runs one adapter call with bounded retries.

    Before attempt ``n`` (n > 1) it waits ``base_delay * n``, or at least twice
    that when the previous failure was a rate limit. NotFound is returned
    immediately. After the last attempt the final error is raised with its
    ``attempts`` attribute set.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        provider: str = "unknown",
        capability: str = "unknown",
        sleep: Sleep | None = None,
    ) -> None:
        self._config = config or RetryConfig()
        if self._config.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._provider = provider
        self._capability = capability
        self._sleep = sleep or asyncio.sleep
        self._logger = logging.getLogger("aggregator.retry")

    @property
    def config(self) -> RetryConfig:
        return self._config

    async def run(self, attempt_fn: Callable[[], Awaitable[T]], *, label: str = "") -> T:
        state = RetryState()
        while True:
            state.attempt += 1
            started = time.perf_counter()
            try:
                result = await attempt_fn()
            except ProviderError as exc:
                error = exc
            except Exception as exc:
                error = TransientError(
                    f"Unexpected failure: {type(exc).__name__}: {exc}",
                    provider=self._provider,
                    subject=label or None,
                )
                error.__cause__ = exc
            else:
                record_provider_attempt(self._provider, self._capability, "success", time.perf_counter() - started)
                return result

            record_provider_attempt(self._provider, self._capability, error.kind.value, time.perf_counter() - started)
            error.attempts = state.attempt
            state.last_error_kind = error.kind

            if not error.retryable or state.attempt >= self._config.max_attempts:
                self._logger.debug(
                    "%s %s for %s gave up after %d attempt(s): %s",
                    self._provider,
                    self._capability,
                    label,
                    state.attempt,
                    error,
                )
                raise error

            delay = self._config.delay_before(state.attempt + 1, error.kind)
            self._logger.warning(
                "%s %s failed for %s (attempt %s/%s, %s): %s - retrying in %.2fs",
                self._provider,
                self._capability,
                label,
                state.attempt,
                self._config.max_attempts,
                error.kind.value,
                error,
                delay,
            )
            state.elapsed_delay += delay
            await self._sleep(delay)


async def with_retry(
    attempt_fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    provider: str = "unknown",
    capability: str = "unknown",
    sleep: Sleep | None = None,
    label: str = "",
) -> T:
    policy = RetryPolicy(config, provider=provider, capability=capability, sleep=sleep)
    return await policy.run(attempt_fn, label=label)


__all__ = ["RetryConfig", "RetryPolicy", "RetryState", "Sleep", "with_retry"]
