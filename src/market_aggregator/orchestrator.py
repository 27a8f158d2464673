"""
Ordered fallback across heterogeneous providers.

One generic walk replaces the per-call-site try/except chains: candidates
for a capability are tried in priority order, each call translated into the
candidate's identifier scheme and wrapped in its own retry policy. The first
structurally valid, non-empty result wins. Chart requests that exhaust the
list are answered by the synthetic generator; every other capability
surfaces an unsuccessful outcome instead.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar, cast

from .config import Settings, get_settings
from .errors import ErrorKind, ProviderError
from .identifiers import IdentifierTranslator
from .models import NO_SOURCE, SYNTHETIC_SOURCE, CandidateFailure, FallbackOutcome
from .observability import record_resolution
from .retry import RetryConfig, RetryPolicy, Sleep
from .synthetic import SyntheticChartGenerator

T = TypeVar("T")

Subject = str | Sequence[str]


class Capability(str, Enum):
    SNAPSHOT = "snapshot"
    CHART = "chart"
    SEARCH = "search"
    TRENDING = "trending"
    PRICES = "prices"


@dataclass(slots=True)
class Candidate(Generic[T]):
    """
    One provider able to answer a capability.

    ``call`` receives the translated identifier (a ``ProviderIdentifier`` or a
    tuple of them for batch subjects), or the raw subject when ``translate``
    is False (free-text queries).
    """

    name: str
    provider: str
    call: Callable[[Any], Awaitable[T]]
    retry: RetryConfig = field(default_factory=RetryConfig)
    translate: bool = True
    is_valid: Callable[[T], bool] | None = None


def _default_validity(capability: Capability, data: Any) -> bool:
    if data is None:
        return False
    if capability in (Capability.SNAPSHOT, Capability.CHART):
        return bool(data.is_valid())
    return len(data) > 0


def _describe_subject(subject: Subject) -> str:
    if isinstance(subject, str):
        return subject
    return ",".join(subject)


class FallbackOrchestrator:
    def __init__(
        self,
        translator: IdentifierTranslator,
        *,
        synthesizer: SyntheticChartGenerator | None = None,
        settings: Settings | None = None,
        deadline_seconds: float | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._translator = translator
        self._synthesizer = synthesizer or SyntheticChartGenerator(settings=self._settings)
        self._deadline_seconds = (
            deadline_seconds if deadline_seconds is not None else self._settings.overall_deadline_seconds
        )
        self._sleep = sleep
        self._logger = logging.getLogger("aggregator.orchestrator")

    async def resolve(
        self,
        capability: Capability,
        subject: Subject,
        candidates: Sequence[Candidate[T]],
        *,
        days: int | None = None,
    ) -> FallbackOutcome[T]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._deadline_seconds
        label = _describe_subject(subject)
        failures: list[CandidateFailure] = []

        for index, candidate in enumerate(candidates):
            remaining = deadline - loop.time()
            if remaining <= 0:
                self._logger.warning(
                    "%s deadline of %.1fs reached for %s before trying %s",
                    capability.value,
                    self._deadline_seconds,
                    label,
                    candidate.name,
                )
                failures.append(
                    CandidateFailure(candidate.name, ErrorKind.TRANSIENT, 0, "overall deadline exceeded")
                )
                break

            argument = self._prepare(subject, candidate)
            policy = RetryPolicy(
                candidate.retry,
                provider=candidate.name,
                capability=capability.value,
                sleep=self._sleep,
            )
            try:
                data = await asyncio.wait_for(
                    policy.run(lambda: candidate.call(argument), label=label),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                self._logger.warning(
                    "%s via %s for %s cut off by the %.1fs deadline",
                    capability.value,
                    candidate.name,
                    label,
                    self._deadline_seconds,
                )
                failures.append(
                    CandidateFailure(candidate.name, ErrorKind.TRANSIENT, 0, "overall deadline exceeded")
                )
                break
            except ProviderError as exc:
                self._logger.warning(
                    "%s candidate %d/%d (%s) failed for %s after %d attempt(s): %s",
                    capability.value,
                    index + 1,
                    len(candidates),
                    candidate.name,
                    label,
                    exc.attempts,
                    exc,
                )
                failures.append(CandidateFailure(candidate.name, exc.kind, exc.attempts, str(exc)))
                continue

            valid = candidate.is_valid(data) if candidate.is_valid else _default_validity(capability, data)
            if not valid:
                self._logger.warning(
                    "%s candidate %s returned an empty or invalid result for %s",
                    capability.value,
                    candidate.name,
                    label,
                )
                failures.append(CandidateFailure(candidate.name, ErrorKind.NOT_FOUND, 1, "empty result"))
                continue

            self._logger.info("%s for %s served by %s", capability.value, label, candidate.name)
            record_resolution(capability.value, candidate.name)
            return FallbackOutcome(data=data, source_name=candidate.name, succeeded=True, failures=failures)

        error_detail = self._summarize(failures)
        if capability is Capability.CHART and isinstance(subject, str):
            self._logger.warning(
                "All chart sources failed for %s (%s); serving synthetic series", label, error_detail
            )
            series = self._synthesizer.generate(subject, days or self._settings.default_chart_days)
            record_resolution(capability.value, SYNTHETIC_SOURCE)
            return FallbackOutcome(
                data=cast(T, series),
                source_name=SYNTHETIC_SOURCE,
                succeeded=True,
                error_detail=error_detail,
                failures=failures,
            )

        self._logger.warning("All %s sources exhausted for %s: %s", capability.value, label, error_detail)
        record_resolution(capability.value, NO_SOURCE)
        return FallbackOutcome(
            data=None,
            source_name=NO_SOURCE,
            succeeded=False,
            error_detail=error_detail,
            failures=failures,
        )

    def _prepare(self, subject: Subject, candidate: Candidate[Any]) -> Any:
        if not candidate.translate:
            return subject
        if isinstance(subject, str):
            return self._translator.identify(subject, candidate.provider)
        return tuple(self._translator.identify(key, candidate.provider) for key in subject)

    @staticmethod
    def _summarize(failures: Sequence[CandidateFailure]) -> str:
        if not failures:
            return "no candidates available"
        return "; ".join(f"{failure.source_name}: {failure.kind.value}" for failure in failures)


__all__ = ["Candidate", "Capability", "FallbackOrchestrator", "Subject"]
