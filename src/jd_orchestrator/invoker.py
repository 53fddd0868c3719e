from __future__ import annotations

import math
from dataclasses import dataclass, field

import structlog

from .contracts import VALID_ROLES, ChatMessage, GenerationRequest, GenerationResult
from .errors import (
    AllProvidersExhaustedError,
    CooldownActiveError,
    ProviderFailure,
    ProviderFailureError,
    ProviderRateLimitedError,
    ValidationFailedError,
)
from .events import SideChannel
from .metrics import (
    cooldown_short_circuits_total,
    invocations_total,
    provider_attempts_total,
    provider_latency_seconds,
)
from .provider_session import ProviderSession, truncate
from .rate_limit import RateLimitTracker
from .registry import ProviderRegistry

log = structlog.get_logger()

EVENT_SOURCE = "resilient_invoker"

_PROBE_REQUEST = GenerationRequest(
    messages=(
        ChatMessage(role="system", content="You are a helpful assistant."),
        ChatMessage(role="user", content='Say "AI system working" and nothing else.'),
    ),
    temperature=0.0,
    max_tokens=16,
)


@dataclass
class ProviderStatusReport:
    working: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return bool(self.working)


def _validate_request(request: GenerationRequest) -> None:
    if not request.messages:
        raise ValidationFailedError("Generation request has no messages.")
    for msg in request.messages:
        if msg.role not in VALID_ROLES:
            raise ValidationFailedError(f"Unsupported message role: {msg.role!r}")
        if not isinstance(msg.content, str):
            raise ValidationFailedError("Message content must be a string.")
    if not any(m.role == "user" and m.content.strip() for m in request.messages):
        raise ValidationFailedError("No user message provided.")


class ResilientInvoker:
    """
    Calls providers in ascending priority order until one succeeds.

    429-class failures are recorded in the injected RateLimitTracker; every
    other failure (5xx, timeout, network, other 4xx, malformed body) just
    advances to the next provider. The first success clears the tracker.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        session: ProviderSession | None = None,
        rate_limits: RateLimitTracker | None = None,
        events: SideChannel | None = None,
    ):
        self.registry = registry
        self.session = session or ProviderSession()
        self.rate_limits = rate_limits or RateLimitTracker()
        self.events = events or SideChannel()

    async def close(self) -> None:
        await self.session.close()

    async def invoke(self, request: GenerationRequest, *, skip_cooldown_check: bool = False) -> GenerationResult:
        _validate_request(request)
        self.registry.validate()

        if not skip_cooldown_check:
            remaining = self.rate_limits.remaining_seconds()
            if remaining is not None:
                cooldown_short_circuits_total.inc()
                invocations_total.labels(outcome="cooldown").inc()
                log.info("invoke_short_circuited", remaining_seconds=round(remaining, 1))
                raise CooldownActiveError(
                    retry_after_seconds=int(math.ceil(remaining)),
                    message=f"Rate limit active. Please wait about {int(math.ceil(remaining))}s before trying again.",
                )

        failures: list[ProviderFailure] = []
        for provider in self.registry.active:
            try:
                with provider_latency_seconds.labels(provider=provider.name).time():
                    result = await self.session.complete(provider, request)
            except ProviderFailureError as e:
                if isinstance(e, ProviderRateLimitedError):
                    self.rate_limits.record(e.retry_after_seconds)
                failure = ProviderFailure(
                    provider=provider.name,
                    kind=e.kind,
                    status_code=e.status_code,
                    message=truncate(str(e)),
                )
                failures.append(failure)
                provider_attempts_total.labels(provider=provider.name, outcome=e.kind).inc()
                log.warning(
                    "provider_attempt_failed",
                    provider=provider.name,
                    model=provider.model,
                    kind=e.kind,
                    status_code=e.status_code,
                    error=failure.message,
                )
                await self.events.emit(
                    "ai_model_failure",
                    f"Model: {provider.model}, Error: {failure.message}",
                    EVENT_SOURCE,
                    provider=provider.name,
                    kind=e.kind,
                )
                continue

            self.rate_limits.clear()
            provider_attempts_total.labels(provider=provider.name, outcome="success").inc()
            invocations_total.labels(outcome="success").inc()
            log.info(
                "provider_attempt_ok",
                provider=provider.name,
                model=provider.model,
                attempts=len(failures) + 1,
                latency_seconds=round(result.latency_seconds, 3),
            )
            return result

        exhausted = AllProvidersExhaustedError(failures)
        invocations_total.labels(outcome="rate_limited" if exhausted.all_rate_limited else "exhausted").inc()
        summary = "; ".join(f"{f.provider}: {f.kind}" for f in failures)
        log.error(
            "providers_exhausted",
            providers=len(failures),
            rate_limited=exhausted.rate_limited_count,
            resolves_with_time=exhausted.resolves_with_time,
            summary=summary,
        )
        await self.events.emit("all_ai_models_failed", f"All models failed: {summary}", EVENT_SOURCE)
        raise exhausted

    async def probe(self) -> ProviderStatusReport:
        """Call every active provider once; the cooldown gate is not consulted."""
        report = ProviderStatusReport(excluded=[e.provider.name for e in self.registry.excluded])
        for provider in self.registry.active:
            try:
                await self.session.complete(provider, _PROBE_REQUEST, min_chars=0)
            except ProviderFailureError as e:
                log.info("provider_probe_failed", provider=provider.name, kind=e.kind)
                report.failed.append(provider.name)
            else:
                report.working.append(provider.name)
        return report
