from __future__ import annotations

from dataclasses import dataclass


class OrchestrationError(Exception):
    """Base error for generation orchestration failures."""


class ConfigurationInvalidError(OrchestrationError):
    """No usable provider credential. Fatal, never retried."""


class ValidationFailedError(OrchestrationError):
    """Input that must not be sent to a provider at all."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class CooldownActiveError(OrchestrationError):
    def __init__(self, retry_after_seconds: int | None = None, message: str = "Rate limit cooldown active"):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class ProviderFailureError(OrchestrationError):
    """One provider attempt failed; the invoker advances to the next provider."""

    kind = "error"

    def __init__(self, message: str, *, kind: str | None = None, status_code: int | None = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.status_code = status_code


class ProviderRateLimitedError(ProviderFailureError):
    kind = "rate_limited"

    def __init__(
        self,
        message: str = "Rate limited",
        *,
        status_code: int | None = 429,
        retry_after_seconds: float | None = None,
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after_seconds = retry_after_seconds


@dataclass(frozen=True)
class ProviderFailure:
    provider: str
    kind: str
    status_code: int | None
    message: str

    @property
    def rate_limited(self) -> bool:
        return self.kind == ProviderRateLimitedError.kind


class AllProvidersExhaustedError(OrchestrationError):
    """Every provider was tried and failed for this attempt."""

    def __init__(self, failures: list[ProviderFailure]):
        self.failures = list(failures)
        super().__init__(self._summarize())

    @property
    def rate_limited_count(self) -> int:
        return sum(1 for f in self.failures if f.rate_limited)

    @property
    def all_rate_limited(self) -> bool:
        return bool(self.failures) and self.rate_limited_count == len(self.failures)

    @property
    def resolves_with_time(self) -> bool:
        return self.all_rate_limited

    def _summarize(self) -> str:
        if self.all_rate_limited:
            return f"All providers are rate limited ({len(self.failures)} tried); retry after the cooldown."
        others = len(self.failures) - self.rate_limited_count
        return (
            f"All providers failed ({others} errors, {self.rate_limited_count} rate limited); "
            "investigation required."
        )


class PageFetchError(OrchestrationError):
    """The URL content collaborator could not fetch a page."""


class DraftNotFoundError(OrchestrationError):
    pass


class InvalidTransitionError(OrchestrationError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move draft from {current!r} to {target!r}.")
        self.current = current
        self.target = target


class DraftInFlightError(OrchestrationError):
    """A generation attempt is already processing for this conversation."""

    def __init__(self, conversation_id: str, draft_id: str):
        super().__init__(f"Draft {draft_id} is still processing for conversation {conversation_id}.")
        self.conversation_id = conversation_id
        self.draft_id = draft_id
