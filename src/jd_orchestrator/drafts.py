from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

import structlog

from .errors import DraftInFlightError, DraftNotFoundError, InvalidTransitionError
from .metrics import draft_transitions_total

log = structlog.get_logger()

MIN_GENERATED_CHARS = 200


class DraftStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class InputType(str, Enum):
    BRIEF = "brief"
    REFERENCE_LINK = "reference_link"
    BRIEF_WITH_LINK = "brief_with_link"
    UPLOAD = "upload"


class FailureReason(str, Enum):
    PROVIDER_ERROR = "provider_error"
    RATE_LIMITED = "rate_limited"
    COOLDOWN = "cooldown"
    TOO_SHORT = "too_short"
    FETCH_FAILED = "fetch_failed"
    CONFIGURATION = "configuration"
    INVALID_INPUT = "invalid_input"
    CANCELLED = "cancelled"


_TRANSITIONS: dict[DraftStatus, frozenset[DraftStatus]] = {
    DraftStatus.PENDING: frozenset({DraftStatus.PROCESSING}),
    DraftStatus.PROCESSING: frozenset({DraftStatus.COMPLETED, DraftStatus.FAILED}),
    DraftStatus.FAILED: frozenset({DraftStatus.PROCESSING}),
    DraftStatus.COMPLETED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Draft:
    id: str
    owner_id: str
    conversation_id: str
    input_type: InputType
    raw_input: str
    created_at: datetime
    updated_at: datetime
    status: DraftStatus = DraftStatus.PENDING
    url: str | None = None
    generated_text: str | None = None
    error_message: str | None = None
    failure_reason: FailureReason | None = None
    rate_limited: bool = False
    attempts: int = 0
    metadata: dict[str, str] = field(default_factory=dict)


class DraftStore(Protocol):
    async def create(self, draft: Draft) -> str: ...

    async def update(self, draft: Draft) -> None: ...

    async def read(self, draft_id: str) -> Draft: ...

    async def list_for_owner(self, owner_id: str) -> list[Draft]: ...


class InMemoryDraftStore:
    """Process-local store; hands out copies so callers never alias stored state."""

    def __init__(self) -> None:
        self._drafts: dict[str, Draft] = {}

    async def create(self, draft: Draft) -> str:
        self._drafts[draft.id] = dataclasses.replace(draft)
        return draft.id

    async def update(self, draft: Draft) -> None:
        if draft.id not in self._drafts:
            raise DraftNotFoundError(f"Draft {draft.id} not found.")
        self._drafts[draft.id] = dataclasses.replace(draft)

    async def read(self, draft_id: str) -> Draft:
        draft = self._drafts.get(draft_id)
        if draft is None:
            raise DraftNotFoundError(f"Draft {draft_id} not found.")
        return dataclasses.replace(draft)

    async def list_for_owner(self, owner_id: str) -> list[Draft]:
        drafts = [dataclasses.replace(d) for d in self._drafts.values() if d.owner_id == owner_id]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)


class DraftLifecycle:
    """
    State machine around one generation attempt per draft.

    pending -> processing -> completed | failed, and failed -> processing on
    retry. At most one draft per conversation is processing at any time.
    """

    def __init__(
        self,
        store: DraftStore | None = None,
        *,
        min_generated_chars: int = MIN_GENERATED_CHARS,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.store: DraftStore = store or InMemoryDraftStore()
        self.min_generated_chars = max(1, int(min_generated_chars))
        self._clock = clock or _utcnow
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._in_flight: dict[str, str] = {}

    def in_flight(self, conversation_id: str) -> str | None:
        return self._in_flight.get(conversation_id)

    def ensure_idle(self, conversation_id: str) -> None:
        current = self._in_flight.get(conversation_id)
        if current is not None:
            raise DraftInFlightError(conversation_id, current)

    async def create(
        self,
        *,
        owner_id: str,
        conversation_id: str,
        input_type: InputType,
        raw_input: str,
        url: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Draft:
        now = self._clock()
        draft = Draft(
            id=self._id_factory(),
            owner_id=owner_id,
            conversation_id=conversation_id,
            input_type=input_type,
            raw_input=raw_input,
            url=url,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        await self.store.create(draft)
        draft_transitions_total.labels(status=DraftStatus.PENDING.value).inc()
        log.info("draft_created", draft_id=draft.id, input_type=input_type.value)
        return draft

    async def get(self, draft_id: str) -> Draft:
        return await self.store.read(draft_id)

    async def list_for_owner(self, owner_id: str) -> list[Draft]:
        return await self.store.list_for_owner(owner_id)

    async def start(self, draft_id: str) -> Draft:
        draft = await self.store.read(draft_id)
        if draft.status is not DraftStatus.PENDING:
            raise InvalidTransitionError(draft.status.value, DraftStatus.PROCESSING.value)
        return await self._enter_processing(draft)

    async def retry(self, draft_id: str) -> Draft:
        """Re-run a failed draft from its original raw input."""
        draft = await self.store.read(draft_id)
        if draft.status is not DraftStatus.FAILED:
            raise InvalidTransitionError(draft.status.value, DraftStatus.PROCESSING.value)
        return await self._enter_processing(draft)

    async def complete(self, draft_id: str, generated_text: str) -> Draft:
        text = (generated_text or "").strip()
        if len(text) < self.min_generated_chars:
            return await self.fail(
                draft_id,
                "Generated job description is too short or empty.",
                reason=FailureReason.TOO_SHORT,
            )
        draft = await self.store.read(draft_id)
        self._check(draft, DraftStatus.COMPLETED)
        draft.generated_text = generated_text
        draft.failure_reason = None
        draft.rate_limited = False
        return await self._commit(draft, DraftStatus.COMPLETED)

    async def fail(
        self,
        draft_id: str,
        message: str,
        *,
        reason: FailureReason,
        rate_limited: bool = False,
    ) -> Draft:
        draft = await self.store.read(draft_id)
        self._check(draft, DraftStatus.FAILED)
        draft.error_message = message or "Generation failed."
        draft.failure_reason = reason
        draft.rate_limited = rate_limited
        return await self._commit(draft, DraftStatus.FAILED)

    def _check(self, draft: Draft, target: DraftStatus) -> None:
        if target not in _TRANSITIONS[draft.status]:
            raise InvalidTransitionError(draft.status.value, target.value)

    async def _enter_processing(self, draft: Draft) -> Draft:
        self._check(draft, DraftStatus.PROCESSING)
        # Check and claim without yielding to the loop in between.
        self.ensure_idle(draft.conversation_id)
        self._in_flight[draft.conversation_id] = draft.id
        draft.error_message = None
        draft.failure_reason = None
        draft.rate_limited = False
        draft.attempts += 1
        try:
            return await self._commit(draft, DraftStatus.PROCESSING)
        except BaseException:
            self._release(draft)
            raise

    async def _commit(self, draft: Draft, target: DraftStatus) -> Draft:
        previous = draft.status
        draft.status = target
        draft.updated_at = self._clock()
        try:
            await self.store.update(draft)
        finally:
            # A terminal transition frees the conversation even when persisting it fails.
            if target is not DraftStatus.PROCESSING:
                self._release(draft)
        draft_transitions_total.labels(status=target.value).inc()
        log.info(
            "draft_transition",
            draft_id=draft.id,
            from_status=previous.value,
            to_status=target.value,
            reason=draft.failure_reason.value if draft.failure_reason else None,
        )
        return draft

    def _release(self, draft: Draft) -> None:
        if self._in_flight.get(draft.conversation_id) == draft.id:
            del self._in_flight[draft.conversation_id]
