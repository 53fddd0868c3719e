from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .classifier import InputClassification, describe
from .drafts import Draft
from .extraction import StructuredDocument
from .orchestrator import GenerationOutcome


class ClassifyRequest(BaseModel):
    text: str


class ClassificationView(BaseModel):
    mode: str
    confidence: float
    reliable: bool
    brief_text: str | None = None
    url: str | None = None
    description: str
    follow_ups: list[str] = Field(default_factory=list)

    @classmethod
    def build(cls, classification: InputClassification, follow_ups: list[str] | tuple[str, ...]) -> "ClassificationView":
        return cls(
            mode=classification.mode.value,
            confidence=classification.confidence,
            reliable=classification.is_reliable,
            brief_text=classification.brief_text,
            url=classification.url,
            description=describe(classification),
            follow_ups=list(follow_ups),
        )


class SubmitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    owner_id: str
    conversation_id: str
    text: str
    kind: Literal["text", "existing"] = "text"
    source_name: str | None = None
    require_answers: bool = False

    @field_validator("owner_id", "conversation_id")
    @classmethod
    def _validate_ids(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 128:
            raise ValueError("must be a non-empty identifier of at most 128 characters.")
        return v


class ExtractRequest(BaseModel):
    text: str


class DraftView(BaseModel):
    id: str
    owner_id: str
    conversation_id: str
    input_type: str
    status: str
    url: str | None = None
    generated_text: str | None = None
    error_message: str | None = None
    failure_reason: str | None = None
    rate_limited: bool = False
    attempts: int = 0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_draft(cls, draft: Draft) -> "DraftView":
        return cls(
            id=draft.id,
            owner_id=draft.owner_id,
            conversation_id=draft.conversation_id,
            input_type=draft.input_type.value,
            status=draft.status.value,
            url=draft.url,
            generated_text=draft.generated_text,
            error_message=draft.error_message,
            failure_reason=draft.failure_reason.value if draft.failure_reason else None,
            rate_limited=draft.rate_limited,
            attempts=draft.attempts,
            created_at=draft.created_at,
            updated_at=draft.updated_at,
        )


class DraftListResponse(BaseModel):
    drafts: list[DraftView]


class SectionView(BaseModel):
    id: str
    title: str
    content: str


class ScoresView(BaseModel):
    clarity: int
    dei_friendliness: int
    reading_level: int
    reading_level_label: str


class DocumentView(BaseModel):
    title: str
    summary: str
    sections: list[SectionView]
    category_tags: list[str]
    sdg_tags: list[str]
    sdg_labels: list[str]
    scores: ScoresView
    organization: str | None = None
    location: str | None = None
    contract_type: str | None = None
    application_deadline: str | None = None
    salary_range: str | None = None
    how_to_apply: str | None = None
    jargon_warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_document(cls, document: StructuredDocument) -> "DocumentView":
        return cls.model_validate(document.to_dict())


class GenerationResponse(BaseModel):
    status: str
    message: str | None = None
    classification: ClassificationView | None = None
    draft: DraftView | None = None
    document: DocumentView | None = None
    follow_ups: list[str] = Field(default_factory=list)
    retry_after_seconds: int | None = None

    @classmethod
    def from_outcome(cls, outcome: GenerationOutcome) -> "GenerationResponse":
        return cls(
            status=outcome.status.value,
            message=outcome.message,
            classification=(
                ClassificationView.build(outcome.classification, outcome.follow_ups)
                if outcome.classification is not None
                else None
            ),
            draft=DraftView.from_draft(outcome.draft) if outcome.draft is not None else None,
            document=DocumentView.from_document(outcome.document) if outcome.document is not None else None,
            follow_ups=list(outcome.follow_ups),
            retry_after_seconds=outcome.retry_after_seconds,
        )


class CancelResponse(BaseModel):
    draft_id: str
    cancelled: bool


class ProviderStatusResponse(BaseModel):
    available: bool
    working: list[str]
    failed: list[str]
    excluded: list[str]
    diagnostics: dict[str, Any]


class ErrorDetail(BaseModel):
    message: str
    type: str = "api_error"
    request_id: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


def make_error_response(*, message: str, type: str = "api_error", request_id: str | None = None) -> ErrorResponse:
    return ErrorResponse(error=ErrorDetail(message=message, type=type, request_id=request_id))
