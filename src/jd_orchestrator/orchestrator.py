from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum

import structlog

from . import prompts
from .classifier import (
    InputClassification,
    InputClassifier,
    InputMode,
    describe,
    strip_urls,
    validate_brief,
    validate_link,
    validate_upload,
)
from .config import OrchestratorConfig
from .contracts import GenerationRequest
from .drafts import Draft, DraftLifecycle, DraftStatus, FailureReason, InputType
from .errors import (
    AllProvidersExhaustedError,
    ConfigurationInvalidError,
    CooldownActiveError,
    InvalidTransitionError,
    PageFetchError,
    ValidationFailedError,
)
from .events import SideChannel
from .extraction import DocumentExtractor, StructuredDocument
from .followups import FollowUpAdvisor
from .invoker import ProviderStatusReport, ResilientInvoker
from .page_fetch import (
    PageContent,
    PageFetcher,
    UnavailablePageFetcher,
    job_posting_text,
    organization_context,
    organization_fallback,
)
from .provider_session import ProviderSession
from .rate_limit import RateLimitTracker
from .registry import ProviderRegistry

log = structlog.get_logger()

EVENT_SOURCE = "generation_orchestrator"

RATE_LIMITED_MESSAGE = (
    "Sorry, I couldn't generate the JD right now due to high demand. Please try again in a few minutes."
)
FAILURE_MESSAGE = "Sorry, I couldn't generate the JD right now. Please try again in a few minutes."
FETCH_FAILED_MESSAGE = "Could not fetch content from the provided URL. Please check the link and try again."
CANCELLED_MESSAGE = "Generation was cancelled."
CONFIGURATION_MESSAGE = "Job description generation is not configured right now."
INPUT_TOO_LONG_MESSAGE = "That input is too long. Please shorten it and try again."

_MODE_TO_INPUT = {
    InputMode.BRIEF: InputType.BRIEF,
    InputMode.REFERENCE_LINK: InputType.REFERENCE_LINK,
    InputMode.BRIEF_WITH_LINK: InputType.BRIEF_WITH_LINK,
}


def cooldown_message(seconds: int | None) -> str:
    if not seconds:
        return RATE_LIMITED_MESSAGE
    return f"We're experiencing high demand. Please wait about {seconds} seconds before trying again."


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    NEEDS_CLARIFICATION = "needs_clarification"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationOutcome:
    status: OutcomeStatus
    message: str | None = None
    classification: InputClassification | None = None
    draft: Draft | None = None
    document: StructuredDocument | None = None
    follow_ups: tuple[str, ...] = field(default_factory=tuple)
    retry_after_seconds: int | None = None


class GenerationOrchestrator:
    """
    classify -> (follow-ups) -> prompt -> invoke -> extract, with every
    attempt wrapped in a draft whose state records how it ended.

    Provider failures end as a failed draft plus a user-facing message;
    only configuration errors and lifecycle conflicts propagate.
    """

    def __init__(
        self,
        invoker: ResilientInvoker,
        *,
        lifecycle: DraftLifecycle | None = None,
        classifier: InputClassifier | None = None,
        advisor: FollowUpAdvisor | None = None,
        extractor: DocumentExtractor | None = None,
        fetcher: PageFetcher | None = None,
        events: SideChannel | None = None,
        temperature: float = prompts.DEFAULT_TEMPERATURE,
        max_tokens: int = prompts.DEFAULT_MAX_TOKENS,
        page_fetch_timeout_seconds: float = 10.0,
        max_input_chars: int = 20000,
    ):
        self.invoker = invoker
        self.lifecycle = lifecycle or DraftLifecycle()
        self.classifier = classifier or InputClassifier()
        self.advisor = advisor or FollowUpAdvisor()
        self.extractor = extractor or DocumentExtractor()
        self.fetcher: PageFetcher = fetcher or UnavailablePageFetcher()
        self.events = events or SideChannel()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.page_fetch_timeout_seconds = page_fetch_timeout_seconds
        self.max_input_chars = max_input_chars
        self._tasks: dict[str, asyncio.Task[GenerationOutcome]] = {}
        self._cancel_requested: set[str] = set()

    @classmethod
    def from_config(cls, cfg: OrchestratorConfig, *, fetcher: PageFetcher | None = None) -> "GenerationOrchestrator":
        session = ProviderSession(
            timeout_seconds=cfg.upstream_timeout_seconds,
            min_response_chars=cfg.min_response_chars,
            app_title=cfg.app_title,
            app_referer=cfg.app_referer,
        )
        invoker = ResilientInvoker(
            ProviderRegistry.from_config(cfg),
            session=session,
            rate_limits=RateLimitTracker(default_cooldown_seconds=cfg.default_cooldown_seconds),
        )
        return cls(
            invoker,
            lifecycle=DraftLifecycle(min_generated_chars=cfg.min_generated_chars),
            fetcher=fetcher,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            page_fetch_timeout_seconds=cfg.page_fetch_timeout_seconds,
            max_input_chars=cfg.max_input_chars,
        )

    async def close(self) -> None:
        await self.invoker.close()

    async def probe(self) -> ProviderStatusReport:
        return await self.invoker.probe()

    def classify(self, text: str) -> tuple[InputClassification, list[str]]:
        classification = self.classifier.classify(text)
        return classification, self.advisor.follow_ups(classification)

    async def submit(
        self,
        owner_id: str,
        conversation_id: str,
        text: str,
        *,
        require_answers: bool = False,
    ) -> GenerationOutcome:
        """
        Classify free text and, when it is usable, generate a draft from it.

        With `require_answers`, outstanding follow-up questions are returned
        as a clarification instead of generating right away.
        """
        if len(text or "") > self.max_input_chars:
            return GenerationOutcome(status=OutcomeStatus.NEEDS_CLARIFICATION, message=INPUT_TOO_LONG_MESSAGE)

        classification, follow_ups = self.classify(text)
        if not classification.is_reliable:
            return GenerationOutcome(
                status=OutcomeStatus.NEEDS_CLARIFICATION,
                message=describe(classification),
                classification=classification,
                follow_ups=tuple(follow_ups),
            )
        try:
            if classification.mode is InputMode.REFERENCE_LINK:
                validate_link(classification.url or "")
            else:
                validate_brief(classification.brief_text or "")
        except ValidationFailedError as e:
            return GenerationOutcome(
                status=OutcomeStatus.NEEDS_CLARIFICATION,
                message=e.reason,
                classification=classification,
                follow_ups=tuple(follow_ups),
            )
        if require_answers and follow_ups:
            return GenerationOutcome(
                status=OutcomeStatus.NEEDS_CLARIFICATION,
                message="A few more details would help before generating.",
                classification=classification,
                follow_ups=tuple(follow_ups),
            )

        self.lifecycle.ensure_idle(conversation_id)
        draft = await self.lifecycle.create(
            owner_id=owner_id,
            conversation_id=conversation_id,
            input_type=_MODE_TO_INPUT[classification.mode],
            raw_input=text.strip(),
            url=classification.url,
        )
        outcome = await self._run_tracked(draft.id, retry=False)
        return replace(outcome, classification=classification, follow_ups=tuple(follow_ups))

    async def submit_existing(
        self,
        owner_id: str,
        conversation_id: str,
        text: str,
        *,
        source_name: str | None = None,
    ) -> GenerationOutcome:
        """Refine already-decoded job description text (the upload path)."""
        if len(text or "") > self.max_input_chars:
            return GenerationOutcome(status=OutcomeStatus.NEEDS_CLARIFICATION, message=INPUT_TOO_LONG_MESSAGE)
        try:
            existing = validate_upload(text)
        except ValidationFailedError as e:
            return GenerationOutcome(status=OutcomeStatus.NEEDS_CLARIFICATION, message=e.reason)

        self.lifecycle.ensure_idle(conversation_id)
        draft = await self.lifecycle.create(
            owner_id=owner_id,
            conversation_id=conversation_id,
            input_type=InputType.UPLOAD,
            raw_input=existing,
            metadata={"source_name": source_name} if source_name else None,
        )
        return await self._run_tracked(draft.id, retry=False)

    async def retry(self, draft_id: str) -> GenerationOutcome:
        return await self._run_tracked(draft_id, retry=True)

    def cancel(self, draft_id: str) -> bool:
        task = self._tasks.get(draft_id)
        if task is None or task.done():
            return False
        self._cancel_requested.add(draft_id)
        task.cancel()
        log.info("draft_cancel_requested", draft_id=draft_id)
        return True

    async def get_draft(self, draft_id: str) -> Draft:
        return await self.lifecycle.get(draft_id)

    async def list_drafts(self, owner_id: str) -> list[Draft]:
        return await self.lifecycle.list_for_owner(owner_id)

    async def document_for(self, draft_id: str) -> StructuredDocument:
        """Recompute the structured document of a completed draft."""
        draft = await self.lifecycle.get(draft_id)
        if draft.status is not DraftStatus.COMPLETED:
            raise InvalidTransitionError(draft.status.value, DraftStatus.COMPLETED.value)
        return self.extractor.extract(draft.generated_text or "")

    async def _run_tracked(self, draft_id: str, *, retry: bool) -> GenerationOutcome:
        task = asyncio.ensure_future(self._attempt(draft_id, retry=retry))
        self._tasks[draft_id] = task
        try:
            return await task
        except asyncio.CancelledError:
            if draft_id not in self._cancel_requested:
                raise
            draft = await self.lifecycle.get(draft_id)
            return GenerationOutcome(status=OutcomeStatus.FAILED, message=CANCELLED_MESSAGE, draft=draft)
        finally:
            self._tasks.pop(draft_id, None)
            self._cancel_requested.discard(draft_id)

    async def _attempt(self, draft_id: str, *, retry: bool) -> GenerationOutcome:
        draft = await (self.lifecycle.retry(draft_id) if retry else self.lifecycle.start(draft_id))
        try:
            request = await self._build_request(draft)
            result = await self.invoker.invoke(request)
        except asyncio.CancelledError:
            await self._fail(draft_id, CANCELLED_MESSAGE, FailureReason.CANCELLED)
            raise
        except PageFetchError as e:
            log.warning("reference_fetch_failed", draft_id=draft_id, error=str(e))
            return await self._fail(draft_id, FETCH_FAILED_MESSAGE, FailureReason.FETCH_FAILED)
        except CooldownActiveError as e:
            return await self._fail(
                draft_id,
                cooldown_message(e.retry_after_seconds),
                FailureReason.COOLDOWN,
                rate_limited=True,
                retry_after_seconds=e.retry_after_seconds,
            )
        except AllProvidersExhaustedError as e:
            if e.all_rate_limited:
                return await self._fail(
                    draft_id, RATE_LIMITED_MESSAGE, FailureReason.RATE_LIMITED, rate_limited=True
                )
            return await self._fail(draft_id, FAILURE_MESSAGE, FailureReason.PROVIDER_ERROR)
        except ValidationFailedError as e:
            return await self._fail(draft_id, e.reason, FailureReason.INVALID_INPUT)
        except ConfigurationInvalidError:
            await self._fail(draft_id, CONFIGURATION_MESSAGE, FailureReason.CONFIGURATION)
            raise

        draft = await self.lifecycle.complete(draft_id, result.content)
        if draft.status is DraftStatus.FAILED:
            await self._emit_failure(draft)
            return GenerationOutcome(status=OutcomeStatus.FAILED, message=FAILURE_MESSAGE, draft=draft)
        document = self.extractor.extract(draft.generated_text or "")
        log.info(
            "draft_generated",
            draft_id=draft_id,
            provider=result.provider_name,
            model=result.model,
            sections=len(document.sections),
        )
        return GenerationOutcome(status=OutcomeStatus.COMPLETED, draft=draft, document=document)

    async def _fail(
        self,
        draft_id: str,
        message: str,
        reason: FailureReason,
        *,
        rate_limited: bool = False,
        retry_after_seconds: int | None = None,
    ) -> GenerationOutcome:
        draft = await self.lifecycle.fail(draft_id, message, reason=reason, rate_limited=rate_limited)
        await self._emit_failure(draft)
        return GenerationOutcome(
            status=OutcomeStatus.FAILED,
            message=message,
            draft=draft,
            retry_after_seconds=retry_after_seconds,
        )

    async def _emit_failure(self, draft: Draft) -> None:
        await self.events.emit(
            "jd_generation_failed",
            draft.error_message or "",
            EVENT_SOURCE,
            draft_id=draft.id,
            reason=draft.failure_reason.value if draft.failure_reason else "unknown",
        )

    async def _fetch(self, url: str) -> PageContent:
        try:
            return await asyncio.wait_for(self.fetcher.fetch(url), timeout=self.page_fetch_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise PageFetchError(f"Timed out fetching {url}.") from e

    async def _build_request(self, draft: Draft) -> GenerationRequest:
        opts = {"max_tokens": self.max_tokens}
        if draft.input_type is InputType.BRIEF:
            return prompts.brief_request(draft.raw_input, temperature=self.temperature, **opts)
        if draft.input_type is InputType.BRIEF_WITH_LINK:
            url = draft.url or ""
            try:
                context = organization_context(await self._fetch(url))
            except PageFetchError as e:
                log.warning("organization_fetch_failed", draft_id=draft.id, error=str(e))
                context = organization_fallback(url)
            return prompts.brief_with_organization_request(
                strip_urls(draft.raw_input), context, temperature=self.temperature, **opts
            )
        if draft.input_type is InputType.REFERENCE_LINK:
            url = draft.url or ""
            posting = job_posting_text(await self._fetch(url))
            return prompts.rewrite_request(url, posting, temperature=self.temperature, **opts)
        return prompts.refine_request(draft.raw_input, source_name=draft.metadata.get("source_name"), **opts)
