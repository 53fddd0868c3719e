import asyncio

import pytest

from jd_orchestrator.contracts import GenerationResult, ProviderConfig
from jd_orchestrator.drafts import DraftLifecycle, DraftStatus, FailureReason, InputType
from jd_orchestrator.errors import (
    AllProvidersExhaustedError,
    ConfigurationInvalidError,
    CooldownActiveError,
    DraftInFlightError,
    InvalidTransitionError,
    PageFetchError,
    ProviderFailure,
)
from jd_orchestrator.events import SideChannel
from jd_orchestrator.orchestrator import (
    CANCELLED_MESSAGE,
    FETCH_FAILED_MESSAGE,
    RATE_LIMITED_MESSAGE,
    GenerationOrchestrator,
    OutcomeStatus,
)
from jd_orchestrator.page_fetch import PageContent
from jd_orchestrator.registry import ProviderRegistry

KENYA_BRIEF = "We need a field coordinator with 3 years humanitarian response experience in Kenya."
GENERATED = """# Field Coordinator

Hope for Health is hiring a Field Coordinator to lead humanitarian response in Kenya.

## Key Responsibilities

- Coordinate emergency relief distributions with local partners
- Monitor program quality and report to donors
- Support community protection committees

## Qualifications & Experience

- 3 years of humanitarian experience
"""


class FakeInvoker:
    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.requests = []
        self.registry = ProviderRegistry(
            [ProviderConfig(name="p1", credential="sk-or-v1-0123456789abcdef", model="m", priority=1)]
        )

    async def invoke(self, request, *, skip_cooldown_check=False):
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if self.outcomes else GENERATED
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResult(content=outcome, provider_name="p1", model="m", latency_seconds=0.1)

    async def probe(self):
        return None

    async def close(self):
        return None


class FakeFetcher:
    def __init__(self, page=None, error=None):
        self.page = page
        self.error = error
        self.urls = []

    async def fetch(self, url):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.page


class RecordingSink:
    def __init__(self):
        self.events = []

    async def log_event(self, kind, details, source):
        self.events.append(kind)


def _rate_limited(n=3):
    return AllProvidersExhaustedError(
        [ProviderFailure(provider=f"p{i}", kind="rate_limited", status_code=429, message="429") for i in range(n)]
    )


def _orchestrator(invoker, **kwargs):
    return GenerationOrchestrator(invoker, lifecycle=DraftLifecycle(min_generated_chars=50), **kwargs)


@pytest.mark.asyncio
async def test_brief_generates_completed_draft_and_document():
    invoker = FakeInvoker()
    orch = _orchestrator(invoker)
    out = await orch.submit("u1", "c1", KENYA_BRIEF)
    assert out.status is OutcomeStatus.COMPLETED
    assert out.draft.status is DraftStatus.COMPLETED
    assert out.draft.input_type is InputType.BRIEF
    assert out.document.title == "Field Coordinator"
    assert out.document.section("responsibilities") is not None
    assert out.classification.confidence >= 0.9
    assert len(out.follow_ups) == 3
    assert KENYA_BRIEF in invoker.requests[0].messages[1].content


@pytest.mark.asyncio
async def test_unclear_input_asks_for_clarification_without_draft():
    invoker = FakeInvoker()
    orch = _orchestrator(invoker)
    out = await orch.submit("u1", "c1", "hello")
    assert out.status is OutcomeStatus.NEEDS_CLARIFICATION
    assert out.draft is None
    assert invoker.requests == []
    assert await orch.list_drafts("u1") == []


@pytest.mark.asyncio
async def test_require_answers_returns_follow_ups_first():
    invoker = FakeInvoker()
    orch = _orchestrator(invoker)
    out = await orch.submit("u1", "c1", KENYA_BRIEF, require_answers=True)
    assert out.status is OutcomeStatus.NEEDS_CLARIFICATION
    assert len(out.follow_ups) == 3
    assert invoker.requests == []


@pytest.mark.asyncio
async def test_overlong_input_is_refused():
    orch = GenerationOrchestrator(FakeInvoker(), max_input_chars=50)
    out = await orch.submit("u1", "c1", KENYA_BRIEF * 2)
    assert out.status is OutcomeStatus.NEEDS_CLARIFICATION


@pytest.mark.asyncio
async def test_rate_limited_generation_fails_with_message_then_retry_completes():
    sink = RecordingSink()
    invoker = FakeInvoker([_rate_limited(), GENERATED])
    orch = _orchestrator(invoker, events=SideChannel(sink))
    out = await orch.submit("u1", "c1", KENYA_BRIEF)
    assert out.status is OutcomeStatus.FAILED
    assert out.message == RATE_LIMITED_MESSAGE
    assert out.draft.status is DraftStatus.FAILED
    assert out.draft.rate_limited
    assert out.draft.failure_reason is FailureReason.RATE_LIMITED
    assert sink.events == ["jd_generation_failed"]

    again = await orch.retry(out.draft.id)
    assert again.status is OutcomeStatus.COMPLETED
    assert again.draft.id == out.draft.id
    assert again.draft.attempts == 2
    assert invoker.requests[0] == invoker.requests[1]


@pytest.mark.asyncio
async def test_cooldown_reports_retry_after():
    orch = _orchestrator(FakeInvoker([CooldownActiveError(retry_after_seconds=42)]))
    out = await orch.submit("u1", "c1", KENYA_BRIEF)
    assert out.status is OutcomeStatus.FAILED
    assert out.retry_after_seconds == 42
    assert "42 seconds" in out.message
    assert out.draft.failure_reason is FailureReason.COOLDOWN


@pytest.mark.asyncio
async def test_short_generation_fails_draft():
    orch = _orchestrator(FakeInvoker(["tiny"]))
    out = await orch.submit("u1", "c1", KENYA_BRIEF)
    assert out.status is OutcomeStatus.FAILED
    assert out.draft.failure_reason is FailureReason.TOO_SHORT
    assert out.document is None


@pytest.mark.asyncio
async def test_configuration_error_fails_draft_and_propagates():
    orch = _orchestrator(FakeInvoker([ConfigurationInvalidError("no keys")]))
    with pytest.raises(ConfigurationInvalidError):
        await orch.submit("u1", "c1", KENYA_BRIEF)
    drafts = await orch.list_drafts("u1")
    assert drafts[0].status is DraftStatus.FAILED
    assert drafts[0].failure_reason is FailureReason.CONFIGURATION


@pytest.mark.asyncio
async def test_brief_with_link_uses_organization_context():
    fetcher = FakeFetcher(PageContent(url="https://ngo.org/jobs/123", title="Hope NGO", body_text="We fight poverty."))
    invoker = FakeInvoker()
    orch = _orchestrator(invoker, fetcher=fetcher)
    out = await orch.submit("u1", "c1", "Looking for a program manager, remote, full-time, 5+ years. https://ngo.org/jobs/123")
    assert out.status is OutcomeStatus.COMPLETED
    assert out.draft.input_type is InputType.BRIEF_WITH_LINK
    assert out.follow_ups == ()
    assert fetcher.urls == ["https://ngo.org/jobs/123"]
    user = invoker.requests[0].messages[1].content
    assert "Organization: Hope NGO" in user
    assert "https://ngo.org/jobs/123" not in user.split("**Organization Context:**")[0]


@pytest.mark.asyncio
async def test_brief_with_link_falls_back_when_fetch_fails():
    invoker = FakeInvoker()
    orch = _orchestrator(invoker, fetcher=FakeFetcher(error=PageFetchError("down")))
    out = await orch.submit("u1", "c1", "Looking for a program manager, remote, full-time, 5+ years. https://ngo.org/jobs/123")
    assert out.status is OutcomeStatus.COMPLETED
    assert "Organization website: https://ngo.org/jobs/123" in invoker.requests[0].messages[1].content


@pytest.mark.asyncio
async def test_reference_link_fetch_failure_fails_draft():
    invoker = FakeInvoker()
    orch = _orchestrator(invoker)
    out = await orch.submit("u1", "c1", "https://www.devex.com/jobs/field-officer-123")
    assert out.status is OutcomeStatus.FAILED
    assert out.message == FETCH_FAILED_MESSAGE
    assert out.draft.failure_reason is FailureReason.FETCH_FAILED
    assert invoker.requests == []


@pytest.mark.asyncio
async def test_reference_link_rewrites_fetched_posting():
    fetcher = FakeFetcher(PageContent(url="u", title="Field Officer", body_text="Old posting text"))
    invoker = FakeInvoker()
    orch = _orchestrator(invoker, fetcher=fetcher)
    out = await orch.submit("u1", "c1", "https://www.devex.com/jobs/field-officer-123")
    assert out.status is OutcomeStatus.COMPLETED
    assert out.draft.input_type is InputType.REFERENCE_LINK
    assert "Title: Field Officer" in invoker.requests[0].messages[1].content


@pytest.mark.asyncio
async def test_existing_text_is_refined():
    invoker = FakeInvoker()
    orch = _orchestrator(invoker)
    existing = "Program Officer. Responsible for monitoring field projects and reporting to donors."
    out = await orch.submit_existing("u1", "c1", existing, source_name="old.docx")
    assert out.status is OutcomeStatus.COMPLETED
    assert out.draft.input_type is InputType.UPLOAD
    assert out.draft.metadata == {"source_name": "old.docx"}
    assert "old.docx" in invoker.requests[0].messages[1].content

    short = await orch.submit_existing("u1", "c1", "too short")
    assert short.status is OutcomeStatus.NEEDS_CLARIFICATION


@pytest.mark.asyncio
async def test_second_submission_while_processing_is_rejected():
    gate = asyncio.Event()
    started = asyncio.Event()

    class SlowInvoker(FakeInvoker):
        async def invoke(self, request, *, skip_cooldown_check=False):
            started.set()
            await gate.wait()
            return await super().invoke(request)

    orch = _orchestrator(SlowInvoker())
    first = asyncio.ensure_future(orch.submit("u1", "c1", KENYA_BRIEF))
    await started.wait()
    with pytest.raises(DraftInFlightError):
        await orch.submit("u1", "c1", KENYA_BRIEF)
    gate.set()
    out = await first
    assert out.status is OutcomeStatus.COMPLETED
    assert len(await orch.list_drafts("u1")) == 1


@pytest.mark.asyncio
async def test_cancel_marks_draft_failed():
    started = asyncio.Event()

    class HangingInvoker(FakeInvoker):
        async def invoke(self, request, *, skip_cooldown_check=False):
            started.set()
            await asyncio.Event().wait()

    orch = _orchestrator(HangingInvoker())
    task = asyncio.ensure_future(orch.submit("u1", "c1", KENYA_BRIEF))
    await started.wait()
    draft_id = (await orch.list_drafts("u1"))[0].id
    assert orch.cancel(draft_id) is True
    out = await task
    assert out.status is OutcomeStatus.FAILED
    assert out.message == CANCELLED_MESSAGE
    assert out.draft.failure_reason is FailureReason.CANCELLED
    assert orch.lifecycle.in_flight("c1") is None
    assert orch.cancel(draft_id) is False


@pytest.mark.asyncio
async def test_document_for_requires_completed_draft():
    orch = _orchestrator(FakeInvoker([_rate_limited()]))
    out = await orch.submit("u1", "c1", KENYA_BRIEF)
    with pytest.raises(InvalidTransitionError):
        await orch.document_for(out.draft.id)
    await orch.retry(out.draft.id)
    doc = await orch.document_for(out.draft.id)
    assert doc.title == "Field Coordinator"
