import pytest

import httpx

from jd_orchestrator.config import OrchestratorConfig
from jd_orchestrator.contracts import GenerationResult, ProviderConfig
from jd_orchestrator.drafts import DraftLifecycle
from jd_orchestrator.errors import AllProvidersExhaustedError, ConfigurationInvalidError, ProviderFailure
from jd_orchestrator.invoker import ProviderStatusReport
from jd_orchestrator.orchestrator import GenerationOrchestrator
from jd_orchestrator.registry import ProviderRegistry

KENYA_BRIEF = "We need a field coordinator with 3 years humanitarian response experience in Kenya."
GENERATED = """# Field Coordinator

Hope for Health is hiring a Field Coordinator to lead humanitarian response in Kenya.

## Key Responsibilities

- Coordinate emergency relief distributions with local partners
- Monitor program quality and report to donors
"""


def _cfg(**kwargs) -> OrchestratorConfig:
    return OrchestratorConfig(providers=[], providers_file=None, enable_metrics=False, **kwargs)


class FakeInvoker:
    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.registry = ProviderRegistry(
            [ProviderConfig(name="p1", credential="sk-or-v1-0123456789abcdef", model="m", priority=1)]
        )

    async def invoke(self, request, *, skip_cooldown_check=False):
        outcome = self.outcomes.pop(0) if self.outcomes else GENERATED
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResult(content=outcome, provider_name="p1", model="m", latency_seconds=0.1)

    async def probe(self):
        return ProviderStatusReport(working=["p1"], failed=[], excluded=[])

    async def close(self):
        return None


def _app(outcomes=None, **cfg_kwargs):
    from jd_orchestrator.server import create_app

    orch = GenerationOrchestrator(FakeInvoker(outcomes), lifecycle=DraftLifecycle(min_generated_chars=50))
    return create_app(cfg=_cfg(**cfg_kwargs), orchestrator=orch)


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_classify_endpoint():
    pytest.importorskip("fastapi")
    async with _client(_app()) as client:
        resp = await client.post("/v1/classify", json={"text": KENYA_BRIEF})
        assert resp.status_code == 200
        body = resp.json()
        assert body["mode"] == "brief"
        assert body["reliable"] is True
        assert len(body["follow_ups"]) == 3
        assert resp.headers["Cache-Control"] == "no-store"
        assert resp.headers["X-Request-Id"]


@pytest.mark.asyncio
async def test_submit_then_fetch_draft_and_document():
    pytest.importorskip("fastapi")
    async with _client(_app()) as client:
        resp = await client.post(
            "/v1/drafts", json={"owner_id": "u1", "conversation_id": "c1", "text": KENYA_BRIEF}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "completed"
        assert body["document"]["title"] == "Field Coordinator"
        draft_id = body["draft"]["id"]

        resp = await client.get(f"/v1/drafts/{draft_id}")
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"

        resp = await client.get(f"/v1/drafts/{draft_id}/document")
        assert resp.status_code == 200
        assert resp.json()["sections"][1]["id"] == "responsibilities"

        resp = await client.get("/v1/drafts", params={"owner_id": "u1"})
        assert [d["id"] for d in resp.json()["drafts"]] == [draft_id]

        resp = await client.post(f"/v1/drafts/{draft_id}/retry")
        assert resp.status_code == 409
        assert resp.json()["error"]["type"] == "conflict"

        resp = await client.post(f"/v1/drafts/{draft_id}/cancel")
        assert resp.json() == {"draft_id": draft_id, "cancelled": False}


@pytest.mark.asyncio
async def test_rate_limited_submission_returns_failed_outcome():
    pytest.importorskip("fastapi")
    exhausted = AllProvidersExhaustedError(
        [ProviderFailure(provider="p1", kind="rate_limited", status_code=429, message="429")]
    )
    async with _client(_app([exhausted])) as client:
        resp = await client.post(
            "/v1/drafts", json={"owner_id": "u1", "conversation_id": "c1", "text": KENYA_BRIEF}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "failed"
        assert body["draft"]["rate_limited"] is True
        assert "high demand" in body["message"]

        resp = await client.post(f"/v1/drafts/{body['draft']['id']}/retry")
        assert resp.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_configuration_error_maps_to_503():
    pytest.importorskip("fastapi")
    async with _client(_app([ConfigurationInvalidError("No usable provider credential.")])) as client:
        resp = await client.post(
            "/v1/drafts", json={"owner_id": "u1", "conversation_id": "c1", "text": KENYA_BRIEF}
        )
        assert resp.status_code == 503
        assert resp.json()["error"]["type"] == "configuration_error"


@pytest.mark.asyncio
async def test_unknown_draft_is_404_and_bad_body_is_422():
    pytest.importorskip("fastapi")
    async with _client(_app()) as client:
        resp = await client.get("/v1/drafts/missing")
        assert resp.status_code == 404
        assert resp.json()["error"]["type"] == "not_found"

        resp = await client.post("/v1/drafts", json={"owner_id": "", "conversation_id": "c1", "text": "x"})
        assert resp.status_code == 422


@pytest.mark.asyncio
async def test_extract_and_provider_status():
    pytest.importorskip("fastapi")
    async with _client(_app()) as client:
        resp = await client.post("/v1/extract", json={"text": "## Key Responsibilities\n- a\n- b\n- c"})
        assert resp.status_code == 200
        assert resp.json()["sections"][0]["content"] == "- a\n- b\n- c"

        resp = await client.get("/v1/providers/status")
        body = resp.json()
        assert body["available"] is True
        assert body["working"] == ["p1"]
        assert body["diagnostics"]["active"][0]["name"] == "p1"


@pytest.mark.asyncio
async def test_body_limit_and_docs_toggle():
    pytest.importorskip("fastapi")
    async with _client(_app(max_request_body_bytes=40)) as client:
        resp = await client.post("/v1/classify", json={"text": "x" * 200})
        assert resp.status_code == 413
        assert resp.json()["error"]["type"] == "invalid_request_error"

        resp = await client.get("/docs")
        assert resp.status_code == 404

        resp = await client.get("/healthz")
        assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_request_id_is_echoed_when_well_formed():
    pytest.importorskip("fastapi")
    async with _client(_app()) as client:
        resp = await client.get("/healthz", headers={"X-Request-Id": "req-12345678"})
        assert resp.headers["X-Request-Id"] == "req-12345678"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert "Cache-Control" not in resp.headers

        resp = await client.get("/healthz", headers={"X-Request-Id": "bad id!"})
        assert resp.headers["X-Request-Id"] != "bad id!"
