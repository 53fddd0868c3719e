from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager

from .config import OrchestratorConfig
from .errors import (
    AllProvidersExhaustedError,
    ConfigurationInvalidError,
    CooldownActiveError,
    DraftInFlightError,
    DraftNotFoundError,
    InvalidTransitionError,
    OrchestrationError,
    ValidationFailedError,
)
from .extraction import DocumentExtractor
from .http_security import install_middlewares
from .logging import configure_logging
from .metrics import maybe_start_metrics, server_errors_total, server_request_latency_seconds, server_requests_total
from .orchestrator import GenerationOrchestrator, OutcomeStatus
from .schemas import (
    CancelResponse,
    ClassificationView,
    ClassifyRequest,
    DocumentView,
    DraftListResponse,
    DraftView,
    ExtractRequest,
    GenerationResponse,
    ProviderStatusResponse,
    SubmitRequest,
    make_error_response,
)


def create_app(cfg: OrchestratorConfig | None = None, orchestrator: GenerationOrchestrator | None = None):
    try:
        from fastapi import FastAPI, Query
        from fastapi.responses import JSONResponse
    except ImportError as e:  # pragma: no cover
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    cfg = cfg or OrchestratorConfig()
    configure_logging(level=cfg.log_level, fmt=cfg.log_format, secrets=cfg.secrets())
    orchestrator = orchestrator or GenerationOrchestrator.from_config(cfg)
    extractor = DocumentExtractor()

    def _request_id(request) -> str | None:
        return getattr(getattr(request, "state", None), "request_id", None)

    def _observe(path: str, status_code: int, started_at: float) -> None:
        server_requests_total.labels(path=path, status=str(status_code)).inc()
        server_request_latency_seconds.labels(path=path).observe(max(0.0, time.monotonic() - started_at))

    def _error(request, status_code: int, type_: str, message: str, headers: dict[str, str] | None = None):
        server_errors_total.labels(type=type_).inc()
        return JSONResponse(
            status_code=status_code,
            content=make_error_response(message=message, type=type_, request_id=_request_id(request)).model_dump(),
            headers=headers,
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        # No usable credential is fatal at startup.
        orchestrator.invoker.registry.validate()
        maybe_start_metrics(enable=cfg.enable_metrics, bind=cfg.metrics_bind, port=cfg.metrics_port)
        try:
            yield
        finally:
            await orchestrator.close()

    app = FastAPI(
        title="jd-orchestrator",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if cfg.enable_api_docs else None,
        redoc_url="/redoc" if cfg.enable_api_docs else None,
        openapi_url="/openapi.json" if cfg.enable_api_docs else None,
    )
    install_middlewares(app, cfg=cfg)

    @app.exception_handler(CooldownActiveError)
    async def _cooldown_handler(request, exc: CooldownActiveError):
        headers = {}
        if exc.retry_after_seconds is not None:
            headers["Retry-After"] = str(exc.retry_after_seconds)
        return _error(request, 429, "rate_limit_error", str(exc), headers)

    @app.exception_handler(AllProvidersExhaustedError)
    async def _exhausted_handler(request, exc: AllProvidersExhaustedError):
        return _error(request, 503, "upstream_error", str(exc))

    @app.exception_handler(ConfigurationInvalidError)
    async def _config_handler(request, exc: ConfigurationInvalidError):
        return _error(request, 503, "configuration_error", str(exc))

    @app.exception_handler(DraftNotFoundError)
    async def _not_found_handler(request, exc: DraftNotFoundError):
        return _error(request, 404, "not_found", str(exc))

    @app.exception_handler(DraftInFlightError)
    async def _in_flight_handler(request, exc: DraftInFlightError):
        return _error(request, 409, "conflict", str(exc))

    @app.exception_handler(InvalidTransitionError)
    async def _transition_handler(request, exc: InvalidTransitionError):
        return _error(request, 409, "conflict", str(exc))

    @app.exception_handler(ValidationFailedError)
    async def _validation_handler(request, exc: ValidationFailedError):
        return _error(request, 422, "invalid_request_error", exc.reason)

    @app.exception_handler(OrchestrationError)
    async def _orchestration_handler(request, exc: OrchestrationError):
        return _error(request, 500, "api_error", str(exc))

    def _generation_response(outcome, path: str, started_at: float):
        body = GenerationResponse.from_outcome(outcome)
        headers = {}
        if outcome.status is OutcomeStatus.FAILED and outcome.retry_after_seconds:
            headers["Retry-After"] = str(outcome.retry_after_seconds)
        _observe(path, 200, started_at)
        return JSONResponse(status_code=200, content=body.model_dump(mode="json"), headers=headers)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/v1/providers/status", response_model=ProviderStatusResponse)
    async def providers_status():
        started_at = time.monotonic()
        report = await orchestrator.probe()
        _observe("/v1/providers/status", 200, started_at)
        return ProviderStatusResponse(
            available=report.available,
            working=report.working,
            failed=report.failed,
            excluded=report.excluded,
            diagnostics=orchestrator.invoker.registry.diagnostics(),
        )

    @app.post("/v1/classify", response_model=ClassificationView)
    async def classify(req: ClassifyRequest):
        started_at = time.monotonic()
        if len(req.text) > cfg.max_input_chars:
            raise ValidationFailedError("Input is too long.")
        classification, follow_ups = orchestrator.classify(req.text)
        _observe("/v1/classify", 200, started_at)
        return ClassificationView.build(classification, follow_ups)

    @app.post("/v1/drafts")
    async def submit(req: SubmitRequest):
        started_at = time.monotonic()
        if req.kind == "existing":
            outcome = await orchestrator.submit_existing(
                req.owner_id, req.conversation_id, req.text, source_name=req.source_name
            )
        else:
            outcome = await orchestrator.submit(
                req.owner_id, req.conversation_id, req.text, require_answers=req.require_answers
            )
        return _generation_response(outcome, "/v1/drafts", started_at)

    @app.get("/v1/drafts", response_model=DraftListResponse)
    async def list_drafts(owner_id: str = Query(..., min_length=1, max_length=128)):
        drafts = await orchestrator.list_drafts(owner_id)
        return DraftListResponse(drafts=[DraftView.from_draft(d) for d in drafts])

    @app.get("/v1/drafts/{draft_id}", response_model=DraftView)
    async def get_draft(draft_id: str):
        return DraftView.from_draft(await orchestrator.get_draft(draft_id))

    @app.post("/v1/drafts/{draft_id}/retry")
    async def retry_draft(draft_id: str):
        started_at = time.monotonic()
        outcome = await orchestrator.retry(draft_id)
        return _generation_response(outcome, "/v1/drafts/retry", started_at)

    @app.post("/v1/drafts/{draft_id}/cancel", response_model=CancelResponse)
    async def cancel_draft(draft_id: str):
        await orchestrator.get_draft(draft_id)
        return CancelResponse(draft_id=draft_id, cancelled=orchestrator.cancel(draft_id))

    @app.get("/v1/drafts/{draft_id}/document", response_model=DocumentView)
    async def draft_document(draft_id: str):
        return DocumentView.from_document(await orchestrator.document_for(draft_id))

    @app.post("/v1/extract", response_model=DocumentView)
    async def extract(req: ExtractRequest):
        started_at = time.monotonic()
        if len(req.text) > cfg.max_input_chars:
            raise ValidationFailedError("Input is too long.")
        document = extractor.extract(req.text)
        _observe("/v1/extract", 200, started_at)
        return DocumentView.from_document(document)

    return app


app = create_app()


def main() -> None:  # pragma: no cover
    try:
        import uvicorn
    except ImportError as e:
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("jd_orchestrator.server:app", host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    main()
