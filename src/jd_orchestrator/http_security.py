from __future__ import annotations

import re
import uuid

import structlog

API_PREFIX = "/v1/"

_INBOUND_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._:-]{8,128}")
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
_BASE_HEADERS = (
    ("X-Content-Type-Options", "nosniff"),
    ("X-Frame-Options", "DENY"),
    ("Referrer-Policy", "no-referrer"),
)


def request_id_from(header_value: str | None) -> str:
    """Reuse a well-formed inbound X-Request-Id, otherwise mint one."""
    if header_value and _INBOUND_REQUEST_ID_RE.fullmatch(header_value):
        return header_value
    return uuid.uuid4().hex


def install_middlewares(app, *, cfg) -> None:
    from fastapi.responses import JSONResponse
    from starlette.middleware.base import BaseHTTPMiddleware
    from starlette.requests import Request

    from .schemas import make_error_response

    body_limit = max(0, int(cfg.max_request_body_bytes or 0))
    headers = list(_BASE_HEADERS)
    if not cfg.enable_api_docs:
        headers.append(("X-Robots-Tag", "noindex, nofollow"))

    async def _oversized(request: Request) -> bool:
        if not body_limit or request.method not in _BODY_METHODS or not request.url.path.startswith(API_PREFIX):
            return False
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > body_limit:
            return True
        return len(await request.body()) > body_limit

    class ApiGuardMiddleware(BaseHTTPMiddleware):
        """Request ids, the `/v1/` body cap and response hardening headers."""

        async def dispatch(self, request: Request, call_next):
            request_id = request_id_from(request.headers.get("x-request-id"))
            request.state.request_id = request_id
            structlog.contextvars.bind_contextvars(request_id=request_id)
            try:
                if await _oversized(request):
                    response = JSONResponse(
                        status_code=413,
                        content=make_error_response(
                            message="Request body too large.",
                            type="invalid_request_error",
                            request_id=request_id,
                        ).model_dump(),
                    )
                else:
                    response = await call_next(request)
            finally:
                structlog.contextvars.unbind_contextvars("request_id")

            for name, value in headers:
                response.headers.setdefault(name, value)
            if request.url.path.startswith(API_PREFIX):
                response.headers.setdefault("Cache-Control", "no-store")
            response.headers.setdefault("X-Request-Id", request_id)
            return response

    app.add_middleware(ApiGuardMiddleware)
