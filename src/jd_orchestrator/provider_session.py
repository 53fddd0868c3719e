from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from .contracts import GenerationRequest, GenerationResult, ProviderConfig, TokenUsage
from .errors import ProviderFailureError, ProviderRateLimitedError

log = structlog.get_logger()

_RATE_LIMIT_MARKERS = ("rate limit", "rate-limit", "rate_limit", "too many requests", "quota exceeded")


def truncate(text: str, limit: int = 200) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _error_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if isinstance(err, dict):
        msg = err.get("message")
        return msg if isinstance(msg, str) else None
    if isinstance(err, str):
        return err
    return None


def has_rate_limit_signature(data: Any) -> bool:
    """Some providers report a rate limit inside an otherwise ordinary body."""
    if not isinstance(data, dict):
        return False
    err = data.get("error")
    if isinstance(err, dict):
        code = err.get("code")
        if code == 429 or code == "429":
            return True
    msg = (_error_message(data) or "").lower()
    return any(marker in msg for marker in _RATE_LIMIT_MARKERS)


class ProviderSession:
    """
    One HTTP attempt against one OpenAI-compatible chat completions endpoint.

    Every outcome other than a validated completion is raised as a
    ProviderFailureError subclass; failover across providers belongs to the
    invoker, so no retries happen here.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
        min_response_chars: int = 50,
        app_title: str | None = None,
        app_referer: str | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._timeout_seconds = timeout_seconds
        self._min_response_chars = max(0, int(min_response_chars))
        self._app_title = app_title
        self._app_referer = app_referer
        self._clock: Callable[[], float] = clock or time.time

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self, provider: ProviderConfig) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {provider.credential}",
            "Content-Type": "application/json",
        }
        if self._app_title:
            headers["X-Title"] = self._app_title
        if self._app_referer:
            headers["HTTP-Referer"] = self._app_referer
        return headers

    def _payload(self, provider: ProviderConfig, request: GenerationRequest) -> dict[str, Any]:
        return {
            "model": provider.model,
            "messages": [m.as_payload() for m in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": request.streaming,
        }

    def _retry_after(self, headers: httpx.Headers) -> float | None:
        retry_after = headers.get("retry-after")
        if retry_after and retry_after.strip().isdigit():
            return float(retry_after.strip())
        reset = headers.get("x-ratelimit-reset")
        if reset and reset.strip().isdigit():
            # Epoch milliseconds.
            remaining = int(reset.strip()) / 1000.0 - self._clock()
            return max(0.0, remaining)
        return None

    def _raise_for_status(self, resp: httpx.Response, body_text: str) -> None:
        status = resp.status_code
        if 200 <= status <= 299:
            return
        data: Any = None
        try:
            data = json.loads(body_text) if body_text else None
        except json.JSONDecodeError:
            data = None
        message = truncate(_error_message(data) or body_text or "Unknown error")
        if status == 429 or has_rate_limit_signature(data):
            raise ProviderRateLimitedError(
                f"HTTP {status}: {message}",
                status_code=status,
                retry_after_seconds=self._retry_after(resp.headers),
            )
        if status >= 500:
            raise ProviderFailureError(f"HTTP {status}: {message}", kind="server_error", status_code=status)
        raise ProviderFailureError(f"HTTP {status}: {message}", kind="http_error", status_code=status)

    def _validate_content(self, content: Any, status_code: int, min_chars: int) -> str:
        if not isinstance(content, str) or not content.strip() or len(content.strip()) <= min_chars:
            raise ProviderFailureError(
                "Invalid or insufficient response from provider.", kind="malformed", status_code=status_code
            )
        return content

    async def complete(
        self, provider: ProviderConfig, request: GenerationRequest, *, min_chars: int | None = None
    ) -> GenerationResult:
        started = time.monotonic()
        url = f"{provider.base_url.rstrip('/')}/chat/completions"
        try:
            if request.streaming:
                content, usage, status = await self._complete_streaming(provider, request, url)
            else:
                content, usage, status = await self._complete_once(provider, request, url)
        except httpx.TimeoutException as e:
            raise ProviderFailureError("Provider request timed out.", kind="timeout") from e
        except httpx.HTTPError as e:
            raise ProviderFailureError(f"Provider request failed: {truncate(str(e))}", kind="network") from e

        text = self._validate_content(
            content, status, self._min_response_chars if min_chars is None else max(0, min_chars)
        )
        latency = time.monotonic() - started
        log.debug("provider_call_ok", provider=provider.name, model=provider.model, chars=len(text))
        return GenerationResult(
            content=text,
            provider_name=provider.name,
            model=provider.model,
            latency_seconds=latency,
            usage=usage,
        )

    async def _complete_once(
        self, provider: ProviderConfig, request: GenerationRequest, url: str
    ) -> tuple[Any, TokenUsage | None, int]:
        resp = await self._client.post(
            url,
            headers=self._headers(provider),
            json=self._payload(provider, request),
            timeout=self._timeout_seconds,
        )
        self._raise_for_status(resp, resp.text)

        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ProviderFailureError(
                "Provider returned a non-JSON body.", kind="malformed", status_code=resp.status_code
            ) from e

        if has_rate_limit_signature(data):
            raise ProviderRateLimitedError(
                f"Rate limit reported in body: {truncate(_error_message(data) or '')}",
                status_code=resp.status_code,
                retry_after_seconds=self._retry_after(resp.headers),
            )

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            raise ProviderFailureError("Missing choices in provider response.", kind="malformed", status_code=resp.status_code)
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return content, TokenUsage.from_payload(data.get("usage")), resp.status_code

    async def _complete_streaming(
        self, provider: ProviderConfig, request: GenerationRequest, url: str
    ) -> tuple[Any, TokenUsage | None, int]:
        pieces: list[str] = []
        usage: TokenUsage | None = None
        async with self._client.stream(
            "POST",
            url,
            headers=self._headers(provider),
            json=self._payload(provider, request),
            timeout=self._timeout_seconds,
        ) as resp:
            if not 200 <= resp.status_code <= 299:
                body = (await resp.aread()).decode("utf-8", errors="replace")
                self._raise_for_status(resp, body)

            async for line in resp.aiter_lines():
                if not line or not line.startswith("data:"):
                    continue
                raw = line[len("data:") :].strip()
                if not raw:
                    continue
                if raw == "[DONE]":
                    break
                try:
                    event = json.loads(raw)
                except json.JSONDecodeError as e:
                    raise ProviderFailureError(
                        "Failed to decode provider SSE JSON.", kind="malformed", status_code=resp.status_code
                    ) from e
                if not isinstance(event, dict):
                    raise ProviderFailureError(
                        "Provider SSE event is not a JSON object.", kind="malformed", status_code=resp.status_code
                    )
                if has_rate_limit_signature(event):
                    raise ProviderRateLimitedError(
                        "Rate limit reported mid-stream.", status_code=resp.status_code
                    )
                usage = TokenUsage.from_payload(event.get("usage")) or usage
                choices = event.get("choices")
                if not isinstance(choices, list) or not choices:
                    continue
                delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
                text = delta.get("content") if isinstance(delta, dict) else None
                if isinstance(text, str) and text:
                    pieces.append(text)
            status = resp.status_code
        return "".join(pieces), usage, status
