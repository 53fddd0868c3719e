from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, MutableMapping
from typing import Any

import structlog

REDACTED = "[REDACTED]"

# Exact key names, compared lower-cased.
_MASKED_KEYS = frozenset({"authorization", "credential", "credentials", "fernet_key", "password", "token"})
# Any key containing one of these fragments is masked too.
_MASKED_KEY_FRAGMENTS = ("api_key", "apikey", "secret", "fernet")

_BEARER_RE = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._~+/=-]{6,}")
_PROVIDER_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9]{2,}-[A-Za-z0-9-]{8,}")


def redact_text(value: str, *, secrets: Iterable[str] | None = None) -> str:
    """Mask configured secrets, bearer tokens and provider-key shaped strings."""
    for secret in secrets or ():
        if secret:
            value = value.replace(secret, REDACTED)
    value = _BEARER_RE.sub(f"Bearer {REDACTED}", value)
    return _PROVIDER_KEY_RE.sub(REDACTED, value)


def _masked_key(key: Any) -> bool:
    name = str(key).lower()
    return name in _MASKED_KEYS or any(fragment in name for fragment in _MASKED_KEY_FRAGMENTS)


class CredentialRedactor:
    """structlog processor that scrubs provider credentials from every event."""

    def __init__(self, secrets: Iterable[str] = ()):
        # Longest first, so a secret containing another is masked whole.
        self.secrets = tuple(sorted({s for s in secrets if isinstance(s, str) and s}, key=len, reverse=True))

    def scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            return redact_text(value, secrets=self.secrets)
        if isinstance(value, Mapping):
            return {k: REDACTED if _masked_key(k) else self.scrub(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.scrub(v) for v in value)
        return value

    def __call__(self, _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
        return self.scrub(event_dict)


def configure_logging(level: str = "INFO", fmt: str = "json", *, secrets: Iterable[str] | None = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level)

    renderer: Any = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            # Key-shaped strings are scrubbed even without configured secrets.
            CredentialRedactor(secrets or ()),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )
