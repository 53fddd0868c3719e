from __future__ import annotations

from dataclasses import dataclass

import structlog

from .config import OrchestratorConfig
from .contracts import ProviderConfig
from .credential_store import EncryptedProviderStore
from .errors import ConfigurationInvalidError

log = structlog.get_logger()

MIN_CREDENTIAL_CHARS = 16


@dataclass(frozen=True)
class ExcludedProvider:
    provider: ProviderConfig
    reason: str


class ProviderRegistry:
    """
    Ordered provider configurations, validated once at construction.

    Invalid entries (missing or malformed credential, no model) are kept in
    `excluded` for diagnostics but never handed to the invoker.
    """

    def __init__(self, providers: list[ProviderConfig], *, credential_prefix: str | None = None):
        self._credential_prefix = credential_prefix or None
        active: list[ProviderConfig] = []
        excluded: list[ExcludedProvider] = []
        for provider in sorted(providers, key=lambda p: p.priority):
            reason = self._invalid_reason(provider)
            if reason is None:
                active.append(provider)
            else:
                excluded.append(ExcludedProvider(provider=provider, reason=reason))
                log.warning("provider_excluded", provider=provider.name, reason=reason)
        self._active = tuple(active)
        self._excluded = tuple(excluded)

    @classmethod
    def from_config(cls, cfg: OrchestratorConfig) -> "ProviderRegistry":
        providers = cfg.providers
        if cfg.providers_file:
            store = EncryptedProviderStore(cfg.providers_file, cfg.require_fernet_key())
            if store.exists():
                providers = store.load()
        return cls(providers, credential_prefix=cfg.credential_prefix)

    def _invalid_reason(self, provider: ProviderConfig) -> str | None:
        credential = provider.credential or ""
        if not credential:
            return "missing credential"
        if any(ch.isspace() for ch in credential):
            return "credential contains whitespace"
        if len(credential) < MIN_CREDENTIAL_CHARS:
            return "credential too short"
        if self._credential_prefix and not credential.startswith(self._credential_prefix):
            return f"credential does not start with {self._credential_prefix!r}"
        if not provider.model:
            return "missing model identifier"
        return None

    @property
    def active(self) -> tuple[ProviderConfig, ...]:
        return self._active

    @property
    def excluded(self) -> tuple[ExcludedProvider, ...]:
        return self._excluded

    def validate(self) -> None:
        if self._active:
            return
        reasons = "; ".join(f"{e.provider.name}: {e.reason}" for e in self._excluded) or "no providers configured"
        raise ConfigurationInvalidError(f"No usable provider credential ({reasons}).")

    def diagnostics(self) -> dict[str, object]:
        return {
            "active": [{"name": p.name, "model": p.model, "priority": p.priority} for p in self._active],
            "excluded": [
                {"name": e.provider.name, "model": e.provider.model, "reason": e.reason} for e in self._excluded
            ],
        }
