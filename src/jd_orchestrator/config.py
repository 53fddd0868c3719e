from __future__ import annotations

import os

from pydantic import BaseModel, Field

from .contracts import ProviderConfig

OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"

DEFAULT_MODELS: tuple[str, ...] = (
    "deepseek/deepseek-r1-0528-qwen3-8b:free",
    "deepseek/deepseek-r1-0528:free",
    "qwen/qwen3-14b-04-28:free",
)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def providers_from_env(base_url: str | None = None) -> list[ProviderConfig]:
    """Read `OPENROUTER_API_KEY_<n>` / `OPENROUTER_MODEL_<n>` slots, priority = n."""
    base = base_url or os.getenv("OPENROUTER_BASE_URL", OPENROUTER_API_BASE)
    slots = int(os.getenv("JD_MAX_PROVIDERS", str(len(DEFAULT_MODELS))))
    providers: list[ProviderConfig] = []
    for n in range(1, slots + 1):
        default_model = DEFAULT_MODELS[n - 1] if n <= len(DEFAULT_MODELS) else ""
        model = os.getenv(f"OPENROUTER_MODEL_{n}", default_model)
        if not model:
            continue
        providers.append(
            ProviderConfig(
                name=f"openrouter-{n}",
                credential=os.getenv(f"OPENROUTER_API_KEY_{n}", ""),
                model=model,
                priority=n,
                base_url=base,
            )
        )
    return providers


class OrchestratorConfig(BaseModel):
    # Providers
    providers: list[ProviderConfig] = Field(default_factory=providers_from_env)
    credential_prefix: str | None = Field(default_factory=lambda: os.getenv("JD_CREDENTIAL_PREFIX", "sk-or-v1-"))
    app_title: str = Field(default_factory=lambda: os.getenv("JD_APP_TITLE", "AidJobs Platform"))
    app_referer: str | None = Field(default_factory=lambda: os.getenv("JD_APP_REFERER"))

    # Encrypted provider list (overrides env slots when present)
    providers_file: str | None = Field(default_factory=lambda: os.getenv("JD_PROVIDERS_FILE"))
    credentials_fernet_key: str | None = Field(default_factory=lambda: os.getenv("CREDENTIALS_FERNET_KEY"))

    # Invocation
    upstream_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))
    )
    default_cooldown_seconds: float = Field(
        default_factory=lambda: float(os.getenv("RATE_LIMIT_COOLDOWN_SECONDS", "60"))
    )
    temperature: float = Field(default_factory=lambda: float(os.getenv("JD_TEMPERATURE", "0.7")))
    max_tokens: int = Field(default_factory=lambda: int(os.getenv("JD_MAX_TOKENS", "4000")))
    min_response_chars: int = Field(default_factory=lambda: int(os.getenv("JD_MIN_RESPONSE_CHARS", "50")))
    min_generated_chars: int = Field(default_factory=lambda: int(os.getenv("JD_MIN_GENERATED_CHARS", "200")))
    page_fetch_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("PAGE_FETCH_TIMEOUT_SECONDS", "10"))
    )

    # Observability
    enable_metrics: bool = Field(default_factory=lambda: _env_bool("ENABLE_METRICS"))
    metrics_bind: str = Field(default_factory=lambda: os.getenv("METRICS_BIND", "127.0.0.1"))
    metrics_port: int = Field(default_factory=lambda: int(os.getenv("METRICS_PORT", "9109")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))

    # Server hardening
    enable_api_docs: bool = Field(default_factory=lambda: _env_bool("ENABLE_API_DOCS"))
    max_request_body_bytes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_REQUEST_BODY_BYTES", str(256 * 1024)))
    )
    max_input_chars: int = Field(default_factory=lambda: int(os.getenv("MAX_INPUT_CHARS", "20000")))

    def require_fernet_key(self) -> str:
        if not self.credentials_fernet_key:
            raise ValueError("CREDENTIALS_FERNET_KEY is required to read the encrypted providers file.")
        return self.credentials_fernet_key

    def secrets(self) -> list[str]:
        out = [p.credential for p in self.providers if p.credential]
        if self.credentials_fernet_key:
            out.append(self.credentials_fernet_key)
        return out
