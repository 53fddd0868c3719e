from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant"]

VALID_ROLES: frozenset[str] = frozenset({"system", "user", "assistant"})


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    credential: str = field(repr=False)
    model: str
    priority: int
    base_url: str = "https://openrouter.ai/api/v1"


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str

    def as_payload(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class GenerationRequest:
    messages: tuple[ChatMessage, ...]
    temperature: float = 0.7
    max_tokens: int = 4000
    streaming: bool = False

    @classmethod
    def from_pairs(cls, pairs: list[tuple[str, str]], **kwargs: Any) -> "GenerationRequest":
        return cls(messages=tuple(ChatMessage(role=r, content=c) for r, c in pairs), **kwargs)  # type: ignore[arg-type]


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_payload(cls, data: Any) -> "TokenUsage | None":
        if not isinstance(data, dict):
            return None
        try:
            return cls(
                prompt_tokens=int(data.get("prompt_tokens") or 0),
                completion_tokens=int(data.get("completion_tokens") or 0),
                total_tokens=int(data.get("total_tokens") or 0),
            )
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class GenerationResult:
    content: str
    provider_name: str
    model: str
    latency_seconds: float
    usage: TokenUsage | None = None
