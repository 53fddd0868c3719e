from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from .contracts import ProviderConfig


def _fernet(key_str: str) -> Fernet:
    return Fernet(key_str.encode("utf-8"))


class EncryptedProviderStore:
    """
    Encrypted-at-rest provider list.

    Stores ONE Fernet blob at `path` holding a JSON list of
    `{name, credential, model, priority, base_url?}` objects.
    """

    def __init__(self, path: str, fernet_key: str):
        self.path = Path(path)
        self.fernet_key = fernet_key

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, providers: list[ProviderConfig]) -> None:
        payload = [
            {
                "name": p.name,
                "credential": p.credential,
                "model": p.model,
                "priority": p.priority,
                "base_url": p.base_url,
            }
            for p in providers
        ]
        raw = json.dumps(payload).encode("utf-8")
        self.path.write_bytes(_fernet(self.fernet_key).encrypt(raw))

    def load(self) -> list[ProviderConfig]:
        token = self.path.read_bytes()
        try:
            raw = _fernet(self.fernet_key).decrypt(token)
        except InvalidToken as e:
            raise ValueError("Failed to decrypt providers file (wrong key or corrupted file).") from e
        payload = json.loads(raw.decode("utf-8"))
        if not isinstance(payload, list):
            raise ValueError("Providers payload must be a JSON list.")
        return [_provider_from_obj(obj, index) for index, obj in enumerate(payload, start=1)]


def _provider_from_obj(obj: Any, index: int) -> ProviderConfig:
    if not isinstance(obj, dict):
        raise ValueError(f"Provider entry {index} must be a JSON object.")
    kwargs: dict[str, Any] = {
        "name": str(obj.get("name") or f"provider-{index}"),
        "credential": str(obj.get("credential") or ""),
        "model": str(obj.get("model") or ""),
        "priority": int(obj.get("priority", index)),
    }
    if obj.get("base_url"):
        kwargs["base_url"] = str(obj["base_url"])
    return ProviderConfig(**kwargs)
