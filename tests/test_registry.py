import pytest
from cryptography.fernet import Fernet

from jd_orchestrator.config import OrchestratorConfig
from jd_orchestrator.contracts import ProviderConfig
from jd_orchestrator.credential_store import EncryptedProviderStore
from jd_orchestrator.errors import ConfigurationInvalidError
from jd_orchestrator.registry import ProviderRegistry

GOOD = "sk-or-v1-0123456789abcdef"


def _p(name: str, credential: str = GOOD, model: str = "vendor/m", priority: int = 1) -> ProviderConfig:
    return ProviderConfig(name=name, credential=credential, model=model, priority=priority)


def test_active_providers_are_ordered_by_priority():
    reg = ProviderRegistry([_p("c", priority=3), _p("a", priority=1), _p("b", priority=2)])
    assert [p.name for p in reg.active] == ["a", "b", "c"]


def test_invalid_credentials_are_excluded_with_reason():
    reg = ProviderRegistry(
        [
            _p("ok"),
            _p("missing", credential=""),
            _p("spaces", credential="sk-or-v1-0123 456789abcdef"),
            _p("short", credential="sk-or-v1-x"),
            _p("prefix", credential="pk-live-0123456789abcdef"),
            _p("nomodel", model=""),
        ],
        credential_prefix="sk-or-v1-",
    )
    assert [p.name for p in reg.active] == ["ok"]
    reasons = {e.provider.name: e.reason for e in reg.excluded}
    assert reasons["missing"] == "missing credential"
    assert reasons["spaces"] == "credential contains whitespace"
    assert reasons["short"] == "credential too short"
    assert "does not start with" in reasons["prefix"]
    assert reasons["nomodel"] == "missing model identifier"


def test_validate_raises_when_nothing_usable():
    reg = ProviderRegistry([_p("missing", credential="")])
    with pytest.raises(ConfigurationInvalidError) as exc:
        reg.validate()
    assert "missing credential" in str(exc.value)

    with pytest.raises(ConfigurationInvalidError):
        ProviderRegistry([]).validate()


def test_diagnostics_never_include_credentials():
    reg = ProviderRegistry([_p("ok"), _p("missing", credential="")])
    diag = reg.diagnostics()
    assert diag["active"] == [{"name": "ok", "model": "vendor/m", "priority": 1}]
    assert GOOD not in repr(diag)
    assert GOOD not in repr(reg.active[0])


def test_encrypted_store_roundtrip_and_registry_from_config(tmp_path):
    key = Fernet.generate_key().decode("utf-8")
    path = tmp_path / "providers.bin"
    store = EncryptedProviderStore(str(path), key)
    store.save([_p("stored", priority=2), _p("first", priority=1)])
    assert GOOD.encode("utf-8") not in path.read_bytes()

    cfg = OrchestratorConfig(
        providers=[_p("env")],
        providers_file=str(path),
        credentials_fernet_key=key,
        credential_prefix="sk-or-v1-",
    )
    reg = ProviderRegistry.from_config(cfg)
    assert [p.name for p in reg.active] == ["first", "stored"]


def test_encrypted_store_wrong_key_fails(tmp_path):
    path = tmp_path / "providers.bin"
    EncryptedProviderStore(str(path), Fernet.generate_key().decode("utf-8")).save([_p("x")])
    with pytest.raises(ValueError):
        EncryptedProviderStore(str(path), Fernet.generate_key().decode("utf-8")).load()


def test_providers_file_requires_fernet_key(tmp_path):
    cfg = OrchestratorConfig(providers=[], providers_file=str(tmp_path / "p.bin"), credentials_fernet_key=None)
    with pytest.raises(ValueError):
        ProviderRegistry.from_config(cfg)


def test_env_slots_define_providers(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY_1", GOOD)
    monkeypatch.setenv("OPENROUTER_MODEL_1", "vendor/one")
    monkeypatch.setenv("OPENROUTER_API_KEY_2", "")
    monkeypatch.setenv("JD_MAX_PROVIDERS", "2")
    monkeypatch.delenv("JD_PROVIDERS_FILE", raising=False)
    cfg = OrchestratorConfig()
    assert [(p.name, p.model, p.priority) for p in cfg.providers][0] == ("openrouter-1", "vendor/one", 1)
    reg = ProviderRegistry.from_config(cfg)
    assert [p.name for p in reg.active] == ["openrouter-1"]
    assert [e.provider.name for e in reg.excluded] == ["openrouter-2"]
    assert GOOD in cfg.secrets()
