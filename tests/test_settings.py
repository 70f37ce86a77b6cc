"""Tests for the settings persistence layer and provider."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lookupai.ai.errors import SettingsUnavailableError
from lookupai.services.settings import (
    AIProfiles,
    AISettings,
    SecretVault,
    SettingsStore,
    StoreSettingsProvider,
    redact_secret,
)


def _store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "key"))


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    profiles = _store(tmp_path).load()

    assert profiles.active_profile == "default"
    assert profiles.active() == AISettings()
    assert not (tmp_path / "settings.json").exists()


def test_save_and_load_roundtrip_encrypts_api_key(tmp_path: Path) -> None:
    store = _store(tmp_path)
    original = AIProfiles(
        profiles={
            "default": AISettings(mode="manual", api_url="https://example.com/v1", api_key="super-secret", model="m"),
            "fast": AISettings(api_url="https://fast", prompt="Be brief."),
        },
        active_profile="fast",
    )

    store.save(original)
    raw = (tmp_path / "settings.json").read_text(encoding="utf-8")
    reloaded = _store(tmp_path).load()

    assert "super-secret" not in raw
    assert json.loads(raw)["profiles"]["default"]["api_key_ciphertext"].startswith("fernet:")
    assert reloaded == original


def test_load_migrates_legacy_plaintext_api_key(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(
        json.dumps({"profiles": {"default": {"apiUrl": "https://old", "apiKey": "legacy-key", "mode": "manual"}}}),
        encoding="utf-8",
    )

    settings = _store(tmp_path).load().active()

    assert settings.api_url == "https://old"
    assert settings.api_key == "legacy-key"
    assert settings.is_manual is True
    rewritten = json.loads(target.read_text(encoding="utf-8"))
    assert rewritten["version"] == 1
    assert "api_key" not in rewritten["profiles"]["default"]
    assert rewritten["profiles"]["default"]["api_key_ciphertext"].startswith("fernet:")


def test_environment_overrides_apply_to_active_profile(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)
    store.save(AIProfiles(profiles={"default": AISettings(api_url="https://file", model="file-model")}))
    monkeypatch.setenv("LOOKUPAI_MODEL", "env-model")
    monkeypatch.setenv("LOOKUPAI_MODE", "MANUAL")

    settings = store.load().active()

    assert settings.api_url == "https://file"
    assert settings.model == "env-model"
    assert settings.mode == "manual"
    assert "env-model" not in (tmp_path / "settings.json").read_text(encoding="utf-8")


def test_profile_selection_creates_missing_profile(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)
    store.save(AIProfiles(profiles={"default": AISettings(api_url="https://default")}))

    assert store.load(profile="other").active() == AISettings()

    monkeypatch.setenv("LOOKUPAI_PROFILE", "default")
    assert store.load().active().api_url == "https://default"


def test_unknown_mode_normalizes_to_auto() -> None:
    settings = AISettings(mode="sometimes", api_url="  https://x  ").normalized()

    assert settings.mode == "auto"
    assert settings.api_url == "https://x"


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

    assert _store(tmp_path).load().active() == AISettings()


def test_undecryptable_key_loads_as_empty(tmp_path: Path) -> None:
    _store(tmp_path).save(AIProfiles(profiles={"default": AISettings(api_key="secret")}))
    (tmp_path / "key").unlink()

    assert _store(tmp_path).load().active().api_key == ""


def test_vault_rejects_unknown_backend(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "key")

    assert vault.decrypt(vault.encrypt("s3cret")) == "s3cret"
    with pytest.raises(ValueError):
        vault.decrypt("rot13:abc")


@pytest.mark.asyncio
async def test_provider_returns_active_settings(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(AIProfiles(profiles={"default": AISettings(api_url="https://x")}))

    settings = await StoreSettingsProvider(store).get_settings()

    assert settings.api_url == "https://x"


@pytest.mark.asyncio
async def test_provider_wraps_storage_errors() -> None:
    class BrokenStore:
        path = Path("broken.json")

        def load(self, *, profile: str | None = None) -> AIProfiles:
            raise OSError("disk unavailable")

    provider = StoreSettingsProvider(BrokenStore())  # type: ignore[arg-type]

    with pytest.raises(SettingsUnavailableError) as excinfo:
        await provider.get_settings()

    assert excinfo.value.status_message == "AI settings unavailable."
    assert "disk unavailable" in str(excinfo.value)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", ""), ("abcd", "****"), ("sk-123456", "sk*****56")],
)
def test_redact_secret(value: str, expected: str) -> None:
    assert redact_secret(value) == expected
