"""AI settings profiles, persistence helpers and the settings provider."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol

from cryptography.fernet import Fernet, InvalidToken

from ..ai.errors import SettingsUnavailableError

__all__ = [
    "AISettings",
    "AIProfiles",
    "SettingsProvider",
    "SettingsStore",
    "SecretVault",
    "StoreSettingsProvider",
    "MODE_CHOICES",
    "DEFAULT_MODE",
    "DEFAULT_PROFILE",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".lookupai"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_API_KEY_FIELD = "api_key_ciphertext"
_PROFILE_ENV = "LOOKUPAI_PROFILE"
_ENV_OVERRIDES: Mapping[str, str] = {
    "LOOKUPAI_API_URL": "api_url",
    "LOOKUPAI_API_KEY": "api_key",
    "LOOKUPAI_MODEL": "model",
    "LOOKUPAI_MODE": "mode",
    "LOOKUPAI_PROMPT": "prompt",
}
# Keys as written by the browser-side settings schema.
_FIELD_ALIASES: Mapping[str, str] = {
    "apiUrl": "api_url",
    "apiKey": "api_key",
}
DEFAULT_MODE = "auto"
DEFAULT_PROFILE = "default"
MODE_CHOICES: tuple[str, ...] = ("auto", "manual")


@dataclass(slots=True)
class AISettings:
    """Settings snapshot for one profile, read once per lookup."""

    mode: str = DEFAULT_MODE
    api_url: str = ""
    api_key: str = ""
    model: str = ""
    prompt: str = ""

    @property
    def is_manual(self) -> bool:
        return self.mode == "manual"

    def normalized(self) -> "AISettings":
        mode = str(self.mode or "").strip().lower()
        if mode not in MODE_CHOICES:
            if mode:
                LOGGER.warning("Unknown AI mode '%s'; defaulting to %s.", self.mode, DEFAULT_MODE)
            mode = DEFAULT_MODE
        return replace(
            self,
            mode=mode,
            api_url=_as_text(self.api_url).strip(),
            api_key=_as_text(self.api_key),
            model=_as_text(self.model).strip(),
            prompt=_as_text(self.prompt),
        )


@dataclass(slots=True)
class AIProfiles:
    """All stored profiles plus the name of the active one."""

    profiles: dict[str, AISettings] = field(default_factory=lambda: {DEFAULT_PROFILE: AISettings()})
    active_profile: str = DEFAULT_PROFILE

    def active(self) -> AISettings:
        settings = self.profiles.get(self.active_profile)
        if settings is None:
            LOGGER.warning("Active profile '%s' not found; using defaults.", self.active_profile)
            return AISettings()
        return settings


class SettingsProvider(Protocol):
    """Supplies the settings snapshot for the active profile."""

    async def get_settings(self) -> AISettings:  # pragma: no cover - protocol
        ...


class SecretVault:
    """Encrypts the API key for storage with a Fernet key kept beside the settings."""

    name = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def strategy(self) -> str:
        return self.name

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.name}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if not payload:
            prefix, payload = self.name, token
        if prefix != self.name:
            raise ValueError(f"Unknown secret backend '{prefix}'")
        try:
            raw = self._get_fernet().decrypt(payload.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """JSON persistence for :class:`AIProfiles`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, profile: str | None = None) -> AIProfiles:
        """Load profiles from disk, applying environment overrides to the active one."""

        payload = self._read_payload()
        profiles: dict[str, AISettings] = {}
        needs_migration = False

        raw_profiles = payload.get("profiles")
        if isinstance(raw_profiles, Mapping):
            for name, raw in raw_profiles.items():
                if not isinstance(raw, Mapping):
                    LOGGER.warning("Ignoring malformed settings profile '%s'", name)
                    continue
                settings, migrated = self._decode_profile(raw)
                profiles[str(name)] = settings
                needs_migration = needs_migration or migrated
        if not profiles:
            profiles[DEFAULT_PROFILE] = AISettings()

        active = payload.get("active_profile")
        if not isinstance(active, str) or active not in profiles:
            active = next(iter(profiles))
        result = AIProfiles(profiles=profiles, active_profile=active)

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(result)
            except OSError as exc:  # pragma: no cover - defensive guard
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        selected = profile or os.environ.get(_PROFILE_ENV)
        if selected:
            if selected not in result.profiles:
                LOGGER.info("Creating settings profile '%s' from defaults", selected)
                result.profiles[selected] = AISettings()
            result.active_profile = selected

        return self._apply_env_overrides(result)

    def save(self, profiles: AIProfiles) -> Path:
        """Persist profiles with an atomic file write."""

        body = json.dumps(self._serialize(profiles), indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s (%d profile(s))", self._path, len(profiles.profiles))
        return self._path

    def _serialize(self, profiles: AIProfiles) -> Dict[str, Any]:
        serialized: Dict[str, Any] = {}
        for name, settings in profiles.profiles.items():
            data = asdict(settings)
            api_key = data.pop("api_key", "") or ""
            if api_key:
                data[_API_KEY_FIELD] = self._vault.encrypt(api_key)
            serialized[name] = data
        return {
            "version": _SETTINGS_VERSION,
            "active_profile": profiles.active_profile,
            "secret_backend": self._vault.strategy,
            "profiles": serialized,
        }

    def _decode_profile(self, raw: Mapping[str, Any]) -> tuple[AISettings, bool]:
        data = {_FIELD_ALIASES.get(key, key): value for key, value in raw.items()}
        ciphertext = data.pop(_API_KEY_FIELD, None)
        legacy_plaintext = data.pop("api_key", None)
        allowed = {item.name for item in fields(AISettings)}
        values = {key: value for key, value in data.items() if key in allowed}
        migrated = False
        api_key = ""
        if ciphertext:
            try:
                api_key = self._vault.decrypt(ciphertext)
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt API key: %s", exc)
        elif legacy_plaintext:
            LOGGER.info("Detected plaintext API key; migrating to encrypted storage.")
            api_key = _as_text(legacy_plaintext)
            migrated = True
        values["api_key"] = api_key
        return AISettings(**values).normalized(), migrated

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not hold an object", self._path)
            return {}
        return payload

    def _apply_env_overrides(self, profiles: AIProfiles) -> AIProfiles:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        if not overrides:
            return profiles
        LOGGER.debug("Applying environment settings overrides: %s", sorted(overrides))
        active = profiles.active()
        profiles.profiles[profiles.active_profile] = replace(active, **overrides).normalized()
        return profiles


class StoreSettingsProvider:
    """:class:`SettingsProvider` backed by a :class:`SettingsStore`.

    Disk access runs in a worker thread so the event loop never blocks.
    Failures surface as :class:`SettingsUnavailableError` and are not retried.
    """

    def __init__(self, store: SettingsStore, *, profile: str | None = None) -> None:
        self._store = store
        self._profile = profile

    async def get_settings(self) -> AISettings:
        try:
            profiles = await asyncio.to_thread(self._store.load, profile=self._profile)
        except Exception as exc:
            LOGGER.error("Failed to load AI settings from %s: %s", self._store.path, exc)
            raise SettingsUnavailableError(str(exc) or "AI settings unavailable") from exc
        return profiles.active()


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
