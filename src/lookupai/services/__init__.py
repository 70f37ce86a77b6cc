"""Service layer helpers (settings)."""

from .settings import AISettings, SettingsProvider, SettingsStore, StoreSettingsProvider

__all__ = ["AISettings", "SettingsProvider", "SettingsStore", "StoreSettingsProvider"]
