"""Service layer helpers (settings persistence and validation)."""

from .settings import Provider, SettingsManager, SettingsStore, validate_settings

__all__ = ["Provider", "SettingsManager", "SettingsStore", "validate_settings"]
