"""Service layer helpers (settings persistence)."""

from .settings import PipelineSettings, Settings, SettingsStore, redact_secret

__all__ = ["PipelineSettings", "Settings", "SettingsStore", "redact_secret"]
