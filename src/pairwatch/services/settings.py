"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..context.ingest import DEFAULT_IGNORED_FRAGMENTS, DEFAULT_SOURCE_EXTENSIONS

__all__ = [
    "PipelineSettings",
    "Settings",
    "SettingsStore",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".pairwatch"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "PAIRWATCH_API_KEY": "api_key",
    "PAIRWATCH_BASE_URL": "base_url",
    "PAIRWATCH_MODEL": "model",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "PAIRWATCH_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "PAIRWATCH_REQUEST_TIMEOUT": "request_timeout",
}
_PIPELINE_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "PAIRWATCH_MIN_INTERVAL": "min_interval_seconds",
    "PAIRWATCH_DEBOUNCE": "debounce_seconds",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
REPLACE_MODES: tuple[str, ...] = ("all", "first")


@dataclass(slots=True)
class PipelineSettings:
    """Timing and filtering knobs for the suggestion pipeline."""

    enabled: bool = True
    debounce_seconds: float = 0.1
    auto_expire_seconds: float = 15.0
    grace_seconds: float = 1.0
    min_interval_seconds: float = 0.0
    significance_threshold: int = 30
    recent_files_limit: int = 3
    max_diff_entries: int = 10
    max_context_lines: int = 200
    replace_mode: str = "all"
    source_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_EXTENSIONS))
    ignored_path_fragments: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORED_FRAGMENTS))


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    organization: str | None = None
    request_timeout: float = 10.0
    max_retries: int = 2
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 4.0
    temperature: float = 0.2
    max_tokens: int = 512
    json_mode: bool = True
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    debug_logging: bool = False
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)


class SettingsStore:
    """Persistence adapter for :class:`Settings`.

    The API key only ever comes from overrides or the environment; it is
    stripped from every payload written to disk.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            if payload.pop("api_key", None):
                LOGGER.warning("Ignoring api_key stored in %s; use PAIRWATCH_API_KEY instead", self._path)
            data = _filter_fields(payload)
            data["pipeline"] = _coerce_pipeline(data.get("pipeline"))
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            LOGGER.debug("Settings loaded from %s", self._path)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        settings = self._apply_env_overrides(settings)
        return _validated(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        data.pop("api_key", None)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain a JSON object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        pipeline_updates: Dict[str, Any] = {}
        for key, value in overrides.items():
            if value is None:
                continue
            if key.startswith("pipeline."):
                pipeline_updates[key.split(".", 1)[1]] = value
                continue
            if key not in allowed:
                continue
            filtered[key] = value

        pipeline_override = filtered.pop("pipeline", None)
        if isinstance(pipeline_override, PipelineSettings):
            pipeline_override = asdict(pipeline_override)
        if isinstance(pipeline_override, Mapping):
            pipeline_updates = {**pipeline_override, **pipeline_updates}
        if pipeline_updates:
            known = {field.name for field in fields(PipelineSettings)}
            unknown = sorted(set(pipeline_updates) - known)
            if unknown:
                LOGGER.warning("Ignoring unknown pipeline settings: %s", unknown)
            pipeline_updates = {key: value for key, value in pipeline_updates.items() if key in known}
            filtered["pipeline"] = replace(settings.pipeline, **pipeline_updates)

        metadata_override = filtered.get("metadata")
        if isinstance(metadata_override, Mapping):
            merged_metadata = dict(settings.metadata or {})
            merged_metadata.update(metadata_override)
            filtered["metadata"] = merged_metadata
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            parsed = _float_env(env_name)
            if parsed is not None:
                overrides[field_name] = parsed
        for env_name, field_name in _PIPELINE_FLOAT_ENV_OVERRIDES.items():
            parsed = _float_env(env_name)
            if parsed is not None:
                overrides[f"pipeline.{field_name}"] = parsed
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


def _float_env(name: str) -> float | None:
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Environment override %s=%s is not a valid float", name, value)
        return None


def _coerce_pipeline(payload: Any) -> PipelineSettings:
    if isinstance(payload, PipelineSettings):
        return payload
    if not isinstance(payload, Mapping):
        return PipelineSettings()
    known = {field.name for field in fields(PipelineSettings)}
    try:
        return PipelineSettings(**{key: value for key, value in payload.items() if key in known})
    except TypeError:
        return PipelineSettings()


def _validated(settings: Settings) -> Settings:
    pipeline = settings.pipeline
    if pipeline.replace_mode not in REPLACE_MODES:
        LOGGER.warning("Unknown replace_mode %r; falling back to 'all'", pipeline.replace_mode)
        settings = replace(settings, pipeline=replace(pipeline, replace_mode="all"))
    return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - {"api_key"}
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            continue
        result[key] = value
    return result
