"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from pairwatch.services.settings import PipelineSettings, Settings, SettingsStore, redact_secret


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PAIRWATCH_API_KEY",
        "PAIRWATCH_BASE_URL",
        "PAIRWATCH_MODEL",
        "PAIRWATCH_DEBUG_LOGGING",
        "PAIRWATCH_REQUEST_TIMEOUT",
        "PAIRWATCH_MIN_INTERVAL",
        "PAIRWATCH_DEBOUNCE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == Settings()
    assert settings.pipeline.debounce_seconds == 0.1
    assert settings.pipeline.auto_expire_seconds == 15.0
    assert settings.pipeline.grace_seconds == 1.0
    assert settings.pipeline.replace_mode == "all"


def test_save_and_load_roundtrip_without_api_key(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    original = Settings(
        base_url="https://example.com/v1",
        api_key="super-secret",
        model="local-model",
        default_headers={"X-Test": "1"},
        pipeline=PipelineSettings(min_interval_seconds=5.0, source_extensions=["py"]),
    )

    store.save(original)
    payload = json.loads(path.read_text(encoding="utf-8"))
    reloaded = SettingsStore(path).load()

    assert "api_key" not in payload
    assert "super-secret" not in path.read_text(encoding="utf-8")
    assert payload["version"] == 1
    assert reloaded == replace(original, api_key="")


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"model": "m", "theme": "dark", "pipeline": {"grace_seconds": 2, "bogus": 1}}),
        encoding="utf-8",
    )

    settings = SettingsStore(path).load()

    assert settings.model == "m"
    assert settings.pipeline.grace_seconds == 2


def test_stored_api_key_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"api_key": "leaked"}), encoding="utf-8")

    assert SettingsStore(path).load().api_key == ""


def test_cli_overrides_then_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAIRWATCH_MODEL", "env-model")
    monkeypatch.setenv("PAIRWATCH_API_KEY", "env-key")
    monkeypatch.setenv("PAIRWATCH_DEBOUNCE", "0.5")
    monkeypatch.setenv("PAIRWATCH_DEBUG_LOGGING", "yes")
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load(
        overrides={
            "model": "cli-model",
            "max_tokens": 256,
            "pipeline.min_interval_seconds": 3.0,
            "pipeline": {"grace_seconds": 0.5},
        }
    )

    assert settings.model == "env-model"
    assert settings.api_key == "env-key"
    assert settings.max_tokens == 256
    assert settings.debug_logging is True
    assert settings.pipeline.debounce_seconds == 0.5
    assert settings.pipeline.min_interval_seconds == 3.0
    assert settings.pipeline.grace_seconds == 0.5


def test_invalid_float_env_override_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAIRWATCH_REQUEST_TIMEOUT", "soon")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.request_timeout == Settings().request_timeout


def test_unknown_replace_mode_falls_back_to_all(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load(overrides={"pipeline.replace_mode": "some"})

    assert settings.pipeline.replace_mode == "all"


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("abc") == "***"
    assert redact_secret("sk-123456") == "sk*****56"
