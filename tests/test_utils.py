"""Tests for file IO and logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pairwatch.utils import file_io, logging as logging_utils


def test_read_text_detects_bom_and_normalizes_newlines(tmp_path: Path) -> None:
    target = tmp_path / "utf16.txt"
    target.write_bytes("Line1\r\nLine2".encode("utf-16"))

    result = file_io.read_text(target)

    assert result == "Line1\nLine2"


def test_read_text_can_keep_newlines(tmp_path: Path) -> None:
    target = tmp_path / "crlf.txt"
    target.write_bytes("\ufeffa\r\nb".encode("utf-8"))

    assert file_io.read_text(target, normalize_newlines=False) == "a\r\nb"


def test_write_text_enforces_newline_policy(tmp_path: Path) -> None:
    target = tmp_path / "output.txt"

    returned = file_io.write_text(target, "Line1\nLine2", newline="\r\n")

    assert returned == target
    assert target.read_bytes() == b"Line1\r\nLine2"


def test_write_text_without_policy_keeps_content(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "mixed.txt"

    file_io.write_text(target, "a\r\nb\nc", newline=None)

    assert target.read_bytes() == b"a\r\nb\nc"
    assert [path.name for path in target.parent.iterdir()] == ["mixed.txt"]


def test_detect_newline() -> None:
    assert file_io.detect_newline("a\r\nb") == "\r\n"
    assert file_io.detect_newline("a\rb") == "\r"
    assert file_io.detect_newline("ab") == "\n"


def test_setup_logging_creates_rotating_file(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"

    log_path = logging_utils.setup_logging(
        level=logging.INFO,
        log_dir=log_dir,
        console=False,
        force=True,
    )

    logger = logging.getLogger("pairwatch.tests")
    logger.info("Logging smoke test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == log_dir / "pairwatch.log"
    assert logging_utils.get_log_path() == log_path
    assert "Logging smoke test" in log_path.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_respects_env_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAIRWATCH_LOG_DIR", str(tmp_path / "env-logs"))

    log_path = logging_utils.setup_logging(console=False, force=True)

    assert log_path.parent == tmp_path / "env-logs"
