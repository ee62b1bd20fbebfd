from __future__ import annotations

import logging
from pathlib import Path

import pytest

from shared import logging_config


def _flush_managed_handlers() -> None:
    for handler in logging.getLogger().handlers:
        if getattr(handler, logging_config._HANDLER_TAG, False):  # type: ignore[attr-defined]
            handler.flush()


def _managed_handlers() -> list[logging.Handler]:
    return [
        handler
        for handler in logging.getLogger().handlers
        if getattr(handler, logging_config._HANDLER_TAG, False)  # type: ignore[attr-defined]
    ]


@pytest.fixture(autouse=True)
def reset_logging():
    logging_config._reset_for_tests()
    try:
        yield
    finally:
        logging_config._reset_for_tests()


def test_logging_creates_file_in_configured_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    logging.getLogger("services.installer.patcher").debug("debug message")
    logging.getLogger("services.installer.patcher").info("info message")
    _flush_managed_handlers()

    assert log_path == tmp_path / "installer.log"
    assert logging_config.get_file_log_verbosity() is logging_config.LogVerbosity.INFO
    contents = log_path.read_text(encoding="utf-8")
    assert "debug message" not in contents
    assert "info message" in contents


def test_log_file_env_takes_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path / "ignored"))
    monkeypatch.setenv("MOONLIGHT_LOG_FILE", str(tmp_path / "custom" / "moonlight.log"))

    assert logging_config.ensure_app_logging() == tmp_path / "custom" / "moonlight.log"


def test_logging_configuration_is_idempotent(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path))

    first_path = logging_config.ensure_app_logging()
    second_path = logging_config.ensure_app_logging()

    assert first_path == second_path
    managed = _managed_handlers()
    # Only the file handler is installed during tests (stderr is not a tty).
    assert len(managed) == 1
    assert isinstance(managed[0], logging.FileHandler)
    assert Path(managed[0].baseFilename) == first_path


def test_console_handler_can_be_forced(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path))

    logging_config.ensure_app_logging(console=True)

    kinds = sorted(type(handler).__name__ for handler in _managed_handlers())
    assert kinds == ["FileHandler", "StreamHandler"]


def test_verbosity_env_is_applied(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("MOONLIGHT_LOG", "Verbose")

    log_path = logging_config.ensure_app_logging()
    logging.getLogger("tests.logging").debug("debug message")
    _flush_managed_handlers()

    assert logging_config.get_file_log_verbosity() is logging_config.LogVerbosity.VERBOSE
    assert "debug message" in log_path.read_text(encoding="utf-8")


def test_invalid_verbosity_env_falls_back_to_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("MOONLIGHT_LOG", "chatty")

    logging_config.ensure_app_logging()

    assert logging_config.get_file_log_verbosity() is logging_config.LogVerbosity.INFO


def test_disabling_file_logging_suppresses_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    logging_config.set_file_log_verbosity("disabled")
    _flush_managed_handlers()
    initial_size = log_path.stat().st_size

    logging.getLogger("tests.logging").critical("critical message")
    _flush_managed_handlers()

    assert log_path.stat().st_size == initial_size


def test_unknown_verbosity_is_rejected() -> None:
    with pytest.raises(ValueError):
        logging_config.set_file_log_verbosity("chatty")


def test_home_directory_is_redacted(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "alice-home"
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(tmp_path / "logs"))

    log_path = logging_config.ensure_app_logging()
    logging.getLogger("tests.logging").warning("Patched %s", home / ".config" / "moonlight-mod")
    _flush_managed_handlers()

    contents = log_path.read_text(encoding="utf-8")
    assert f"Patched {logging_config.USER_HOME_PLACEHOLDER}/.config/moonlight-mod" in contents
    assert str(home) not in contents
