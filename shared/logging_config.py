"""Process-wide logging setup for the installer.

Log records are written to a file so a failed patch can be diagnosed after
the fact, and echoed to stderr when running in a terminal.  Home-directory
paths and the account name are replaced before anything reaches a handler
output so log files can be shared publicly.

Environment variables:

``MOONLIGHT_LOG_FILE``
    Path of the log file to create.

``MOONLIGHT_LOG_DIR``
    Directory that receives ``installer.log``.  Ignored when
    ``MOONLIGHT_LOG_FILE`` is set.

``MOONLIGHT_LOG``
    Initial file verbosity (``error``, ``warning``, ``info`` or ``verbose``).
"""

from __future__ import annotations

import logging
import os
import re
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable, TextIO

_LOG_FILE_ENV = "MOONLIGHT_LOG_FILE"
_LOG_DIR_ENV = "MOONLIGHT_LOG_DIR"
_VERBOSITY_ENV = "MOONLIGHT_LOG"
_DEFAULT_DIRNAME = ".moonlight-installer"
_DEFAULT_LOGNAME = "installer.log"
_HANDLER_TAG = "_moonlight_logging_handler"

_CONFIGURED = False
_LOG_PATH: Path | None = None
_FILE_HANDLER: logging.FileHandler | None = None
_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] | None = None

USER_PLACEHOLDER = "<user>"
USER_HOME_PLACEHOLDER = "<user_home>"


class LogVerbosity(str, Enum):
    """Verbosity levels supported by the installer log file."""

    DISABLED = "disabled"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    VERBOSE = "verbose"

    @property
    def level(self) -> int:
        return _VERBOSITY_LEVELS[self]

    @classmethod
    def parse(cls, raw: "LogVerbosity | str") -> "LogVerbosity":
        if isinstance(raw, LogVerbosity):
            return raw
        try:
            return cls(raw.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unsupported log verbosity: {raw}") from exc


_VERBOSITY_LEVELS: dict[LogVerbosity, int] = {
    LogVerbosity.DISABLED: logging.CRITICAL + 1,
    LogVerbosity.ERROR: logging.ERROR,
    LogVerbosity.WARNING: logging.WARNING,
    LogVerbosity.INFO: logging.INFO,
    LogVerbosity.VERBOSE: logging.DEBUG,
}

_DEFAULT_VERBOSITY = LogVerbosity.INFO
_CURRENT_VERBOSITY = _DEFAULT_VERBOSITY


def _home_candidates() -> set[str]:
    candidates = {str(Path.home())}
    for env_var in ("HOME", "USERPROFILE"):
        value = os.environ.get(env_var)
        if value:
            candidates.add(os.path.expanduser(value))
    result: set[str] = set()
    for candidate in candidates:
        normalised = os.path.normpath(candidate)
        if normalised in {os.sep, ".", ""}:
            continue
        result.update({normalised, normalised.replace("\\", "/"), normalised.replace("/", "\\")})
    return result


def _username_candidates() -> set[str]:
    names = {Path.home().name}
    for env_var in ("USERNAME", "USER", "LOGNAME"):
        value = os.environ.get(env_var)
        if value:
            names.add(value)
    return {name.strip() for name in names if name and name.strip()}


def _redactions() -> tuple[tuple[re.Pattern[str], str], ...]:
    global _REDACTIONS
    if _REDACTIONS is None:
        flags = re.IGNORECASE if os.name == "nt" else 0
        patterns: list[tuple[re.Pattern[str], str]] = [
            (re.compile(re.escape(path), flags), USER_HOME_PLACEHOLDER)
            for path in sorted(_home_candidates(), key=len, reverse=True)
        ]
        for name in sorted(_username_candidates(), key=len, reverse=True):
            patterns.append(
                (re.compile(rf"(?<![\w-]){re.escape(name)}(?![\w-])", re.IGNORECASE), USER_PLACEHOLDER)
            )
        _REDACTIONS = tuple(patterns)
    return _REDACTIONS


def redact(message: str) -> str:
    """Replace the home directory and account name in ``message``."""

    if not message:
        return message
    for pattern, replacement in _redactions():
        message = pattern.sub(replacement, message)
    return message


class _RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def ensure_app_logging(*, console: bool | None = None) -> Path:
    """Configure the root logger once and return the log file location.

    ``console`` forces (or suppresses) the stderr handler; by default it is
    added only when stderr is a terminal.  Later calls are no-ops.
    """

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER, _CURRENT_VERBOSITY

    if _CONFIGURED and _LOG_PATH is not None:
        return _LOG_PATH

    env_verbosity = os.environ.get(_VERBOSITY_ENV)
    if env_verbosity:
        try:
            _CURRENT_VERBOSITY = LogVerbosity.parse(env_verbosity)
        except ValueError:
            _CURRENT_VERBOSITY = _DEFAULT_VERBOSITY

    log_path = _resolve_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    formatter = _RedactingFormatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(_CURRENT_VERBOSITY.level)
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)
    _FILE_HANDLER = file_handler

    wants_console = _should_log_to_stderr(root.handlers) if console is None else console
    if wants_console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.INFO)
        stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        setattr(stream_handler, _HANDLER_TAG, True)
        root.addHandler(stream_handler)

    _CONFIGURED = True
    _LOG_PATH = log_path
    logging.getLogger(__name__).info(
        "Writing installer logs to %s (verbosity=%s)", log_path, _CURRENT_VERBOSITY.value
    )
    return log_path


def set_file_log_verbosity(verbosity: LogVerbosity | str) -> None:
    """Adjust the minimum severity recorded in the log file."""

    global _CURRENT_VERBOSITY

    parsed = LogVerbosity.parse(verbosity)
    ensure_app_logging()
    if _FILE_HANDLER is None:  # pragma: no cover - set by ensure_app_logging
        return
    _CURRENT_VERBOSITY = parsed
    _FILE_HANDLER.setLevel(parsed.level)
    logging.getLogger(__name__).info("File log verbosity set to %s", parsed.value)


def get_file_log_verbosity() -> LogVerbosity:
    return _CURRENT_VERBOSITY


def _resolve_log_path() -> Path:
    env_file = os.environ.get(_LOG_FILE_ENV)
    if env_file:
        return Path(env_file).expanduser()

    env_dir = os.environ.get(_LOG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser() / _DEFAULT_LOGNAME

    return Path.home() / _DEFAULT_DIRNAME / "logs" / _DEFAULT_LOGNAME


def _should_log_to_stderr(handlers: Iterable[logging.Handler]) -> bool:
    stderr: TextIO | None = getattr(sys, "stderr", None)
    if stderr is None:
        return False
    is_tty = getattr(stderr, "isatty", None)
    if not callable(is_tty):
        return False
    try:
        if not is_tty():
            return False
    except (OSError, ValueError):
        return False
    return not any(
        isinstance(handler, logging.StreamHandler) and handler.stream is stderr
        for handler in handlers
    )


def _reset_for_tests() -> None:
    """Remove handlers installed by :func:`ensure_app_logging`."""

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER, _CURRENT_VERBOSITY, _REDACTIONS

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    _CONFIGURED = False
    _LOG_PATH = None
    _FILE_HANDLER = None
    _CURRENT_VERBOSITY = _DEFAULT_VERBOSITY
    _REDACTIONS = None


__all__ = [
    "LogVerbosity",
    "USER_HOME_PLACEHOLDER",
    "USER_PLACEHOLDER",
    "ensure_app_logging",
    "get_file_log_verbosity",
    "redact",
    "set_file_log_verbosity",
]
