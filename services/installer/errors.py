"""Error taxonomy for installer operations."""

from __future__ import annotations

import errno
import sys
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

_WINDOWS_SHARING_VIOLATION = 32


class ErrorKind(str, Enum):
    FILE_LOCKED = "file_locked"
    PERMISSION_DENIED = "permission_denied"
    NETWORK_FAILURE = "network_failure"
    UNKNOWN = "unknown"


class InstallerError(RuntimeError):
    """Raised when an installer operation cannot be completed."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FileLockedError(InstallerError):
    """The Discord process holds a file open (Windows only)."""

    kind = ErrorKind.FILE_LOCKED

    def __str__(self) -> str:
        return f"failed to get windows file lock: {self.message}"


class PermissionDeniedError(InstallerError):
    """The OS refused the filesystem edit (macOS App Management)."""

    kind = ErrorKind.PERMISSION_DENIED

    def __str__(self) -> str:
        return f"failed to get macos file permission: {self.message}"


class NetworkError(InstallerError):
    kind = ErrorKind.NETWORK_FAILURE

    def __str__(self) -> str:
        return f"network request failed: {self.message}"


class UnknownInstallerError(InstallerError):
    kind = ErrorKind.UNKNOWN

    def __str__(self) -> str:
        return f"unknown error: {self.message}"


def current_platform_name(platform: str | None = None) -> str:
    value = platform or sys.platform
    if value.startswith("win"):
        return "windows"
    if value == "darwin":
        return "macos"
    if value.startswith("linux"):
        return "linux"
    return value


def from_os_error(exc: OSError, platform: str | None = None) -> InstallerError:
    """Classify ``exc`` using its OS error code."""

    name = current_platform_name(platform)
    message = str(exc)
    if name == "windows" and getattr(exc, "winerror", None) == _WINDOWS_SHARING_VIOLATION:
        return FileLockedError(message)
    if name == "macos" and exc.errno == errno.EPERM:
        return PermissionDeniedError(message)
    return UnknownInstallerError(message)


@contextmanager
def translate_os_errors(platform: str | None = None) -> Iterator[None]:
    """Re-raise any ``OSError`` raised in the block as an :class:`InstallerError`."""

    try:
        yield
    except OSError as exc:
        raise from_os_error(exc, platform) from exc


__all__ = [
    "ErrorKind",
    "FileLockedError",
    "InstallerError",
    "NetworkError",
    "PermissionDeniedError",
    "UnknownInstallerError",
    "current_platform_name",
    "from_os_error",
    "translate_os_errors",
]
