"""Ordered request/response channel between a foreground loop and the installer.

Commands are executed one at a time on a single long-lived worker thread.
Each command produces exactly one :class:`Response`, and responses arrive in
the order their commands were submitted.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, SimpleQueue
from typing import Any, Callable, Optional, Union

from services.installer.errors import InstallerError, UnknownInstallerError
from services.installer.models import Channel, DetectedInstall, ModBranch
from services.installer.service import InstallerService
from shared.result import Result


_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GetInstalls:
    pass


@dataclass(frozen=True)
class GetDownloadedVersions:
    pass


@dataclass(frozen=True)
class GetLatestVersion:
    branch: ModBranch


@dataclass(frozen=True)
class UpdatePackage:
    branch: ModBranch


@dataclass(frozen=True)
class PatchInstall:
    install: DetectedInstall
    branch: ModBranch
    package_dir: Optional[Path] = None


@dataclass(frozen=True)
class UnpatchInstall:
    install: DetectedInstall


@dataclass(frozen=True)
class KillClient:
    channel: Channel


@dataclass(frozen=True)
class ResetConfig:
    channel: Channel


Command = Union[
    GetInstalls,
    GetDownloadedVersions,
    GetLatestVersion,
    UpdatePackage,
    PatchInstall,
    UnpatchInstall,
    KillClient,
    ResetConfig,
]


@dataclass(frozen=True)
class Response:
    command: Command
    result: Result[Any, InstallerError]


_HANDLERS: dict[type, Callable[[InstallerService, Any], Any]] = {
    GetInstalls: lambda service, _cmd: service.get_installs(),
    GetDownloadedVersions: lambda service, _cmd: service.get_downloaded_versions(),
    GetLatestVersion: lambda service, cmd: service.get_latest_version(cmd.branch),
    UpdatePackage: lambda service, cmd: service.update_package(cmd.branch),
    PatchInstall: lambda service, cmd: service.patch_install(
        cmd.install, cmd.branch, cmd.package_dir
    ),
    UnpatchInstall: lambda service, cmd: service.unpatch_install(cmd.install),
    KillClient: lambda service, cmd: service.kill_client(cmd.channel),
    ResetConfig: lambda service, cmd: service.reset_config(cmd.channel),
}


def execute(service: InstallerService, command: Command) -> Response:
    """Run ``command`` synchronously and wrap its outcome in a :class:`Response`."""

    handler = _HANDLERS.get(type(command))
    if handler is None:
        return Response(command, Result.err(UnknownInstallerError(f"Unsupported command: {command!r}")))
    try:
        value = handler(service, command)
    except InstallerError as exc:
        _LOGGER.warning("%s failed: %s", type(command).__name__, exc)
        return Response(command, Result.err(exc))
    except Exception as exc:
        _LOGGER.exception("Unexpected error while running %s", type(command).__name__)
        return Response(command, Result.err(UnknownInstallerError(str(exc))))
    return Response(command, Result.ok(value))


class CommandBus:
    """Feed commands to a background worker and collect its responses."""

    def __init__(self, service: InstallerService) -> None:
        self._service = service
        self._commands: SimpleQueue[Command | None] = SimpleQueue()
        self._responses: SimpleQueue[Response] = SimpleQueue()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Command bus has been closed")
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._worker_loop,
                name="installer-logic",
                daemon=True,
            )
            self._thread.start()

    def submit(self, command: Command) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Command bus has been closed")
        _LOGGER.debug("Queued %s", type(command).__name__)
        self._commands.put(command)

    def poll(self) -> list[Response]:
        """Return every response that is currently available without blocking."""

        responses: list[Response] = []
        while True:
            try:
                responses.append(self._responses.get_nowait())
            except Empty:
                return responses

    def wait(self, timeout: float | None = None) -> Response | None:
        """Block until the next response arrives; ``None`` when ``timeout`` expires."""

        try:
            return self._responses.get(timeout=timeout)
        except Empty:
            return None

    def close(self, timeout: float = 3.0) -> None:
        """Stop the worker once it has finished the commands already queued."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
            self._thread = None

        self._commands.put(None)
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                _LOGGER.warning("Installer worker did not stop within %.1fs", timeout)

    def __enter__(self) -> "CommandBus":
        self.start()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def _worker_loop(self) -> None:
        while True:
            command = self._commands.get()
            if command is None:
                break
            self._responses.put(execute(self._service, command))
        _LOGGER.debug("Installer worker stopped")


__all__ = [
    "Command",
    "CommandBus",
    "GetDownloadedVersions",
    "GetInstalls",
    "GetLatestVersion",
    "KillClient",
    "PatchInstall",
    "ResetConfig",
    "Response",
    "UnpatchInstall",
    "UpdatePackage",
    "execute",
]
