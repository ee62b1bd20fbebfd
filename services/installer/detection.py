"""Discover Discord installations on the current machine."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Iterator

from services.installer.constants import APP_FOLDER, ORIGINAL_ASAR, WINDOWS_VERSION_PREFIX
from services.installer.errors import translate_os_errors
from services.installer.models import BootstrapMetadata, Channel, DetectedInstall, InstallInfo
from services.installer.paths import Paths

_LOGGER = logging.getLogger(__name__)


class InstallDetector:
    """Enumerate installs of every Discord channel for the configured platform."""

    def __init__(self, paths: Paths) -> None:
        self._paths = paths
        self._scanners: dict[str, Callable[[], Iterator[DetectedInstall]]] = {
            "windows": self._scan_windows,
            "macos": self._scan_macos,
            "linux": self._scan_linux,
        }

    def detect_installs(self) -> list[DetectedInstall]:
        scanner = self._scanners.get(self._paths.platform.name)
        if scanner is None:
            _LOGGER.debug("No install locations known for platform %s", self._paths.platform.name)
            return []

        with translate_os_errors(self._paths.platform.name):
            installs = [self._attach_bootstrap(install) for install in scanner()]
        _LOGGER.info("Detected %d Discord install(s)", len(installs))
        return installs

    def get_installs(self) -> list[InstallInfo]:
        return [self._describe(install) for install in self.detect_installs()]

    def detect_install_at(self, executable: str | Path) -> InstallInfo | None:
        """Return the install owning ``executable`` or ``None`` when it is not one."""

        exe = Path(executable)
        folder = exe.parent
        resources = self._paths.resource_dir(folder)
        if not _probe(resources.is_dir):
            _LOGGER.debug("No resource directory at %s", resources)
            return None
        install = self._attach_bootstrap(
            DetectedInstall(channel=Channel.from_executable_name(exe.name), path=folder)
        )
        return self._describe(install)

    def is_patched(self, install: DetectedInstall) -> bool:
        """Return ``True`` when the archive is renamed away and the app folder exists."""

        resources = self._paths.resource_dir(install.path)
        archive_present = _probe((resources / ORIGINAL_ASAR).exists, default=True)
        app_folder_present = _probe((resources / APP_FOLDER).is_dir)
        return not archive_present and app_folder_present

    def _describe(self, install: DetectedInstall) -> InstallInfo:
        saved_config = self._paths.saved_config_file(install.channel)
        return InstallInfo(
            install=install,
            is_patched=self.is_patched(install),
            has_saved_config=_probe(saved_config.exists),
        )

    def _attach_bootstrap(self, install: DetectedInstall) -> DetectedInstall:
        metadata = read_bootstrap_metadata(self._paths.bootstrap_metadata_file(install.path))
        if metadata is None:
            return install
        return DetectedInstall(
            channel=install.channel,
            path=install.path,
            sandbox_id=install.sandbox_id,
            bootstrap=metadata,
        )

    def _scan_windows(self) -> Iterator[DetectedInstall]:
        root = self._paths.local_app_data
        if root is None:
            return
        for channel in Channel:
            channel_dir = root / channel.data_dir_name
            if not channel_dir.is_dir():
                continue
            # Version folders are ranked by plain string order, so app-1.9.0
            # sorts after app-1.10.0.
            versions = sorted(
                entry.name
                for entry in channel_dir.iterdir()
                if entry.name.startswith(WINDOWS_VERSION_PREFIX) and entry.is_dir()
            )
            if not versions:
                _LOGGER.debug("No version folders inside %s", channel_dir)
                continue
            yield DetectedInstall(channel=channel, path=channel_dir / versions[-1])

    def _scan_macos(self) -> Iterator[DetectedInstall]:
        for apps_dir in self._paths.application_roots:
            for channel in Channel:
                bundle = apps_dir / channel.macos_bundle_name
                if not bundle.exists():
                    continue
                yield DetectedInstall(channel=channel, path=bundle / "Contents" / "Resources")

    def _scan_linux(self) -> Iterator[DetectedInstall]:
        for channel in Channel:
            found = self._first_existing(Path(channel.data_dir_name))
            if found is not None:
                yield DetectedInstall(channel=channel, path=found)

        for channel in Channel:
            relative = channel.flatpak_relative_path
            if relative is None:
                continue
            found = self._first_existing(relative)
            if found is not None:
                yield DetectedInstall(channel=channel, path=found, sandbox_id=channel.flatpak_id)

    def _first_existing(self, relative: Path) -> Path | None:
        for root in self._paths.data_roots:
            candidate = root / relative
            if candidate.exists():
                return candidate
        return None


def read_bootstrap_metadata(path: Path) -> BootstrapMetadata | None:
    """Parse the bootstrap sidecar at ``path``; missing or invalid files yield ``None``."""

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        _LOGGER.debug("Unable to read bootstrap metadata %s: %s", path, exc)
        return None
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("bootstrap metadata must be a JSON object")
        return BootstrapMetadata.from_json(data)
    except ValueError as exc:
        _LOGGER.debug("Ignoring unparseable bootstrap metadata %s: %s", path, exc)
        return None


def _probe(check: Callable[[], bool], *, default: bool = False) -> bool:
    try:
        return check()
    except OSError as exc:
        _LOGGER.debug("Filesystem probe failed: %s", exc)
        return default


__all__ = ["InstallDetector", "read_bootstrap_metadata"]
