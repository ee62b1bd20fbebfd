"""Facade tying the installer components together."""

from __future__ import annotations

import logging
from pathlib import Path

from services.installer.detection import InstallDetector
from services.installer.maintenance import kill_client, reset_config
from services.installer.models import (
    Channel,
    DetectedInstall,
    DownloadedPackage,
    InstallInfo,
    ModBranch,
    VersionMap,
)
from services.installer.patcher import PatchEngine
from services.installer.paths import Paths
from services.installer.releases import ReleaseFetcher
from services.installer.versions import VersionStore

_LOGGER = logging.getLogger(__name__)


class InstallerService:
    """Coordinate detection, downloads and patching for one user."""

    def __init__(
        self,
        paths: Paths,
        *,
        detector: InstallDetector | None = None,
        patcher: PatchEngine | None = None,
        versions: VersionStore | None = None,
        fetcher: ReleaseFetcher | None = None,
    ) -> None:
        self.paths = paths
        self.detector = detector or InstallDetector(paths)
        self.patcher = patcher or PatchEngine(paths)
        self.versions = versions or VersionStore(paths)
        self.fetcher = fetcher or ReleaseFetcher(paths)

    def get_installs(self) -> list[InstallInfo]:
        return self.detector.get_installs()

    def detect_install_at(self, executable: str | Path) -> InstallInfo | None:
        return self.detector.detect_install_at(executable)

    def get_downloaded_versions(self) -> VersionMap:
        return self.versions.get_downloaded_versions()

    def get_latest_version(self, branch: ModBranch) -> tuple[ModBranch, str]:
        return branch, self.fetcher.get_latest_version(branch)

    def update_package(self, branch: ModBranch) -> DownloadedPackage:
        """Download ``branch`` and record it as the branch's current version."""

        package = self.fetcher.download_package(branch)
        self.versions.set_downloaded_version(branch, package.version, package.path)
        return package

    def patch_install(
        self,
        install: DetectedInstall,
        branch: ModBranch,
        package_dir: Path | None = None,
    ) -> Path:
        """Patch ``install`` to load ``branch``; returns the install path."""

        target = Path(package_dir) if package_dir is not None else self.paths.download_dir(branch)
        if package_dir is not None:
            _LOGGER.info("Using custom moonlight build at %s", target)
        self.patcher.patch(install, target, branch)
        return install.path

    def unpatch_install(self, install: DetectedInstall) -> Path:
        self.patcher.unpatch(install)
        return install.path

    def kill_client(self, channel: Channel) -> bool:
        return kill_client(channel, self.paths)

    def reset_config(self, channel: Channel) -> Path | None:
        return reset_config(channel, self.paths)


__all__ = ["InstallerService"]
