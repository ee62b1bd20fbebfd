"""Public API for the moonlight installer core."""

from __future__ import annotations

from services.installer.builder import build_installer_service, start_command_bus
from services.installer.bus import (
    Command,
    CommandBus,
    GetDownloadedVersions,
    GetInstalls,
    GetLatestVersion,
    KillClient,
    PatchInstall,
    ResetConfig,
    Response,
    UnpatchInstall,
    UpdatePackage,
)
from services.installer.constants import (
    API_URL,
    ARTIFACT_NAME,
    CONFIG_DIR_ENV,
    NIGHTLY_DIST_URL,
    NIGHTLY_REF_URL,
)
from services.installer.detection import InstallDetector
from services.installer.errors import (
    ErrorKind,
    FileLockedError,
    InstallerError,
    NetworkError,
    PermissionDeniedError,
    UnknownInstallerError,
)
from services.installer.models import (
    BootstrapMetadata,
    Channel,
    DetectedInstall,
    DownloadedPackage,
    InstallInfo,
    ModBranch,
    VersionMap,
    VersionRecord,
)
from services.installer.patcher import PatchEngine
from services.installer.paths import Paths, resolve_paths
from services.installer.releases import ReleaseFetcher
from services.installer.service import InstallerService
from services.installer.versioning import is_update_available
from services.installer.versions import VersionStore

__all__ = [
    "API_URL",
    "ARTIFACT_NAME",
    "CONFIG_DIR_ENV",
    "NIGHTLY_DIST_URL",
    "NIGHTLY_REF_URL",
    "BootstrapMetadata",
    "Channel",
    "Command",
    "CommandBus",
    "DetectedInstall",
    "DownloadedPackage",
    "ErrorKind",
    "FileLockedError",
    "GetDownloadedVersions",
    "GetInstalls",
    "GetLatestVersion",
    "InstallDetector",
    "InstallInfo",
    "InstallerError",
    "InstallerService",
    "KillClient",
    "ModBranch",
    "NetworkError",
    "PatchEngine",
    "PatchInstall",
    "Paths",
    "PermissionDeniedError",
    "ReleaseFetcher",
    "ResetConfig",
    "Response",
    "UnknownInstallerError",
    "UnpatchInstall",
    "UpdatePackage",
    "VersionMap",
    "VersionRecord",
    "VersionStore",
    "build_installer_service",
    "is_update_available",
    "resolve_paths",
    "start_command_bus",
]
