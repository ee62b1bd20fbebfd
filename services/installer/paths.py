"""Platform-specific well-known directories.

Directory lookups are resolved once into an immutable :class:`Paths` value
which is then handed to every installer component.  The per-OS differences
live in the :class:`PlatformPaths` variants so the components never branch on
``sys.platform`` themselves.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from services.installer.constants import (
    APP_FOLDER,
    BOOTSTRAP_METADATA,
    CONFIG_DIR_ENV,
    INSTALLER_CONFIG_FILE,
    LEGACY_DOWNLOAD_DIR,
    LEGACY_VERSION_FILE,
    LINUX_SHARE_ENV,
    TOOL_DIR_NAME,
    VERSION_MAP_FILE,
)
from services.installer.errors import UnknownInstallerError, translate_os_errors
from services.installer.models import Channel, ModBranch

_LOGGER = logging.getLogger(__name__)


class PlatformPaths:
    """Base variant used for operating systems Discord does not ship on."""

    name = "unsupported"

    def home_dir(self, environ: Mapping[str, str]) -> Path:
        home = environ.get("HOME")
        if home:
            return Path(home)
        return _home_from_user_database()

    def default_config_dir(self, environ: Mapping[str, str], home: Path) -> Path:
        raise UnknownInstallerError(
            f"Unsupported OS {sys.platform!r}; set {CONFIG_DIR_ENV} to choose a config directory"
        )

    def xdg_config_home(self, environ: Mapping[str, str], home: Path) -> Path | None:
        return None

    def data_roots(self, environ: Mapping[str, str], home: Path) -> tuple[Path, ...]:
        return ()

    def application_roots(self, home: Path) -> tuple[Path, ...]:
        return ()

    def local_app_data(self, environ: Mapping[str, str], home: Path) -> Path | None:
        return None

    def resource_dir(self, install_path: Path) -> Path:
        return Path(install_path) / "resources"


class WindowsPaths(PlatformPaths):
    name = "windows"

    def home_dir(self, environ: Mapping[str, str]) -> Path:
        profile = environ.get("USERPROFILE") or environ.get("HOME")
        if profile:
            return Path(profile)
        return Path.home()

    def default_config_dir(self, environ: Mapping[str, str], home: Path) -> Path:
        appdata = environ.get("APPDATA")
        root = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return root / TOOL_DIR_NAME

    def local_app_data(self, environ: Mapping[str, str], home: Path) -> Path | None:
        local = environ.get("LOCALAPPDATA") or environ.get("LocalAppData")
        if local:
            return Path(local)
        return home / "AppData" / "Local"


class MacOSPaths(PlatformPaths):
    name = "macos"

    def default_config_dir(self, environ: Mapping[str, str], home: Path) -> Path:
        return home / "Library" / "Application Support" / TOOL_DIR_NAME

    def application_roots(self, home: Path) -> tuple[Path, ...]:
        return (Path("/Applications"), home / "Applications")

    def resource_dir(self, install_path: Path) -> Path:
        return Path(install_path)


class LinuxPaths(PlatformPaths):
    name = "linux"

    def xdg_config_home(self, environ: Mapping[str, str], home: Path) -> Path | None:
        return _linux_config_home(environ, home)

    def default_config_dir(self, environ: Mapping[str, str], home: Path) -> Path:
        return _linux_config_home(environ, home) / TOOL_DIR_NAME

    def data_roots(self, environ: Mapping[str, str], home: Path) -> tuple[Path, ...]:
        # Some Flatpak versions disagree with XDG_DATA_HOME about where the
        # user installation lives, so the plain ~/.local/share is always
        # searched as well.
        configured = environ.get(LINUX_SHARE_ENV) or environ.get("XDG_DATA_HOME")
        primary = Path(configured) if configured else home / ".local" / "share"
        fallback = home / ".local" / "share"
        if primary == fallback:
            return (primary,)
        return (primary, fallback)


def _linux_config_home(environ: Mapping[str, str], home: Path) -> Path:
    configured = environ.get("XDG_CONFIG_HOME")
    if configured:
        return Path(configured)
    return home / ".config"


def select_platform(platform: str | None = None) -> PlatformPaths:
    """Return the :class:`PlatformPaths` variant for ``platform``."""

    value = platform or sys.platform
    if value.startswith("win"):
        return WindowsPaths()
    if value == "darwin":
        return MacOSPaths()
    if value.startswith("linux"):
        return LinuxPaths()
    return PlatformPaths()


def _home_from_user_database() -> Path:
    try:
        import pwd
    except ImportError:  # pragma: no cover - Windows has no pwd module
        return Path.home()
    try:
        return Path(pwd.getpwuid(os.geteuid()).pw_dir)
    except KeyError as exc:
        raise UnknownInstallerError(
            "HOME is not set and the current user has no passwd entry"
        ) from exc


@dataclass(frozen=True)
class Paths:
    """Directories resolved once at startup."""

    platform: PlatformPaths
    config_dir: Path
    home_dir: Path
    data_roots: tuple[Path, ...] = ()
    application_roots: tuple[Path, ...] = ()
    local_app_data: Path | None = None
    xdg_config_home: Path | None = None

    def resource_dir(self, install_path: Path) -> Path:
        """Return the directory holding the startup archive of ``install_path``."""

        return self.platform.resource_dir(install_path)

    def download_dir(self, branch: ModBranch) -> Path:
        return self.config_dir / branch.download_dir_name

    @property
    def legacy_download_dir(self) -> Path:
        return self.config_dir / LEGACY_DOWNLOAD_DIR

    @property
    def version_map_file(self) -> Path:
        return self.config_dir / VERSION_MAP_FILE

    @property
    def legacy_version_file(self) -> Path:
        return self.config_dir / LEGACY_VERSION_FILE

    @property
    def installer_config_file(self) -> Path:
        return self.config_dir / INSTALLER_CONFIG_FILE

    def saved_config_file(self, channel: Channel) -> Path:
        return self.config_dir / channel.config_file_name

    def bootstrap_metadata_file(self, install_path: Path) -> Path:
        return self.resource_dir(install_path) / APP_FOLDER / BOOTSTRAP_METADATA

    def relative_to_config(self, path: Path) -> Path:
        """Return ``path`` relative to the config directory, or absolute when outside it."""

        target = Path(path)
        try:
            return target.relative_to(self.config_dir)
        except ValueError:
            pass
        try:
            return target.resolve().relative_to(self.config_dir.resolve())
        except (OSError, ValueError):
            return target if target.is_absolute() else target.absolute()

    def resolve_config_relative(self, path: str | Path) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.config_dir / candidate

    def flatpak_home(self) -> Path:
        """Return the first data root holding a ``flatpak`` directory."""

        if not self.data_roots:
            return self.home_dir / ".local" / "share" / "flatpak"
        for root in self.data_roots:
            candidate = root / "flatpak"
            if candidate.exists():
                return candidate
        return self.data_roots[0] / "flatpak"

    def flatpak_override_file(self, sandbox_id: str) -> Path:
        return self.flatpak_home() / "overrides" / sandbox_id

    def config_grant_path(self) -> str:
        """Return the Flatpak filesystem grant naming the config directory."""

        if self.xdg_config_home is not None:
            try:
                relative = self.config_dir.relative_to(self.xdg_config_home)
            except ValueError:
                pass
            else:
                return f"xdg-config/{relative.as_posix()}"
        return str(self.config_dir)


def resolve_paths(
    environ: Mapping[str, str] | None = None,
    platform: PlatformPaths | str | None = None,
    *,
    create: bool = True,
) -> Paths:
    """Resolve every well-known directory for the current user.

    ``MOONLIGHT_DIR`` overrides the per-OS config directory.  The directory is
    created when ``create`` is true; a failure to create it raises an
    :class:`~services.installer.errors.InstallerError`.
    """

    env = dict(os.environ if environ is None else environ)
    variant = platform if isinstance(platform, PlatformPaths) else select_platform(platform)

    home = variant.home_dir(env)
    override = env.get(CONFIG_DIR_ENV)
    config_dir = Path(override).expanduser() if override else variant.default_config_dir(env, home)

    if create and not config_dir.exists():
        _LOGGER.debug("Creating config directory %s", config_dir)
        with translate_os_errors(variant.name):
            config_dir.mkdir(parents=True, exist_ok=True)

    paths = Paths(
        platform=variant,
        config_dir=config_dir,
        home_dir=home,
        data_roots=variant.data_roots(env, home),
        application_roots=variant.application_roots(home),
        local_app_data=variant.local_app_data(env, home),
        xdg_config_home=variant.xdg_config_home(env, home),
    )
    _LOGGER.debug("Resolved installer paths for %s: config=%s", variant.name, config_dir)
    return paths


__all__ = [
    "LinuxPaths",
    "MacOSPaths",
    "Paths",
    "PlatformPaths",
    "WindowsPaths",
    "resolve_paths",
    "select_platform",
]
