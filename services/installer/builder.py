"""Helpers for constructing the installer service and its command bus."""

from __future__ import annotations

import logging
from typing import Mapping

from services.installer.bus import CommandBus
from services.installer.paths import resolve_paths
from services.installer.service import InstallerService


_LOGGER = logging.getLogger(__name__)


def build_installer_service(
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> InstallerService:
    """Construct an :class:`InstallerService` for the current environment."""

    paths = resolve_paths(environ, platform)
    _LOGGER.debug(
        "Building installer service for %s with config dir %s",
        paths.platform.name,
        paths.config_dir,
    )
    return InstallerService(paths)


def start_command_bus(
    service: InstallerService | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> CommandBus:
    """Return a running :class:`CommandBus` backed by ``service``."""

    bus = CommandBus(service or build_installer_service(environ, platform))
    bus.start()
    return bus


__all__ = ["build_installer_service", "start_command_bus"]
