"""Helpers the installer offers around patching: stopping Discord and resetting config."""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Sequence

from services.installer.errors import translate_os_errors
from services.installer.models import Channel
from services.installer.paths import Paths

_LOGGER = logging.getLogger(__name__)

Runner = Callable[..., object]


def kill_command(channel: Channel, platform: str) -> Sequence[str] | None:
    if platform == "windows":
        return ("taskkill", "/F", "/IM", f"{channel.process_name}.exe")
    if platform in {"macos", "linux"}:
        return ("killall", channel.process_name)
    return None


def kill_client(channel: Channel, paths: Paths, *, runner: Runner = subprocess.run) -> bool:
    """Force-quit every running process of ``channel``.

    Returns ``False`` when no kill command exists for the platform or it could
    not be launched; a missing process is not an error.
    """

    command = kill_command(channel, paths.platform.name)
    if command is None:
        _LOGGER.warning("Cannot stop %s on platform %s", channel.display_name, paths.platform.name)
        return False
    _LOGGER.info("Stopping %s", channel.display_name)
    try:
        runner(list(command), stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
    except OSError as exc:
        _LOGGER.warning("Failed to run %s: %s", command[0], exc)
        return False
    return True


def reset_config(
    channel: Channel, paths: Paths, *, clock: Callable[[], float] = time.time
) -> Path | None:
    """Move the channel's moonlight config aside; returns the backup path."""

    config = paths.saved_config_file(channel)
    if not config.exists():
        _LOGGER.debug("No saved config for %s at %s", channel.value, config)
        return None
    backup = config.with_name(f"{config.stem}-backup-{int(clock())}.json")
    with translate_os_errors(paths.platform.name):
        config.rename(backup)
    _LOGGER.info("Backed up %s config to %s", channel.value, backup)
    return backup


__all__ = ["kill_client", "kill_command", "reset_config"]
