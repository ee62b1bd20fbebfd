"""Installer version helpers."""

from __future__ import annotations

import os
import subprocess
from functools import lru_cache
from importlib import resources

_FALLBACK_VERSION = "0.0.0-dev"
_VERSION_ENV = "MOONLIGHT_INSTALLER_VERSION"


def _version_from_env() -> str | None:
    env_version = os.environ.get(_VERSION_ENV)
    if not env_version:
        return None
    return _normalize(env_version) or None


def _read_version_file() -> str | None:
    try:
        text = resources.files(__package__).joinpath("VERSION").read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError):
        return None
    return _normalize(text) or None


def _version_from_git() -> str | None:
    try:
        output = subprocess.check_output(
            ["git", "describe", "--tags", "--always"],
            stderr=subprocess.DEVNULL,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return _normalize(output) or None


def _normalize(raw_version: str) -> str:
    return raw_version.strip().removeprefix("v")


@lru_cache(maxsize=1)
def get_app_version() -> str:
    """Return the installer version.

    Resolution order: ``MOONLIGHT_INSTALLER_VERSION``, the bundled ``VERSION``
    file, ``git describe`` in a source checkout, then a development fallback.
    """

    for resolver in (_version_from_env, _read_version_file, _version_from_git):
        version = resolver()
        if version:
            return version
    return _FALLBACK_VERSION


def user_agent() -> str:
    """Return the ``User-Agent`` sent with release requests."""

    return f"moonlight-installer/{get_app_version()}"


__all__ = ["get_app_version", "user_agent"]
