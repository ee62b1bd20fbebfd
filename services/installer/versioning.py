"""Helpers for deciding whether a newer moonlight build is available."""

from __future__ import annotations

from packaging.version import InvalidVersion, Version

from services.installer.constants import LEGACY_STABLE_TAG_PREFIX


__all__ = ["compare_versions", "is_update_available", "parse_release_version"]


def parse_release_version(raw: str) -> Version | None:
    """Return ``raw`` as a PEP 440 version, ignoring a leading ``v`` tag prefix."""

    text = raw.strip()
    if text.startswith(LEGACY_STABLE_TAG_PREFIX):
        text = text[len(LEGACY_STABLE_TAG_PREFIX):]
    try:
        return Version(text)
    except InvalidVersion:
        return None


def compare_versions(current_version: str, candidate: str) -> int | None:
    """Compare ``candidate`` against ``current_version``.

    Returns ``1`` when ``candidate`` is newer, ``-1`` when it is older, ``0``
    when equivalent and ``None`` when either side is not a release version
    (nightly builds are identified by commit hashes).
    """

    if candidate == current_version:
        return 0
    current = parse_release_version(current_version)
    latest = parse_release_version(candidate)
    if current is None or latest is None:
        return None
    if latest == current:
        return 0
    return 1 if latest > current else -1


def is_update_available(downloaded: str | None, latest: str | None) -> bool:
    if not latest:
        return False
    if downloaded is None:
        return True
    comparison = compare_versions(downloaded, latest)
    if comparison is None:
        return downloaded != latest
    return comparison > 0
