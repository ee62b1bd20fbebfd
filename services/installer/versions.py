"""Persist which moonlight version each branch has downloaded."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from services.installer.constants import LEGACY_DOWNLOAD_DIR, LEGACY_STABLE_TAG_PREFIX
from services.installer.errors import translate_os_errors
from services.installer.models import ModBranch, VersionMap, VersionRecord
from services.installer.paths import Paths

_LOGGER = logging.getLogger(__name__)


class VersionStore:
    """Read and update ``installed-versions.json`` in the config directory.

    Older installers only ever downloaded one branch and wrote the bare version
    string to ``.moonlight-installed-version``.  The first access converts that
    file into the per-branch map and deletes it.
    """

    def __init__(self, paths: Paths) -> None:
        self._paths = paths
        self._legacy_checked = False

    def get_downloaded_versions(self) -> VersionMap:
        """Return the recorded downloads whose extraction folder still exists."""

        with translate_os_errors(self._paths.platform.name):
            self._migrate_legacy()
            document = self._read_document()

        versions: VersionMap = {}
        for branch in ModBranch:
            record = self._parse_entry(branch, document.get(branch.value))
            if record is None:
                continue
            if not record.path.exists():
                _LOGGER.debug(
                    "Dropping %s download record; %s no longer exists", branch, record.path
                )
                continue
            versions[branch] = record
        return versions

    def set_downloaded_version(self, branch: ModBranch, version: str, path: Path) -> None:
        with translate_os_errors(self._paths.platform.name):
            self._migrate_legacy()
            document = self._read_document()
            document[branch.value] = {"version": version, "path": self._stored_path(path)}
            self._write_document(document)
        _LOGGER.info("Recorded %s version %s at %s", branch, version, path)

    def _stored_path(self, path: Path) -> str:
        relative = self._paths.relative_to_config(path)
        if relative.is_absolute():
            return str(relative)
        return relative.as_posix()

    def _parse_entry(self, branch: ModBranch, entry: Any) -> VersionRecord | None:
        if not isinstance(entry, dict):
            return None
        version = entry.get("version")
        stored_path = entry.get("path")
        if not isinstance(version, str) or not isinstance(stored_path, str) or not stored_path:
            _LOGGER.debug("Ignoring malformed %s download record: %r", branch, entry)
            return None
        return VersionRecord(
            branch=branch,
            version=version,
            path=self._paths.resolve_config_relative(stored_path),
        )

    def _migrate_legacy(self) -> None:
        if self._legacy_checked:
            return
        legacy_file = self._paths.legacy_version_file
        try:
            legacy_version = legacy_file.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            self._legacy_checked = True
            return

        document = self._read_document()
        if legacy_version and self._paths.legacy_download_dir.exists():
            branch = (
                ModBranch.STABLE
                if legacy_version.startswith(LEGACY_STABLE_TAG_PREFIX)
                else ModBranch.NIGHTLY
            )
            document.setdefault(
                branch.value, {"version": legacy_version, "path": LEGACY_DOWNLOAD_DIR}
            )
            _LOGGER.info("Migrating legacy %s download %s", branch, legacy_version)
        else:
            _LOGGER.info("Legacy version file has no usable download; migrating to an empty map")

        self._write_document(document)
        legacy_file.unlink()
        self._legacy_checked = True

    def _read_document(self) -> dict[str, Any]:
        path = self._paths.version_map_file
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            _LOGGER.warning("Ignoring unreadable version map %s", path)
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    def _write_document(self, document: dict[str, Any]) -> None:
        path = self._paths.version_map_file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")


__all__ = ["VersionStore"]
