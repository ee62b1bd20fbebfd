"""Flatpak filesystem override management.

Flatpak keeps per-application permission overrides in INI files under
``<flatpak home>/overrides/<app id>``.  The ``[Context]`` section holds a
``filesystems`` key whose value is a semicolon separated list of grants such
as ``xdg-config/moonlight-mod;~/Music:ro;!/tmp;``.  Only that key is
interpreted here; every other section and key is written back untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

from services.installer.constants import FLATPAK_CONTEXT_SECTION, FLATPAK_FILESYSTEMS_KEY
from services.installer.errors import UnknownInstallerError, translate_os_errors
from services.installer.paths import Paths

_LOGGER = logging.getLogger(__name__)


class FilesystemPermission(str, Enum):
    READ_WRITE = "rw"
    READ_ONLY = "ro"
    CREATE = "create"
    REVOKED = "off"


_SUFFIXES = {
    "rw": FilesystemPermission.READ_WRITE,
    "ro": FilesystemPermission.READ_ONLY,
    "create": FilesystemPermission.CREATE,
}


class OverrideParseError(ValueError):
    """Raised when a filesystem grant carries an unknown permission tag."""


@dataclass(frozen=True)
class FilesystemGrant:
    path: str
    permission: FilesystemPermission = FilesystemPermission.READ_WRITE

    @classmethod
    def parse(cls, raw: str) -> "FilesystemGrant":
        if raw.startswith("!"):
            return cls(raw[1:], FilesystemPermission.REVOKED)
        path, separator, tag = raw.rpartition(":")
        if not separator:
            return cls(raw)
        permission = _SUFFIXES.get(tag)
        if permission is None:
            raise OverrideParseError(f"invalid permission: {tag!r}")
        return cls(path, permission)

    def __str__(self) -> str:
        if self.permission is FilesystemPermission.REVOKED:
            return f"!{self.path}"
        if self.permission is FilesystemPermission.READ_WRITE:
            return self.path
        return f"{self.path}:{self.permission.value}"


def parse_grant_list(value: str) -> list[FilesystemGrant]:
    text = value.strip()
    if text.endswith(";"):
        text = text[:-1]
    if not text:
        return []
    return [FilesystemGrant.parse(part) for part in text.split(";")]


def format_grant_list(grants: Iterable[FilesystemGrant]) -> str:
    return "".join(f"{grant};" for grant in grants)


def _section_name(line: str) -> str | None:
    stripped = line.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        return stripped[1:-1].strip()
    return None


def _key_of(line: str) -> str | None:
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    return stripped.split("=", 1)[0].strip()


class FlatpakOverrides:
    """An override document kept as the lines it was read from.

    Only the ``filesystems`` line of ``[Context]`` is ever replaced, so
    comments, ordering and unrelated keys are written back unchanged.
    """

    def __init__(self, text: str = "") -> None:
        self._lines = text.splitlines()

    def _context_bounds(self) -> tuple[int, int] | None:
        start: int | None = None
        for index, line in enumerate(self._lines):
            name = _section_name(line)
            if name is None:
                continue
            if start is not None:
                return start, index
            if name == FLATPAK_CONTEXT_SECTION:
                start = index
        if start is None:
            return None
        return start, len(self._lines)

    def _filesystems_line(self) -> int | None:
        bounds = self._context_bounds()
        if bounds is None:
            return None
        start, end = bounds
        for index in range(start + 1, end):
            if _key_of(self._lines[index]) == FLATPAK_FILESYSTEMS_KEY:
                return index
        return None

    @property
    def filesystems(self) -> list[FilesystemGrant]:
        index = self._filesystems_line()
        if index is None:
            return []
        return parse_grant_list(self._lines[index].split("=", 1)[1])

    @filesystems.setter
    def filesystems(self, grants: Iterable[FilesystemGrant]) -> None:
        line = f"{FLATPAK_FILESYSTEMS_KEY}={format_grant_list(grants)}"
        index = self._filesystems_line()
        if index is not None:
            self._lines[index] = line
            return

        bounds = self._context_bounds()
        if bounds is None:
            if self._lines and self._lines[-1].strip():
                self._lines.append("")
            self._lines.extend([f"[{FLATPAK_CONTEXT_SECTION}]", line])
            return

        # Keep the blank lines that separate [Context] from the next section.
        start, end = bounds
        insert_at = end
        while insert_at > start + 1 and not self._lines[insert_at - 1].strip():
            insert_at -= 1
        self._lines.insert(insert_at, line)

    def has_grant(self, path: str, permission: FilesystemPermission) -> bool:
        return any(
            grant.path == path and grant.permission is permission for grant in self.filesystems
        )

    def add_grant(self, grant: FilesystemGrant) -> None:
        self.filesystems = [*self.filesystems, grant]

    def dumps(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"


def read_overrides(path: Path) -> FlatpakOverrides | None:
    """Load the override file at ``path``; ``None`` when it does not exist."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    return FlatpakOverrides(text)


def ensure_override(sandbox_id: str, paths: Paths) -> bool:
    """Grant the sandbox read-write access to the config directory.

    Returns ``True`` when the override file was rewritten and ``False`` when a
    matching read-write grant already existed.
    """

    override_file = paths.flatpak_override_file(sandbox_id)
    grant = FilesystemGrant(paths.config_grant_path(), FilesystemPermission.READ_WRITE)

    with translate_os_errors(paths.platform.name):
        override_file.parent.mkdir(parents=True, exist_ok=True)
        overrides = read_overrides(override_file)
        try:
            if overrides is not None and overrides.has_grant(grant.path, grant.permission):
                _LOGGER.debug("Flatpak %s already grants %s", sandbox_id, grant)
                return False
            document = overrides or FlatpakOverrides()
            document.add_grant(grant)
        except OverrideParseError as exc:
            raise UnknownInstallerError(
                f"Unable to parse Flatpak overrides {override_file}: {exc}"
            ) from exc
        override_file.write_text(document.dumps(), encoding="utf-8")

    _LOGGER.info("Granted Flatpak %s access to %s", sandbox_id, grant.path)
    return True


__all__ = [
    "FilesystemGrant",
    "FilesystemPermission",
    "FlatpakOverrides",
    "OverrideParseError",
    "ensure_override",
    "format_grant_list",
    "parse_grant_list",
    "read_overrides",
]
