"""Archive handling helpers for downloaded moonlight packages."""

from __future__ import annotations

import logging
import shutil
import tarfile
import zlib
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from services.installer import constants
from services.installer.errors import UnknownInstallerError

_LOGGER = logging.getLogger(__name__)


def extract_tar_gz_stream(stream: BinaryIO, target_dir: Path) -> int:
    """Extract the gzip-compressed tar ``stream`` into ``target_dir``.

    The stream is consumed sequentially so the download never has to be
    buffered on disk.  Returns the number of regular files written.
    """

    root = target_dir.resolve()
    try:
        with tarfile.open(fileobj=stream, mode="r|gz") as archive:
            return _extract_members(archive, root)
    except (tarfile.TarError, EOFError, zlib.error) as exc:
        raise UnknownInstallerError(f"Failed to extract package archive: {exc}") from exc


def _extract_members(archive: tarfile.TarFile, root: Path) -> int:
    processed_entries = 0
    written_files = 0
    total_bytes = 0
    for member in archive:
        processed_entries += 1
        if processed_entries > constants.MAX_ARCHIVE_ENTRIES:
            _LOGGER.error(
                "Archive entry count %s exceeded limit %s",
                processed_entries,
                constants.MAX_ARCHIVE_ENTRIES,
            )
            raise UnknownInstallerError("Package archive contained too many entries")

        destination = _safe_destination(root, member.name)
        if destination is None:
            continue

        if member.isdir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        if not member.isfile():
            _LOGGER.debug("Skipping non-regular archive member %s", member.name)
            continue

        if member.size > constants.MAX_ARCHIVE_FILE_SIZE:
            _LOGGER.error(
                "Archive member %s exceeded file size limit (%s > %s)",
                member.name,
                member.size,
                constants.MAX_ARCHIVE_FILE_SIZE,
            )
            raise UnknownInstallerError("Package archive contained an oversized file")
        total_bytes += member.size
        if total_bytes > constants.MAX_ARCHIVE_TOTAL_BYTES:
            _LOGGER.error(
                "Archive expanded to %s bytes which exceeds limit %s",
                total_bytes,
                constants.MAX_ARCHIVE_TOTAL_BYTES,
            )
            raise UnknownInstallerError("Package archive expanded beyond safe limits")

        source = archive.extractfile(member)
        if source is None:
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        with source, destination.open("wb") as target:
            shutil.copyfileobj(source, target)
        written_files += 1

    _LOGGER.info(
        "Extracted %s entries (%s files) totalling %s bytes",
        processed_entries,
        written_files,
        total_bytes,
    )
    return written_files


def _safe_destination(root: Path, name: str) -> Path | None:
    relative = PurePosixPath(name)
    if relative.is_absolute() or name.startswith("/"):
        raise UnknownInstallerError("Package archive contained an absolute path entry")
    parts = [part for part in relative.parts if part not in ("", ".")]
    if not parts:
        return None
    destination = root.joinpath(*parts).resolve()
    try:
        destination.relative_to(root)
    except ValueError:
        raise UnknownInstallerError("Package archive contained an unsafe relative path")
    return destination


__all__ = ["extract_tar_gz_stream"]
