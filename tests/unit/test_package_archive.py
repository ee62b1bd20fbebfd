from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from services.installer.archive import extract_tar_gz_stream
from services.installer.errors import UnknownInstallerError
from tests.unit.installer_test_utils import build_package_tarball


def _tarball(members: list[tuple[tarfile.TarInfo, bytes | None]]) -> io.BytesIO:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for info, data in members:
            if data is None:
                archive.addfile(info)
            else:
                info.size = len(data)
                archive.addfile(info, io.BytesIO(data))
    buffer.seek(0)
    return buffer


def _file(name: str) -> tarfile.TarInfo:
    return tarfile.TarInfo(name)


def _dir(name: str) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    return info


def test_extracts_regular_files_and_directories(tmp_path: Path) -> None:
    stream = _tarball(
        [
            (_dir("./"), None),
            (_dir("./core"), None),
            (_file("./core/index.js"), b"core"),
            (_file("./injector.js"), b"inject"),
        ]
    )

    written = extract_tar_gz_stream(stream, tmp_path)

    assert written == 2
    assert (tmp_path / "core" / "index.js").read_bytes() == b"core"
    assert (tmp_path / "injector.js").read_bytes() == b"inject"


def test_streamed_download_is_consumed_sequentially(tmp_path: Path) -> None:
    class ForwardOnly(io.RawIOBase):
        def __init__(self, payload: bytes) -> None:
            self._inner = io.BytesIO(payload)

        def readable(self) -> bool:
            return True

        def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
            data = self._inner.read(len(buffer))
            buffer[: len(data)] = data
            return len(data)

    written = extract_tar_gz_stream(ForwardOnly(build_package_tarball()), tmp_path)  # type: ignore[arg-type]

    assert written == 2


def test_symlinks_are_skipped(tmp_path: Path) -> None:
    link = tarfile.TarInfo("evil-link")
    link.type = tarfile.SYMTYPE
    link.linkname = "/etc/passwd"
    stream = _tarball([(link, None), (_file("injector.js"), b"ok")])

    assert extract_tar_gz_stream(stream, tmp_path) == 1
    assert not (tmp_path / "evil-link").exists()


@pytest.mark.parametrize("name", ["../escape.js", "core/../../escape.js", "/etc/escape.js"])
def test_rejects_entries_outside_target(tmp_path: Path, name: str) -> None:
    target = tmp_path / "target"
    target.mkdir()

    with pytest.raises(UnknownInstallerError):
        extract_tar_gz_stream(_tarball([(_file(name), b"bad")]), target)

    assert not (tmp_path / "escape.js").exists()


def test_entry_limit(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("services.installer.constants.MAX_ARCHIVE_ENTRIES", 1)

    with pytest.raises(UnknownInstallerError):
        extract_tar_gz_stream(_tarball([(_file("a"), b"1"), (_file("b"), b"2")]), tmp_path)


def test_file_size_limit(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("services.installer.constants.MAX_ARCHIVE_FILE_SIZE", 3)

    with pytest.raises(UnknownInstallerError):
        extract_tar_gz_stream(_tarball([(_file("big"), b"12345")]), tmp_path)


def test_total_size_limit(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("services.installer.constants.MAX_ARCHIVE_TOTAL_BYTES", 6)

    with pytest.raises(UnknownInstallerError):
        extract_tar_gz_stream(_tarball([(_file("a"), b"1234"), (_file("b"), b"5678")]), tmp_path)


def test_non_gzip_stream_is_reported(tmp_path: Path) -> None:
    with pytest.raises(UnknownInstallerError):
        extract_tar_gz_stream(io.BytesIO(b"<html>not found</html>"), tmp_path)
