"""Resolve and download moonlight releases."""

from __future__ import annotations

import http.client
import json
import logging
import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Iterator
from urllib.error import URLError
from urllib.request import Request, urlopen

from app.version import user_agent
from services.installer.archive import extract_tar_gz_stream
from services.installer.constants import (
    API_URL,
    ARTIFACT_NAME,
    NIGHTLY_DIST_URL,
    NIGHTLY_REF_URL,
    REQUEST_TIMEOUT,
)
from services.installer.errors import NetworkError, UnknownInstallerError, translate_os_errors
from services.installer.models import DownloadedPackage, ModBranch
from services.installer.paths import Paths

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleaseAsset:
    name: str
    download_url: str


@dataclass(frozen=True)
class GitHubRelease:
    name: str
    assets: tuple[ReleaseAsset, ...] = ()

    def find_asset(self, name: str) -> ReleaseAsset | None:
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None

    @classmethod
    def from_json(cls, data: Any) -> "GitHubRelease":
        if not isinstance(data, dict):
            raise NetworkError("GitHub release response was not a JSON object")
        name = data.get("name") or data.get("tag_name")
        if not isinstance(name, str) or not name.strip():
            raise NetworkError("GitHub release response is missing a release name")
        assets: list[ReleaseAsset] = []
        for entry in data.get("assets") or []:
            if not isinstance(entry, dict):
                continue
            asset_name = entry.get("name")
            url = entry.get("browser_download_url")
            if isinstance(asset_name, str) and isinstance(url, str) and url:
                assets.append(ReleaseAsset(asset_name, url))
        return cls(name=name.strip(), assets=tuple(assets))


class _ResponseReader:
    """Read-only view of a response that reports transport failures as network errors.

    Extraction writes to disk while it reads, so errors raised by the response
    stream have to be told apart from local filesystem errors.
    """

    def __init__(self, response: BinaryIO, url: str) -> None:
        self._response = response
        self._url = url

    def read(self, size: int = -1) -> bytes:
        try:
            return self._response.read(size)
        except (OSError, http.client.HTTPException) as exc:
            raise NetworkError(f"{self._url}: {exc}") from exc


class ReleaseFetcher:
    """Query release endpoints and extract packages into the config directory."""

    def __init__(
        self,
        paths: Paths,
        *,
        api_url: str = API_URL,
        nightly_ref_url: str = NIGHTLY_REF_URL,
        nightly_dist_url: str = NIGHTLY_DIST_URL,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._paths = paths
        self._api_url = api_url
        self._nightly_ref_url = nightly_ref_url
        self._nightly_dist_url = nightly_dist_url
        self._timeout = timeout

    def get_latest_version(self, branch: ModBranch) -> str:
        if branch is ModBranch.STABLE:
            return self.fetch_stable_release().name
        return self.fetch_nightly_version()

    def fetch_stable_release(self) -> GitHubRelease:
        with self._open(self._api_url) as response:
            try:
                payload = json.load(response)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise NetworkError(f"Invalid JSON from {self._api_url}: {exc}") from exc
        release = GitHubRelease.from_json(payload)
        _LOGGER.debug("Latest stable release is %s", release.name)
        return release

    def fetch_nightly_version(self) -> str:
        with self._open(self._nightly_ref_url) as response:
            text = response.read().decode("utf-8", errors="replace")
        lines = text.splitlines()
        version = lines[0] if lines else ""
        _LOGGER.debug("Latest nightly ref is %s", version)
        return version

    def download_package(self, branch: ModBranch) -> DownloadedPackage:
        """Download ``branch`` into a fresh directory and return what was extracted."""

        target = self._paths.download_dir(branch)
        with translate_os_errors(self._paths.platform.name):
            if target.exists():
                _LOGGER.debug("Clearing previous download at %s", target)
                shutil.rmtree(target)
            target.mkdir(parents=True)

        if branch is ModBranch.STABLE:
            release = self.fetch_stable_release()
            asset = release.find_asset(ARTIFACT_NAME)
            if asset is None:
                raise UnknownInstallerError(
                    f"Release {release.name} does not provide {ARTIFACT_NAME}"
                )
            version, url = release.name, asset.download_url
        else:
            version, url = self.fetch_nightly_version(), self._nightly_dist_url

        _LOGGER.info("Downloading moonlight %s %s from %s", branch, version, url)
        with self._open(url) as response:
            self._extract(response, target)
        _LOGGER.info("Extracted moonlight %s %s to %s", branch, version, target)
        return DownloadedPackage(branch=branch, version=version, path=target)

    def _extract(self, response: _ResponseReader, target: Path) -> None:
        with translate_os_errors(self._paths.platform.name):
            extract_tar_gz_stream(response, target)  # type: ignore[arg-type]

    @contextmanager
    def _open(self, url: str) -> Iterator[_ResponseReader]:
        request = Request(url, headers={"User-Agent": user_agent()})
        try:
            response = urlopen(request, timeout=self._timeout)  # nosec - HTTPS endpoints
        except (URLError, OSError, http.client.HTTPException) as exc:
            raise NetworkError(f"{url}: {exc}") from exc
        with response:
            yield _ResponseReader(response, url)


__all__ = ["GitHubRelease", "ReleaseAsset", "ReleaseFetcher"]
