"""Data models used by the installer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from services.installer.constants import INJECTOR_BASE_TAG, PATCHED_ASAR


class ModBranch(str, Enum):
    """Release tracks of the moonlight package."""

    STABLE = "Stable"
    NIGHTLY = "Nightly"

    @property
    def description(self) -> str:
        if self is ModBranch.STABLE:
            return "Periodic updates and fixes when they're ready. Suggested for most users."
        return "In-progress development snapshots while it's being worked on. May contain issues."

    @property
    def download_dir_name(self) -> str:
        return self.value.lower()

    @classmethod
    def parse(cls, raw: object) -> "ModBranch":
        """Return the branch named by ``raw`` regardless of case."""

        if isinstance(raw, ModBranch):
            return raw
        if isinstance(raw, str):
            lowered = raw.strip().lower()
            for branch in cls:
                if branch.value.lower() == lowered:
                    return branch
        raise ValueError(f"Unknown moonlight branch: {raw!r}")

    def __str__(self) -> str:
        return self.value.lower()


@dataclass(frozen=True)
class _ChannelTraits:
    display_name: str
    process_name: str
    macos_bundle: str
    flatpak_id: str | None = None
    flatpak_leaf: str | None = None


class Channel(str, Enum):
    """Release tracks of the Discord client."""

    STABLE = "Stable"
    PTB = "PTB"
    CANARY = "Canary"
    DEVELOPMENT = "Development"

    @property
    def _traits(self) -> _ChannelTraits:
        return _CHANNEL_TRAITS[self]

    @property
    def display_name(self) -> str:
        return self._traits.display_name

    @property
    def process_name(self) -> str:
        """Executable/process name, also used as the Windows and Linux folder name."""

        return self._traits.process_name

    @property
    def data_dir_name(self) -> str:
        return self._traits.process_name

    @property
    def macos_bundle_name(self) -> str:
        return f"{self._traits.macos_bundle}.app"

    @property
    def flatpak_id(self) -> str | None:
        return self._traits.flatpak_id

    @property
    def flatpak_relative_path(self) -> Path | None:
        traits = self._traits
        if traits.flatpak_id is None or traits.flatpak_leaf is None:
            return None
        return Path("flatpak", "app", traits.flatpak_id, "current", "active", "files", traits.flatpak_leaf)

    @property
    def config_file_name(self) -> str:
        return f"{self.value.lower()}.json"

    @property
    def preferred_branch(self) -> ModBranch:
        if self is Channel.STABLE:
            return ModBranch.STABLE
        return ModBranch.NIGHTLY

    @classmethod
    def from_executable_name(cls, name: str) -> "Channel":
        if "PTB" in name:
            return cls.PTB
        if "Canary" in name:
            return cls.CANARY
        if "Development" in name:
            return cls.DEVELOPMENT
        return cls.STABLE


_CHANNEL_TRAITS: dict[Channel, _ChannelTraits] = {
    Channel.STABLE: _ChannelTraits(
        display_name="Discord",
        process_name="Discord",
        macos_bundle="Discord",
        flatpak_id="com.discordapp.Discord",
        flatpak_leaf="discord",
    ),
    Channel.PTB: _ChannelTraits(
        display_name="Discord PTB",
        process_name="DiscordPTB",
        macos_bundle="Discord PTB",
    ),
    Channel.CANARY: _ChannelTraits(
        display_name="Discord Canary",
        process_name="DiscordCanary",
        macos_bundle="Discord Canary",
        flatpak_id="com.discordapp.DiscordCanary",
        flatpak_leaf="discord-canary",
    ),
    Channel.DEVELOPMENT: _ChannelTraits(
        display_name="Discord Development",
        process_name="DiscordDevelopment",
        macos_bundle="Discord Development",
    ),
}


@dataclass(frozen=True)
class BootstrapMetadata:
    """Sidecar written into a patched install describing how it was patched."""

    injector_path: str
    branch: ModBranch
    injector_base: str | None = INJECTOR_BASE_TAG
    renamed_archive: str = PATCHED_ASAR

    def to_json(self) -> dict[str, Any]:
        injector: dict[str, Any] = {"pathStr": self.injector_path}
        if self.injector_base is not None:
            injector["relativeTo"] = self.injector_base
        return {
            "moonlightInjector": injector,
            "patchedAsar": self.renamed_archive,
            "branch": self.branch.value,
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "BootstrapMetadata":
        """Build metadata from the decoded JSON document.

        Raises ``ValueError`` when a required field is missing or malformed.
        """

        injector = data.get("moonlightInjector")
        if not isinstance(injector, Mapping):
            raise ValueError("moonlightInjector must be an object")
        path_str = injector.get("pathStr")
        if not isinstance(path_str, str) or not path_str:
            raise ValueError("moonlightInjector.pathStr must be a non-empty string")
        base = injector.get("relativeTo")
        if base is not None and not isinstance(base, str):
            raise ValueError("moonlightInjector.relativeTo must be a string")
        renamed = data.get("patchedAsar")
        if not isinstance(renamed, str) or not renamed:
            raise ValueError("patchedAsar must be a non-empty string")
        return cls(
            injector_path=path_str,
            branch=ModBranch.parse(data.get("branch")),
            injector_base=base,
            renamed_archive=renamed,
        )


@dataclass(frozen=True)
class DetectedInstall:
    """A Discord installation found on disk."""

    channel: Channel
    path: Path
    sandbox_id: str | None = None
    bootstrap: BootstrapMetadata | None = None


@dataclass(frozen=True)
class InstallInfo:
    """A detected install combined with its on-disk patch state."""

    install: DetectedInstall
    is_patched: bool
    has_saved_config: bool


@dataclass(frozen=True)
class VersionRecord:
    """Last downloaded version of a branch and where it was extracted."""

    branch: ModBranch
    version: str
    path: Path


VersionMap = dict[ModBranch, VersionRecord]


@dataclass(frozen=True)
class DownloadedPackage:
    """Result of downloading and extracting a branch."""

    branch: ModBranch
    version: str
    path: Path


__all__ = [
    "BootstrapMetadata",
    "Channel",
    "DetectedInstall",
    "DownloadedPackage",
    "InstallInfo",
    "ModBranch",
    "VersionMap",
    "VersionRecord",
]
