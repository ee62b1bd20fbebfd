"""Installer preferences persisted as JSON in the config directory."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from services.installer.models import DetectedInstall, ModBranch

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallerConfig:
    """Branch choices made by the user."""

    selected_branch: ModBranch = ModBranch.STABLE
    install_selected_branches: Mapping[str, ModBranch] = field(default_factory=dict)

    def branch_for(self, install: DetectedInstall) -> ModBranch:
        """Return the branch chosen for ``install``, else its channel's default."""

        chosen = self.install_selected_branches.get(_install_key(install.path))
        if chosen is not None:
            return chosen
        return install.channel.preferred_branch

    def with_install_branch(self, install: DetectedInstall, branch: ModBranch) -> "InstallerConfig":
        branches = dict(self.install_selected_branches)
        branches[_install_key(install.path)] = branch
        return replace(self, install_selected_branches=branches)

    def to_json(self) -> dict[str, Any]:
        return {
            "selected_branch": self.selected_branch.value,
            "install_selected_branches": {
                key: branch.value for key, branch in sorted(self.install_selected_branches.items())
            },
        }


def load_installer_config(path: str | Path) -> InstallerConfig:
    """Load preferences from ``path``; missing or invalid files yield defaults."""

    data = _load_json_from_path(Path(path).expanduser())
    selected = _coerce_branch(data.get("selected_branch"), default=ModBranch.STABLE)
    branches: dict[str, ModBranch] = {}
    section = data.get("install_selected_branches")
    if isinstance(section, Mapping):
        for key, value in section.items():
            branch = _coerce_branch(value, default=None)
            if isinstance(key, str) and branch is not None:
                branches[key] = branch
    return InstallerConfig(selected_branch=selected, install_selected_branches=branches)


def save_installer_config(config: InstallerConfig, path: str | Path) -> None:
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(config.to_json(), indent=2), encoding="utf-8")
    _LOGGER.debug("Saved installer config to %s", target)


def _install_key(path: Path) -> str:
    return str(Path(path))


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        _LOGGER.warning("Ignoring invalid installer config at %s", path)
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _coerce_branch(value: Any, *, default: ModBranch | None) -> ModBranch | None:
    if value is None:
        return default
    try:
        return ModBranch.parse(value)
    except ValueError:
        return default


__all__ = [
    "InstallerConfig",
    "load_installer_config",
    "save_installer_config",
]
