import json
from pathlib import Path

from app.config import InstallerConfig, load_installer_config, save_installer_config
from services.installer.models import Channel, DetectedInstall, ModBranch


def _install(path: str, channel: Channel = Channel.STABLE) -> DetectedInstall:
    return DetectedInstall(channel=channel, path=Path(path))


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    config = load_installer_config(tmp_path / "installer.json")

    assert config == InstallerConfig()
    assert config.selected_branch is ModBranch.STABLE


def test_invalid_json_yields_defaults(tmp_path: Path) -> None:
    target = tmp_path / "installer.json"
    target.write_text("{oops", encoding="utf-8")

    assert load_installer_config(target) == InstallerConfig()


def test_round_trip(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "installer.json"
    config = InstallerConfig(selected_branch=ModBranch.NIGHTLY).with_install_branch(
        _install("/opt/discord"), ModBranch.NIGHTLY
    )

    save_installer_config(config, target)

    assert json.loads(target.read_text(encoding="utf-8")) == {
        "selected_branch": "Nightly",
        "install_selected_branches": {str(Path("/opt/discord")): "Nightly"},
    }
    assert load_installer_config(target) == config


def test_unknown_branches_are_dropped(tmp_path: Path) -> None:
    target = tmp_path / "installer.json"
    target.write_text(
        json.dumps(
            {
                "selected_branch": "beta",
                "install_selected_branches": {"/a": "nightly", "/b": "canary", "/c": 3},
            }
        ),
        encoding="utf-8",
    )

    config = load_installer_config(target)

    assert config.selected_branch is ModBranch.STABLE
    assert dict(config.install_selected_branches) == {"/a": ModBranch.NIGHTLY}


def test_branch_for_prefers_recorded_choice() -> None:
    canary = _install("/opt/discord-canary", Channel.CANARY)
    stable = _install("/opt/discord")
    config = InstallerConfig().with_install_branch(canary, ModBranch.STABLE)

    assert config.branch_for(canary) is ModBranch.STABLE
    assert config.branch_for(stable) is ModBranch.STABLE
    assert InstallerConfig().branch_for(canary) is ModBranch.NIGHTLY
    assert InstallerConfig().branch_for(_install("/x", Channel.PTB)) is ModBranch.NIGHTLY
