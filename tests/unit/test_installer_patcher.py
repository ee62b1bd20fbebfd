from __future__ import annotations

import errno
import json
from pathlib import Path

import pytest

from services.installer.detection import InstallDetector
from services.installer.errors import UnknownInstallerError
from services.installer.models import BootstrapMetadata, Channel, DetectedInstall, ModBranch
from services.installer.patcher import PatchEngine, load_injector_script
from tests.unit.installer_test_utils import linux_paths, make_unpatched_install


class RecordingOverrideHook:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def __call__(self, sandbox_id: str, paths) -> bool:  # type: ignore[no-untyped-def]
        self.calls.append(sandbox_id)
        return True


@pytest.fixture
def paths(tmp_path: Path):
    return linux_paths(tmp_path)


@pytest.fixture
def install(paths, tmp_path: Path) -> DetectedInstall:
    return make_unpatched_install(paths, tmp_path / "Discord")


def _read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_patch_then_unpatch_restores_original_tree(paths, install: DetectedInstall) -> None:
    hook = RecordingOverrideHook()
    engine = PatchEngine(paths, override_hook=hook)
    resources = paths.resource_dir(install.path)

    engine.patch(install, paths.download_dir(ModBranch.STABLE), ModBranch.STABLE)

    assert not (resources / "app.asar").exists()
    assert (resources / "_app.asar").read_bytes() == b"original-asar"
    assert _read_json(resources / "app" / "package.json") == {
        "name": "discord",
        "main": "./injector.js",
        "private": True,
    }
    assert (resources / "app" / "injector.js").read_bytes() == load_injector_script()
    assert _read_json(resources / "app" / "moonlight.json") == {
        "moonlightInjector": {"relativeTo": "MOONLIGHT", "pathStr": "stable/injector.js"},
        "patchedAsar": "_app.asar",
        "branch": "Stable",
    }
    assert InstallDetector(paths).is_patched(install) is True
    assert hook.calls == []

    engine.unpatch(install)

    assert sorted(entry.name for entry in resources.iterdir()) == ["app.asar"]
    assert (resources / "app.asar").read_bytes() == b"original-asar"
    assert InstallDetector(paths).is_patched(install) is False


def test_patch_is_idempotent(paths, install: DetectedInstall) -> None:
    engine = PatchEngine(paths, override_hook=RecordingOverrideHook())
    package_dir = paths.download_dir(ModBranch.NIGHTLY)

    engine.patch(install, package_dir, ModBranch.NIGHTLY)
    engine.patch(install, package_dir, ModBranch.NIGHTLY)

    metadata = _read_json(paths.resource_dir(install.path) / "app" / "moonlight.json")
    assert metadata["branch"] == "Nightly"
    assert metadata["moonlightInjector"]["pathStr"] == "nightly/injector.js"


def test_patch_resumes_after_partial_failure(paths, install: DetectedInstall) -> None:
    def failing_loader() -> bytes:
        raise OSError(errno.EIO, "disk went away")

    broken = PatchEngine(paths, override_hook=RecordingOverrideHook(), injector_loader=failing_loader)
    with pytest.raises(UnknownInstallerError):
        broken.patch(install, paths.download_dir(ModBranch.STABLE), ModBranch.STABLE)

    resources = paths.resource_dir(install.path)
    assert (resources / "_app.asar").exists()
    assert (resources / "app" / "package.json").exists()
    assert not (resources / "app" / "injector.js").exists()

    PatchEngine(paths, override_hook=RecordingOverrideHook()).patch(
        install, paths.download_dir(ModBranch.STABLE), ModBranch.STABLE
    )

    assert (resources / "app" / "injector.js").read_bytes() == load_injector_script()
    assert InstallDetector(paths).is_patched(install) is True


def test_repatching_switches_branch(paths, install: DetectedInstall) -> None:
    engine = PatchEngine(paths, override_hook=RecordingOverrideHook())
    engine.patch(install, paths.download_dir(ModBranch.STABLE), ModBranch.STABLE)

    engine.patch(install, paths.download_dir(ModBranch.NIGHTLY), ModBranch.NIGHTLY)

    metadata = _read_json(paths.resource_dir(install.path) / "app" / "moonlight.json")
    assert metadata["branch"] == "Nightly"


def test_custom_package_outside_config_uses_absolute_path(
    paths, install: DetectedInstall, tmp_path: Path
) -> None:
    custom = tmp_path / "my-moonlight" / "dist"
    engine = PatchEngine(paths, override_hook=RecordingOverrideHook())

    engine.patch(install, custom, ModBranch.NIGHTLY)

    metadata = _read_json(paths.resource_dir(install.path) / "app" / "moonlight.json")
    assert metadata["moonlightInjector"] == {"pathStr": str(custom / "injector.js")}


def test_patch_without_archive_fails(paths, tmp_path: Path) -> None:
    (tmp_path / "Empty" / "resources").mkdir(parents=True)
    install = DetectedInstall(channel=Channel.STABLE, path=tmp_path / "Empty")

    with pytest.raises(UnknownInstallerError):
        PatchEngine(paths).patch(install, paths.download_dir(ModBranch.STABLE), ModBranch.STABLE)


def test_patch_refuses_to_overwrite_renamed_archive(paths, install: DetectedInstall) -> None:
    resources = paths.resource_dir(install.path)
    (resources / "_app.asar").write_bytes(b"stale")

    with pytest.raises(UnknownInstallerError):
        PatchEngine(paths).patch(install, paths.download_dir(ModBranch.STABLE), ModBranch.STABLE)

    assert (resources / "_app.asar").read_bytes() == b"stale"
    assert (resources / "app.asar").read_bytes() == b"original-asar"


def test_sandboxed_install_requests_override(paths, tmp_path: Path) -> None:
    install = make_unpatched_install(
        paths, tmp_path / "flatpak" / "discord", sandbox_id="com.discordapp.Discord"
    )
    hook = RecordingOverrideHook()

    PatchEngine(paths, override_hook=hook).patch(
        install, paths.download_dir(ModBranch.STABLE), ModBranch.STABLE
    )

    assert hook.calls == ["com.discordapp.Discord"]


def test_unpatch_uses_recorded_archive_name(paths, tmp_path: Path) -> None:
    install_path = tmp_path / "Discord"
    resources = paths.resource_dir(install_path)
    (resources / "app").mkdir(parents=True)
    (resources / "_renamed.asar").write_bytes(b"original-asar")
    install = DetectedInstall(
        channel=Channel.STABLE,
        path=install_path,
        bootstrap=BootstrapMetadata(
            injector_path="stable/injector.js",
            branch=ModBranch.STABLE,
            renamed_archive="_renamed.asar",
        ),
    )

    PatchEngine(paths).unpatch(install)

    assert sorted(entry.name for entry in resources.iterdir()) == ["app.asar"]


def test_unpatch_of_clean_install_is_a_no_op(paths, install: DetectedInstall) -> None:
    PatchEngine(paths).unpatch(install)

    assert (paths.resource_dir(install.path) / "app.asar").read_bytes() == b"original-asar"


def test_unpatch_without_any_archive_fails(paths, install: DetectedInstall) -> None:
    resources = paths.resource_dir(install.path)
    (resources / "app.asar").unlink()
    (resources / "app").mkdir()

    with pytest.raises(UnknownInstallerError):
        PatchEngine(paths).unpatch(install)

    assert not (resources / "app").exists()
