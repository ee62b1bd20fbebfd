"""Switch a Discord install between its unpatched and patched states.

Patching renames ``app.asar`` aside and drops a tiny ``app`` folder next to it
whose ``package.json`` points Electron at the bundled ``injector.js``.  The
injector reads ``moonlight.json`` to find the moonlight package and the
renamed archive.

Both transitions are ordered lists of :class:`PatchStep`.  Each step knows how
to tell whether it already happened, so calling :meth:`PatchEngine.patch` again
after a failure part-way through resumes instead of tripping over the rename
that already succeeded.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Callable, Sequence

from services.installer.constants import (
    APP_FOLDER,
    BOOTSTRAP_METADATA,
    INJECTOR_BASE_TAG,
    INJECTOR_SCRIPT,
    ORIGINAL_ASAR,
    PACKAGE_DESCRIPTOR,
    PATCHED_ASAR,
)
from services.installer.errors import UnknownInstallerError, translate_os_errors
from services.installer.flatpak import ensure_override
from services.installer.models import BootstrapMetadata, DetectedInstall, ModBranch
from services.installer.paths import Paths

_LOGGER = logging.getLogger(__name__)

_PACKAGE_DESCRIPTOR = {"name": "discord", "main": f"./{INJECTOR_SCRIPT}", "private": True}

OverrideHook = Callable[[str, Paths], object]


@dataclass(frozen=True)
class PatchContext:
    install: DetectedInstall
    resources: Path
    renamed_archive: str
    package_dir: Path | None = None
    branch: ModBranch | None = None

    @property
    def archive(self) -> Path:
        return self.resources / ORIGINAL_ASAR

    @property
    def renamed(self) -> Path:
        return self.resources / self.renamed_archive

    @property
    def app_folder(self) -> Path:
        return self.resources / APP_FOLDER


@dataclass(frozen=True)
class PatchStep:
    name: str
    is_done: Callable[[PatchContext], bool]
    run: Callable[[PatchContext], None]


def load_injector_script() -> bytes:
    """Return the bundled bootstrap script placed into patched installs."""

    return resources.files(__package__).joinpath(INJECTOR_SCRIPT).read_bytes()


class PatchEngine:
    """Apply and revert the moonlight patch on detected installs."""

    def __init__(
        self,
        paths: Paths,
        *,
        override_hook: OverrideHook | None = None,
        injector_loader: Callable[[], bytes] = load_injector_script,
    ) -> None:
        self._paths = paths
        self._override_hook = override_hook or ensure_override
        self._injector_loader = injector_loader

    def patch(self, install: DetectedInstall, package_dir: Path, branch: ModBranch) -> None:
        context = PatchContext(
            install=install,
            resources=self._paths.resource_dir(install.path),
            renamed_archive=PATCHED_ASAR,
            package_dir=Path(package_dir),
            branch=branch,
        )
        _LOGGER.info("Patching %s install at %s with %s", install.channel.value, install.path, branch)
        self._run(self.patch_steps(context), context)
        _LOGGER.info("Patched install at %s", install.path)

    def unpatch(self, install: DetectedInstall) -> None:
        renamed = install.bootstrap.renamed_archive if install.bootstrap else PATCHED_ASAR
        context = PatchContext(
            install=install,
            resources=self._paths.resource_dir(install.path),
            renamed_archive=renamed,
        )
        _LOGGER.info("Unpatching %s install at %s", install.channel.value, install.path)
        self._run(self.unpatch_steps(context), context)
        _LOGGER.info("Unpatched install at %s", install.path)

    def patch_steps(self, context: PatchContext) -> list[PatchStep]:
        steps = [
            PatchStep("rename startup archive", _archive_renamed, _rename_archive),
            PatchStep("create app folder", _app_folder_exists, _create_app_folder),
            PatchStep(
                "write package descriptor",
                lambda ctx: _has_content(ctx.app_folder / PACKAGE_DESCRIPTOR, _descriptor_bytes()),
                lambda ctx: (ctx.app_folder / PACKAGE_DESCRIPTOR).write_bytes(_descriptor_bytes()),
            ),
            PatchStep(
                "install injector script",
                lambda ctx: _has_content(ctx.app_folder / INJECTOR_SCRIPT, self._injector_loader()),
                lambda ctx: (ctx.app_folder / INJECTOR_SCRIPT).write_bytes(self._injector_loader()),
            ),
            PatchStep(
                "write bootstrap metadata",
                lambda ctx: _has_content(ctx.app_folder / BOOTSTRAP_METADATA, self._metadata_bytes(ctx)),
                lambda ctx: (ctx.app_folder / BOOTSTRAP_METADATA).write_bytes(self._metadata_bytes(ctx)),
            ),
        ]
        if context.install.sandbox_id is not None:
            steps.append(
                PatchStep(
                    "grant sandbox access",
                    lambda ctx: False,
                    lambda ctx: self._override_hook(ctx.install.sandbox_id or "", self._paths),
                )
            )
        return steps

    def unpatch_steps(self, context: PatchContext) -> list[PatchStep]:
        return [
            PatchStep("remove app folder", lambda ctx: not ctx.app_folder.exists(), _remove_app_folder),
            PatchStep("restore startup archive", _archive_restored, _restore_archive),
        ]

    def build_metadata(self, context: PatchContext) -> BootstrapMetadata:
        if context.package_dir is None or context.branch is None:
            raise UnknownInstallerError("Bootstrap metadata requires a package directory and branch")
        injector = self._paths.relative_to_config(context.package_dir / INJECTOR_SCRIPT)
        if injector.is_absolute():
            return BootstrapMetadata(
                injector_path=str(injector),
                branch=context.branch,
                injector_base=None,
                renamed_archive=context.renamed_archive,
            )
        return BootstrapMetadata(
            injector_path=injector.as_posix(),
            branch=context.branch,
            injector_base=INJECTOR_BASE_TAG,
            renamed_archive=context.renamed_archive,
        )

    def _metadata_bytes(self, context: PatchContext) -> bytes:
        return _json_bytes(self.build_metadata(context).to_json())

    def _run(self, steps: Sequence[PatchStep], context: PatchContext) -> None:
        with translate_os_errors(self._paths.platform.name):
            for step in steps:
                if step.is_done(context):
                    _LOGGER.debug("Skipping completed step: %s", step.name)
                    continue
                _LOGGER.debug("Running step: %s", step.name)
                step.run(context)


def _json_bytes(payload: object) -> bytes:
    return json.dumps(payload, indent=2).encode("utf-8")


def _descriptor_bytes() -> bytes:
    return _json_bytes(_PACKAGE_DESCRIPTOR)


def _has_content(path: Path, expected: bytes) -> bool:
    try:
        return path.read_bytes() == expected
    except FileNotFoundError:
        return False


def _archive_renamed(context: PatchContext) -> bool:
    return not context.archive.exists() and context.renamed.exists()


def _rename_archive(context: PatchContext) -> None:
    if not context.archive.exists():
        raise UnknownInstallerError(f"No {ORIGINAL_ASAR} found in {context.resources}")
    if context.renamed.exists():
        raise UnknownInstallerError(
            f"Both {ORIGINAL_ASAR} and {context.renamed_archive} exist in {context.resources}"
        )
    context.archive.rename(context.renamed)


def _app_folder_exists(context: PatchContext) -> bool:
    return context.app_folder.is_dir()


def _create_app_folder(context: PatchContext) -> None:
    context.app_folder.mkdir()


def _remove_app_folder(context: PatchContext) -> None:
    if context.app_folder.is_dir():
        shutil.rmtree(context.app_folder)
    else:
        context.app_folder.unlink()


def _archive_restored(context: PatchContext) -> bool:
    return context.archive.exists() and not context.renamed.exists()


def _restore_archive(context: PatchContext) -> None:
    if not context.renamed.exists():
        raise UnknownInstallerError(f"No {context.renamed_archive} found in {context.resources}")
    if context.archive.exists():
        raise UnknownInstallerError(
            f"Both {ORIGINAL_ASAR} and {context.renamed_archive} exist in {context.resources}"
        )
    context.renamed.rename(context.archive)


__all__ = ["PatchContext", "PatchEngine", "PatchStep", "load_injector_script"]
