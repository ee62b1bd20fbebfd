"""Yet another Discord mod installer, from the terminal."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from app.config import load_installer_config, save_installer_config
from app.version import get_app_version
from services.installer.builder import build_installer_service
from services.installer.bus import (
    Command,
    CommandBus,
    GetDownloadedVersions,
    GetInstalls,
    GetLatestVersion,
    PatchInstall,
    UnpatchInstall,
    UpdatePackage,
)
from services.installer.errors import InstallerError
from services.installer.models import ModBranch
from services.installer.service import InstallerService
from services.installer.versioning import is_update_available
from shared.logging_config import LogVerbosity, ensure_app_logging, set_file_log_verbosity
from shared.result import Result

_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_INSTALL = 1
EXIT_FAILED = 2


def _branch(raw: str) -> ModBranch:
    try:
        return ModBranch.parse(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="moonlight-cli", description=__doc__)
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_app_version()}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Record debug output in the log file.",
    )
    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    install = commands.add_parser("install", help="Install or update moonlight")
    install.add_argument(
        "branch",
        nargs="?",
        type=_branch,
        default=ModBranch.STABLE,
        help="Branch to download (stable or nightly).",
    )

    patch = commands.add_parser("patch", help="Patch a Discord install")
    patch.add_argument("exe", type=Path, help="Path to the Discord executable.")
    patch.add_argument(
        "-b",
        "--branch",
        type=_branch,
        default=None,
        help="Branch to load; defaults to the saved choice for the install.",
    )
    patch.add_argument(
        "-m",
        "--moonlight",
        type=Path,
        default=None,
        help="Path to a custom moonlight build.",
    )

    unpatch = commands.add_parser("unpatch", help="Unpatch a Discord install")
    unpatch.add_argument("exe", type=Path, help="Path to the Discord executable.")

    commands.add_parser("list", help="List detected installs and downloaded versions")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _request(bus: CommandBus, command: Command) -> Result:
    bus.submit(command)
    response = bus.wait()
    if response is None or response.command is not command:
        raise RuntimeError(f"No response to {command!r}")
    return response.result


def _install(bus: CommandBus, args: argparse.Namespace) -> int:
    _LOGGER.info("Downloading moonlight branch %s", args.branch)
    result = _request(bus, UpdatePackage(args.branch))
    if result.is_err():
        _LOGGER.error("Failed to download moonlight: %s", result.error)
        return EXIT_FAILED
    _LOGGER.info("Downloaded version %s", result.value.version)
    return EXIT_OK


def _patch(service: InstallerService, bus: CommandBus, args: argparse.Namespace) -> int:
    _LOGGER.info("Patching install at %s", args.exe)
    info = service.detect_install_at(args.exe)
    if info is None:
        _LOGGER.error("Failed to detect install at %s", args.exe)
        return EXIT_NO_INSTALL
    if info.is_patched:
        _LOGGER.warning("Install already patched")
        return EXIT_OK

    config_file = service.paths.installer_config_file
    config = load_installer_config(config_file)
    branch = args.branch or config.branch_for(info.install)
    result = _request(bus, PatchInstall(info.install, branch, args.moonlight))
    if result.is_err():
        _LOGGER.error("Failed to patch install at %s: %s", args.exe, result.error)
        return EXIT_FAILED
    _LOGGER.info("Patched install at %s", args.exe)

    if args.branch is not None:
        try:
            save_installer_config(config.with_install_branch(info.install, args.branch), config_file)
        except OSError as exc:
            _LOGGER.warning("Failed to remember branch %s for %s: %s", args.branch, args.exe, exc)
    return EXIT_OK


def _unpatch(service: InstallerService, bus: CommandBus, args: argparse.Namespace) -> int:
    _LOGGER.info("Unpatching install at %s", args.exe)
    info = service.detect_install_at(args.exe)
    if info is None:
        _LOGGER.error("Failed to detect install at %s", args.exe)
        return EXIT_NO_INSTALL
    if not info.is_patched:
        _LOGGER.warning("Install already unpatched")
        return EXIT_OK

    result = _request(bus, UnpatchInstall(info.install))
    if result.is_err():
        _LOGGER.error("Failed to unpatch install at %s: %s", args.exe, result.error)
        return EXIT_FAILED
    _LOGGER.info("Unpatched install at %s", args.exe)
    return EXIT_OK


def _update_note(bus: CommandBus, branch: ModBranch, downloaded: str) -> str:
    result = _request(bus, GetLatestVersion(branch))
    if result.is_err():
        _LOGGER.warning("Failed to check for %s updates: %s", branch, result.error)
        return ""
    _, latest = result.value
    if is_update_available(downloaded, latest):
        return f" (update available: {latest})"
    return " (up to date)"


def _list(bus: CommandBus) -> int:
    installs = _request(bus, GetInstalls())
    versions = _request(bus, GetDownloadedVersions())
    for result in (installs, versions):
        if result.is_err():
            _LOGGER.error("Failed to list installs: %s", result.error)
            return EXIT_FAILED

    if not installs.value:
        print("No Discord installs found")
    for info in installs.value:
        state = "patched" if info.is_patched else "unpatched"
        sandbox = f" [{info.install.sandbox_id}]" if info.install.sandbox_id else ""
        print(f"{info.install.channel.display_name}{sandbox}: {info.install.path} ({state})")
    for branch in ModBranch:
        record = versions.value.get(branch)
        if record is not None:
            note = _update_note(bus, branch, record.version)
            print(f"moonlight {branch}: {record.version} at {record.path}{note}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None, *, service: InstallerService | None = None) -> int:
    args = parse_args(argv)
    ensure_app_logging(console=True)
    if args.verbose:
        set_file_log_verbosity(LogVerbosity.VERBOSE)

    if service is None:
        try:
            service = build_installer_service()
        except InstallerError as exc:
            _LOGGER.error("Failed to prepare installer: %s", exc)
            return EXIT_FAILED
    with CommandBus(service) as bus:
        if args.command == "install":
            return _install(bus, args)
        if args.command == "patch":
            return _patch(service, bus, args)
        if args.command == "unpatch":
            return _unpatch(service, bus, args)
        return _list(bus)


__all__ = ["EXIT_FAILED", "EXIT_NO_INSTALL", "EXIT_OK", "build_parser", "main", "parse_args"]
