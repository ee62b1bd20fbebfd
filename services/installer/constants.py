"""Constants shared across the installer modules."""

from __future__ import annotations

TOOL_DIR_NAME = "moonlight-mod"
CONFIG_DIR_ENV = "MOONLIGHT_DIR"
LINUX_SHARE_ENV = "MOONLIGHT_DISCORD_SHARE_LINUX"

GITHUB_REPO = "moonlight-mod/moonlight"
API_URL = f"https://api.github.com/repos/{GITHUB_REPO}/releases/latest"
ARTIFACT_NAME = "dist.tar.gz"
NIGHTLY_REF_URL = "https://moonlight-mod.github.io/moonlight/ref"
NIGHTLY_DIST_URL = "https://moonlight-mod.github.io/moonlight/dist.tar.gz"
REQUEST_TIMEOUT = 30.0

ORIGINAL_ASAR = "app.asar"
PATCHED_ASAR = "_app.asar"
APP_FOLDER = "app"
PACKAGE_DESCRIPTOR = "package.json"
INJECTOR_SCRIPT = "injector.js"
BOOTSTRAP_METADATA = "moonlight.json"
INJECTOR_BASE_TAG = "MOONLIGHT"

WINDOWS_VERSION_PREFIX = "app-"

LEGACY_DOWNLOAD_DIR = "dist"
LEGACY_VERSION_FILE = ".moonlight-installed-version"
LEGACY_STABLE_TAG_PREFIX = "v"
VERSION_MAP_FILE = "installed-versions.json"
INSTALLER_CONFIG_FILE = "installer.json"

FLATPAK_CONTEXT_SECTION = "Context"
FLATPAK_FILESYSTEMS_KEY = "filesystems"

MAX_ARCHIVE_TOTAL_BYTES = 200 * 1024 * 1024  # 200 MiB
MAX_ARCHIVE_FILE_SIZE = 64 * 1024 * 1024  # 64 MiB per file
MAX_ARCHIVE_ENTRIES = 5000
