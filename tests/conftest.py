from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    """Guarantee the repository root is discoverable for absolute imports."""

    root = Path(__file__).resolve().parent.parent
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    tests_dir = root / "tests"
    tests_str = str(tests_dir)
    if tests_str not in sys.path:
        sys.path.insert(1, tests_str)


_ensure_project_root_on_path()


@pytest.fixture(autouse=True)
def _installer_dirs_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Route the config directory and logs away from real user data."""

    config_dir = tmp_path_factory.mktemp("moonlight-config")
    log_dir = tmp_path_factory.mktemp("moonlight-logs")
    monkeypatch.setenv("MOONLIGHT_DIR", str(config_dir))
    monkeypatch.setenv("MOONLIGHT_LOG_DIR", str(log_dir))
    monkeypatch.delenv("MOONLIGHT_LOG_FILE", raising=False)
    monkeypatch.delenv("MOONLIGHT_LOG", raising=False)
    monkeypatch.delenv("MOONLIGHT_INSTALLER_VERSION", raising=False)
    yield
