from __future__ import annotations

from importlib import resources

import pytest

from app.version import get_app_version, user_agent


@pytest.fixture(autouse=True)
def _reset_cache():
    get_app_version.cache_clear()  # type: ignore[attr-defined]
    yield
    get_app_version.cache_clear()  # type: ignore[attr-defined]


def test_get_app_version_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOONLIGHT_INSTALLER_VERSION", "v1.2.3")

    assert get_app_version() == "1.2.3"
    assert user_agent() == "moonlight-installer/1.2.3"


def test_get_app_version_falls_back_to_version_file() -> None:
    version_file = resources.files("app").joinpath("VERSION")
    expected = version_file.read_text(encoding="utf-8").strip()

    assert expected
    assert get_app_version() == expected
