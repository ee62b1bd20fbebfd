from __future__ import annotations

import pytest

from services.installer.versioning import compare_versions, is_update_available, parse_release_version


def test_parse_release_version_strips_tag_prefix() -> None:
    assert str(parse_release_version("v1.2.3")) == "1.2.3"
    assert parse_release_version("0f3c2a1") is None


@pytest.mark.parametrize(
    ("current", "candidate", "expected"),
    [
        ("v1.2.3", "v1.2.4", 1),
        ("v1.10.0", "v1.9.0", -1),
        ("v1.2.3", "1.2.3", 0),
        ("abc123", "def456", None),
    ],
)
def test_compare_versions(current: str, candidate: str, expected: int | None) -> None:
    assert compare_versions(current, candidate) == expected


@pytest.mark.parametrize(
    ("downloaded", "latest", "expected"),
    [
        (None, "v1.0.0", True),
        ("v1.0.0", "v1.0.0", False),
        ("v1.0.0", "v1.1.0", True),
        ("v1.1.0", "v1.0.0", False),
        ("2024.01.01", "2024.01.02", True),
        ("abc123", "abc123", False),
        ("abc123", "def456", True),
        ("v1.0.0", "", False),
        (None, None, False),
    ],
)
def test_is_update_available(downloaded: str | None, latest: str | None, expected: bool) -> None:
    assert is_update_available(downloaded, latest) is expected
