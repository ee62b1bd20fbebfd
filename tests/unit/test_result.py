from __future__ import annotations

import pytest

from services.installer.errors import NetworkError
from shared.result import Result


def test_ok_result_may_carry_none() -> None:
    result: Result[None, NetworkError] = Result.ok(None)

    assert result.is_ok()
    assert not result.is_err()
    assert result.unwrap() is None


def test_unwrap_reraises_stored_error() -> None:
    error = NetworkError("offline")
    result: Result[int, NetworkError] = Result.err(error)

    assert result.is_err()
    with pytest.raises(NetworkError) as excinfo:
        result.unwrap()
    assert excinfo.value is error


def test_map_transforms_only_success() -> None:
    assert Result.ok(2).map(lambda value: value * 3).unwrap() == 6

    failed: Result[int, NetworkError] = Result.err(NetworkError("offline"))
    assert failed.map(lambda value: value * 3).error is failed.error
