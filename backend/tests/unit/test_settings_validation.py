"""Settings guard tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bingo_server.core.config import Settings

SECRET = "unit-test-secret-key-32-bytes-minimum"


def test_jwt_secret_requires_minimum_32_bytes() -> None:
    """Input: secret shorter than 32 bytes -> Output: settings validation fails."""
    with pytest.raises(ValidationError):
        Settings(sbingo_jwt_secret="1234567890123456789012345678901")


@pytest.mark.parametrize(
    "overrides",
    [
        {"sbingo_min_players": 6, "sbingo_max_players": 5},
        {"sbingo_min_call_interval": 10, "sbingo_max_call_interval": 4},
        {"sbingo_min_entry_fee": 2.0, "sbingo_max_entry_fee": 1.0},
    ],
)
def test_min_above_max_is_rejected(overrides: dict[str, object]) -> None:
    """Input: any min bound above its max -> Output: settings validation fails."""
    with pytest.raises(ValidationError):
        Settings(sbingo_jwt_secret=SECRET, **overrides)


def test_fee_percent_must_stay_below_100() -> None:
    """Input: platform fee of 100% -> Output: settings validation fails."""
    with pytest.raises(ValidationError):
        Settings(sbingo_jwt_secret=SECRET, sbingo_platform_fee_percent=100)


def test_defaults_match_room_rules() -> None:
    """Input: only the secret -> Output: documented room bounds and fee."""
    settings = Settings(sbingo_jwt_secret=SECRET)

    assert (settings.sbingo_min_players, settings.sbingo_max_players) == (2, 10)
    assert (settings.sbingo_min_call_interval, settings.sbingo_max_call_interval) == (3, 15)
    assert (settings.sbingo_min_entry_fee, settings.sbingo_max_entry_fee) == (0.001, 10.0)
    assert settings.sbingo_platform_fee_percent == 2.0
    assert settings.sbingo_room_backend == "memory"
