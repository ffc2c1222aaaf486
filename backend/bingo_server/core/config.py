"""Application settings for backend runtime and tests."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Typed settings loaded from environment variables or explicit kwargs."""

    sbingo_app_env: str = "dev"
    sbingo_app_host: str = "127.0.0.1"
    sbingo_app_port: int = Field(default=8000, ge=1)

    sbingo_jwt_secret: str = Field(min_length=32)
    sbingo_access_token_expire_seconds: int = Field(default=3600, ge=1)

    sbingo_room_backend: Literal["memory", "sqlite"] = "memory"
    sbingo_sqlite_path: str = "sbingo.db"
    sbingo_cors_allow_origins: str = "*"

    sbingo_min_players: int = Field(default=2, ge=1)
    sbingo_max_players: int = Field(default=10, ge=1)
    sbingo_min_call_interval: int = Field(default=3, ge=1)
    sbingo_max_call_interval: int = Field(default=15, ge=1)
    sbingo_min_entry_fee: float = Field(default=0.001, gt=0)
    sbingo_max_entry_fee: float = Field(default=10.0, gt=0)

    sbingo_platform_fee_percent: float = Field(default=2.0, ge=0, lt=100)
    sbingo_refund_cooldown_seconds: int = Field(default=600, ge=0)
    sbingo_starting_balance: float = Field(default=0.0, ge=0)

    sbingo_finished_room_retention_seconds: int = Field(default=300, ge=0)
    sbingo_janitor_interval_seconds: float = Field(default=30.0, gt=0)

    sbingo_mock_players_enabled: bool = False
    sbingo_mock_player_count: int = Field(default=3, ge=1)
    sbingo_mock_player_interval_seconds: float = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "Settings":
        """Ensure every min/max pair is ordered."""
        pairs = [
            ("SBINGO_MIN_PLAYERS", self.sbingo_min_players, "SBINGO_MAX_PLAYERS", self.sbingo_max_players),
            (
                "SBINGO_MIN_CALL_INTERVAL",
                self.sbingo_min_call_interval,
                "SBINGO_MAX_CALL_INTERVAL",
                self.sbingo_max_call_interval,
            ),
            ("SBINGO_MIN_ENTRY_FEE", self.sbingo_min_entry_fee, "SBINGO_MAX_ENTRY_FEE", self.sbingo_max_entry_fee),
        ]
        for low_name, low, high_name, high in pairs:
            if low > high:
                raise ValueError(f"{low_name} must be less than or equal to {high_name}")
        return self


def load_settings() -> Settings:
    """Load settings from process environment."""
    return Settings()
