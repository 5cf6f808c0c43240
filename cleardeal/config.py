"""Configuration settings for ClearDeal."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_db_path() -> Path:
    return Path.home() / ".cleardeal" / "cleardeal.db"


class ClearDealConfig(BaseSettings):
    """Settings loaded from CLEARDEAL_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLEARDEAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_path: Path = default_db_path()

    # Settlement
    settlement_url: Optional[str] = None  # HTTP gateway; local ledger when unset
    settlement_timeout_seconds: float = 30.0
    settlement_poll_interval_seconds: float = 0.5

    currency: str = "ETH"  # display only
    log_level: str = "INFO"

    @field_validator("settlement_timeout_seconds", "settlement_poll_interval_seconds")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v


@lru_cache
def get_config() -> ClearDealConfig:
    """Get cached settings instance."""
    return ClearDealConfig()
