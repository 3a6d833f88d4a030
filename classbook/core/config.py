# classbook/core/config.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).resolve().parents[2] / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(
        default="development",
        description="Deployment environment (development|staging|production)",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./classbook.db",
        description="SQLAlchemy URL of the schedule/reservation store",
    )
    database_pool_size: int = Field(default=20, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)

    # Availability
    availability_cache_ttl_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Window measured from the first cache population after a clear",
    )
    limited_seat_ratio: float = Field(
        default=0.2,
        gt=0,
        le=1,
        description="Share of capacity at or below which a class is reported as LIMITED",
    )

    # Temporary holds
    hold_expiry_minutes: int = Field(default=5, ge=1)
    hold_sweep_interval_seconds: int = Field(default=60, ge=5)

    # Background workers
    redis_url: str = Field(default="redis://localhost:6379")
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value


settings = Settings()
