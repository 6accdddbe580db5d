"""Application configuration and .env loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemas.cadence import CadenceConfig


class Settings(BaseSettings):
    """Centralized runtime configuration."""

    state_db_path: str = Field(
        default="data/continuity/state.sqlite", validation_alias="CONTINUITY_STATE_DB"
    )

    moderation_delay_minutes: int = Field(
        default=15, validation_alias="MODERATION_DELAY_MINUTES"
    )
    moderation_window_minutes: int = Field(
        default=45, validation_alias="MODERATION_WINDOW_MINUTES"
    )
    moderation_escalation_minutes: list[int] = Field(
        default_factory=lambda: [30, 40],
        validation_alias="MODERATION_ESCALATION_MINUTES",
    )
    digest_hour: int = Field(default=2, validation_alias="DIGEST_HOUR")
    digest_minute: int = Field(default=0, validation_alias="DIGEST_MINUTE")
    timezone_offset_minutes: int = Field(
        default=0, validation_alias="DIGEST_TIMEZONE_OFFSET_MINUTES"
    )
    max_override_defer_minutes: int = Field(
        default=12 * 60, validation_alias="MAX_OVERRIDE_DEFER_MINUTES"
    )

    offline_job_sla_ms: int = Field(
        default=10 * 60 * 1000, validation_alias="OFFLINE_JOB_SLA_MS"
    )
    log_level: str = Field(default="INFO", validation_alias="CONTINUITY_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def cadence_config(self) -> CadenceConfig:
        return CadenceConfig(
            moderation_delay_minutes=self.moderation_delay_minutes,
            moderation_window_minutes=self.moderation_window_minutes,
            moderation_escalation_minutes=list(self.moderation_escalation_minutes),
            digest_hour=self.digest_hour,
            digest_minute=self.digest_minute,
            timezone_offset_minutes=self.timezone_offset_minutes,
            max_override_defer_minutes=self.max_override_defer_minutes,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once from .env/environment."""
    return Settings()


__all__ = ["Settings", "get_settings"]
