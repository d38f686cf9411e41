"""Configuration management using Pydantic settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tunables for the Discord client and bulk sync, read from FCRP_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="FCRP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Discord API
    discord_api_base: str = Field(
        default="https://discord.com/api/v10", description="Discord REST API base URL"
    )
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")

    # Rate limiting
    rate_limit_retries: int = Field(
        default=3, ge=0, description="Retries allowed after a 429 before giving up"
    )
    rate_limit_buffer: float = Field(
        default=0.5, ge=0, description="Seconds added to Discord's retry_after"
    )
    default_retry_after: float = Field(
        default=5.0, gt=0, description="Wait used when a 429 carries no retry_after"
    )

    # Bulk role sync
    bulk_batch_size: int = Field(default=5, gt=0, description="Users synced per batch")
    bulk_batch_delay: float = Field(default=1.0, ge=0, description="Seconds between batches")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
