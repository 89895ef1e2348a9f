"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Annotated, Literal
import json

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AggregationSettings(BaseSettings):
    """Knobs for the word aggregation engine."""

    model_config = SettingsConfigDict(env_prefix="AGGREGATION_")

    # Excerpt budget (title + leading content) that gets tokenized
    excerpt_max_chars: int = Field(
        default=280,
        description="Maximum characters of title + content fed to the tokenizer",
    )

    # Backend query-size limits
    word_lookup_chunk_size: int = Field(default=500)
    word_write_chunk_size: int = Field(default=1000)

    # Orphan sweep
    orphan_batch_size: int = Field(
        default=500,
        description="Maximum unprocessed items re-driven per sweep",
    )

    @field_validator(
        "excerpt_max_chars",
        "word_lookup_chunk_size",
        "word_write_chunk_size",
        "orphan_batch_size",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Aggregation sizes must be positive")
        return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Wordmap Zeitgeist"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./wordmap.db",
        description="Async database URL (SQLAlchemy format)",
    )

    # Trigger endpoint protection
    scrape_secret: str | None = Field(default=None)

    # API credentials (all optional; sources without keys stay disabled)
    youtube_api_key: str | None = Field(default=None)
    newsapi_key: str | None = Field(default=None)
    twitter_bearer_token: str | None = Field(default=None)
    reddit_client_id: str | None = Field(default=None)
    reddit_client_secret: str | None = Field(default=None)

    # Reddit is ingested through its RSS feeds unless the API is opted into
    reddit_api_enabled: bool = Field(default=False)

    # Source names to skip without removing their configuration
    disabled_sources: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated names or a JSON array, e.g. \"Wired,BBC News\"",
    )

    # HTTP fetching
    user_agent: str = Field(default="WordmapZeitgeist/1.0")
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    fetch_max_attempts: int = Field(default=3, ge=1)
    fetch_retry_base_delay_seconds: float = Field(default=5.0, ge=0)
    inter_source_delay_seconds: float = Field(default=2.0, ge=0)

    # Request log ring buffer
    request_log_size: int = Field(default=1000, ge=1)

    # Scheduler
    scheduler_enabled: bool = Field(default=True)
    ingestion_interval_minutes: int = Field(
        default=30,
        ge=1,
        description="Interval between ingestion runs",
    )
    orphan_sweep_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="Interval between orphan sweeps",
    )

    # Aggregation knobs (nested)
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)

    @field_validator("disabled_sources", mode="before")
    @classmethod
    def split_disabled_sources(cls, v):
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return json.loads(v)
            return [name.strip() for name in v.split(",") if name.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
