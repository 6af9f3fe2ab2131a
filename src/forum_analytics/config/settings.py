"""
Configuration settings for the forum analytics layer.

This module handles environment variable loading and configuration management
using Pydantic for validation and type safety. An optional YAML file can
override the environment for one-off runs.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Forum analytics configuration settings.

    All settings can be overridden via environment variables.
    """

    # Dataset Configuration
    database_path: Optional[str] = Field(
        default=None,
        description="Path of the SQLite dataset file loaded at start-up"
    )
    database_url: Optional[str] = Field(
        default=None,
        description="Remote URL the dataset file can be downloaded from"
    )
    fallback_database_path: Optional[str] = Field(
        default=None,
        description="Dataset file used when the primary dataset fails to load"
    )
    fetch_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for downloading a remote dataset"
    )
    enable_fts: bool = Field(
        default=True,
        description="Build a full-text index over post titles and content when supported"
    )
    batch_size: int = Field(
        default=500,
        description="Number of posts written per transaction during bulk loads"
    )

    # Query Configuration
    default_page_size: int = Field(
        default=50,
        description="Default page size for post queries"
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone used for hour-of-day, weekday and week buckets"
    )

    # Cache Configuration
    cache_max_entries: int = Field(
        default=100,
        description="Maximum number of cached query results"
    )
    cache_ttl_posts: float = Field(
        default=120.0,
        description="Cache TTL in seconds for paginated post queries"
    )
    cache_ttl_recent: float = Field(
        default=30.0,
        description="Cache TTL in seconds for recent post queries"
    )
    cache_ttl_stats: float = Field(
        default=300.0,
        description="Cache TTL in seconds for summary statistics"
    )
    cache_ttl_analytics: float = Field(
        default=600.0,
        description="Cache TTL in seconds for analytics aggregations"
    )

    # Error Recovery
    max_retries: int = Field(
        default=2,
        description="Retries for retryable errors that have no recovery strategy"
    )
    retry_delay: float = Field(
        default=1.0,
        description="Delay in seconds between those retries"
    )
    error_history_size: int = Field(
        default=100,
        description="Number of errors kept in the in-memory error log"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="text",
        description="Logging format (json or text)"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Rotating log file written when not in debug mode"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Configured settings instance
    """
    return Settings()


def load_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build settings from the environment with an optional YAML overlay.

    Values present in the YAML file take precedence over environment
    variables; a missing file is ignored.

    Args:
        config_path: Path to a YAML file with top-level setting names

    Returns:
        Settings: Configured settings instance
    """
    if config_path is None:
        return get_settings()

    path = Path(config_path)
    if not path.exists():
        return get_settings()

    with open(path, "r", encoding="utf-8") as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    return Settings(**overrides)
