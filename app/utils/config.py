"""
Configuration management for PanelSync.

Uses pydantic-settings so every value has a usable default derived from the
current user profile; ``PANELSYNC_*`` environment variables or a ``.env`` file
may override them.
"""

from functools import lru_cache
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_hot_root() -> Path:
    """Hot-folder root shared with the peer application."""
    return Path.home() / "OneDrive" / "Desktop" / "PanelSyncHot"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Hot-folder layout
    hot_root: Path = default_hot_root()
    host_vendor: str = "Inventor"
    peer_vendor: str = "3DR"
    jobs_pattern: str = "*.json"
    geometry_pattern: str = "*.igs"

    # Stability gate (seconds)
    stability_initial_delay: float = 0.5
    stability_poll_interval: float = 0.15
    stability_timeout: float = 10.0

    # Worker Configuration
    worker_threads: int = Field(default=4, ge=1)
    watch_liveness_interval: float = 1.0

    # Logging
    log_level: str = "INFO"
    log_file_name: str = "panelsync.log"

    # API Configuration
    api_port: int = 8000
    api_title: str = "PanelSync Hot Folder"
    api_version: str = "1.0.0"

    model_config = SettingsConfigDict(
        env_prefix="PANELSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
