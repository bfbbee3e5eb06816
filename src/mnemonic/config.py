"""
Configuration settings for mnemonic.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with ``MNEMONIC_`` (e.g. ``MNEMONIC_DB_PATH``).
"""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .queue_builder import QueueOptions
from .scheduler import SchedulerConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MNEMONIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    db_path: Path = Field(
        default=Path.home() / ".mnemonic" / "mnemonic.db",
        description="SQLite database file",
    )

    # ========================================
    # Queue
    # ========================================
    micro_limit: int = Field(
        default=12,
        ge=1,
        description="Cards per micro session",
    )
    new_card_limit: int = Field(
        default=5,
        ge=0,
        description="Max new cards injected per session",
    )
    interleave_related: bool = Field(
        default=True,
        description="Space same/related topics apart in the queue",
    )

    # ========================================
    # Memory Model
    # ========================================
    desired_retention: float = Field(
        default=0.9,
        gt=0.0,
        lt=1.0,
        description="Target recall probability at review time",
    )
    maximum_interval: int = Field(
        default=36500,
        ge=1,
        description="Longest interval in days",
    )
    learning_steps: list[float] = Field(
        default=[1.0, 10.0],
        description="Learning steps in minutes",
    )
    relearning_steps: list[float] = Field(
        default=[10.0],
        description="Relearning steps in minutes (empty to skip relearning)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Console logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for console only)",
    )

    def scheduler_config(self) -> SchedulerConfig:
        """Memory model configuration; raises InvalidArgumentError on bad steps."""
        return SchedulerConfig(
            desired_retention=self.desired_retention,
            maximum_interval=self.maximum_interval,
            learning_steps=tuple(timedelta(minutes=m) for m in self.learning_steps),
            relearning_steps=tuple(timedelta(minutes=m) for m in self.relearning_steps),
        )

    def queue_options(self) -> QueueOptions:
        """Default queue options for a standard session."""
        return QueueOptions(
            micro_limit=self.micro_limit,
            new_card_limit=self.new_card_limit,
            interleave_related=self.interleave_related,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
