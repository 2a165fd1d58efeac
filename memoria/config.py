"""
Configuration settings for the Memoria scheduler.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with MEMORIA_ (e.g. MEMORIA_LEARNING_STEPS="[1, 10]").
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from memoria.scheduling.queue import QueueConfig
from memoria.scheduling.sm2 import SchedulerConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MEMORIA_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///~/.memoria/memoria.db",
        description="SQLAlchemy connection string for the card store",
    )
    database_echo: bool = Field(
        default=False,
        description="Log every SQL statement",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level for the console",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Scheduler (SM-2 + learning steps)
    # ========================================
    learning_steps: list[int] = Field(
        default=[1, 10],
        description="Minutes between learning-phase reviews",
    )
    graduation_interval_days: int = Field(
        default=1,
        ge=0,
        description="Interval assigned when a card graduates from learning",
    )
    easy_interval_days: int = Field(
        default=4,
        ge=0,
        description="Interval assigned when a learning card is rated Easy",
    )
    new_card_ease_factor: float = Field(
        default=2.5,
        description="Starting ease factor for new cards",
    )
    minimum_ease_factor: float = Field(
        default=1.3,
        description="Floor for the SM-2 ease factor",
    )

    # ========================================
    # Study Session
    # ========================================
    due_retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before re-checking a deck that has cards but none due",
    )
    due_retry_attempts: int = Field(
        default=3,
        ge=0,
        description="How many times to re-check for due cards before giving up",
    )

    @field_validator("learning_steps")
    @classmethod
    def check_learning_steps(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("learning_steps must contain at least one step")
        if any(step < 0 for step in v):
            raise ValueError("learning_steps must be non-negative")
        return v

    def get_scheduler_config(self) -> SchedulerConfig:
        """Build the scheduler configuration object."""
        return SchedulerConfig(
            learning_steps=tuple(self.learning_steps),
            graduation_interval=self.graduation_interval_days,
            easy_interval=self.easy_interval_days,
            new_card_ease_factor=self.new_card_ease_factor,
            minimum_ease_factor=self.minimum_ease_factor,
        )

    def get_queue_config(self) -> QueueConfig:
        return QueueConfig(
            due_retry_delay=self.due_retry_delay_seconds,
            due_retry_attempts=self.due_retry_attempts,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
