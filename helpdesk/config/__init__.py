"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ========== Constants ==========


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    PROCESSING = "processing"
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    ERROR = "error"


class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class HandlerRole(str, Enum):
    """Roles a user record can hold."""
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class FallbackMode(str, Enum):
    """Strategy applied when the classifier returns nothing usable."""
    SENTINEL = "sentinel"     # default priority, no skills
    HEURISTIC = "heuristic"   # keyword rules pick skills and priority


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-triage", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Record store connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Classification Service ==========
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for the chat-completions classification service"
    )
    llm_base_url: Optional[str] = Field(
        default=None,
        description="Override base URL for OpenAI-compatible providers"
    )
    llm_model: str = Field(default="gpt-4o-mini", description="Model used for classification")
    llm_temperature: float = Field(
        default=0.2,
        description="Sampling temperature for classification",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=800,
        description="Max tokens for a classification reply",
        ge=1,
        le=8000
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Per-request timeout for the classification service",
        gt=0
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )
    classifier_transport_retries: int = Field(
        default=2,
        description="Retries for transient classifier transport errors",
        ge=0,
        le=5
    )
    classifier_backoff_seconds: float = Field(
        default=0.5,
        description="Base delay for classifier retry backoff",
        ge=0
    )

    # ========== Workflow ==========
    workflow_step_retries: int = Field(
        default=2,
        description="Retries for a workflow step failing with a transient error",
        ge=0,
        le=5
    )
    workflow_backoff_seconds: float = Field(
        default=0.5,
        description="Base delay for workflow step retry backoff",
        ge=0
    )
    workflow_max_concurrency: int = Field(
        default=20,
        description="Max ticket workflows running at once in this process",
        ge=1
    )
    triage_fallback_mode: FallbackMode = Field(
        default=FallbackMode.SENTINEL,
        description="What to persist when the classifier yields nothing usable"
    )

    # ========== Stale Ticket Sweeper ==========
    sweeper_enabled: bool = Field(default=True, description="Redeliver stuck tickets")
    sweeper_interval_seconds: int = Field(
        default=120,
        description="Seconds between stale ticket sweeps",
        ge=10
    )
    sweeper_stale_after_minutes: int = Field(
        default=15,
        description="Age after which a Processing ticket is redelivered",
        ge=1
    )

    # ========== Notifications ==========
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Mail relay webhook for assignment notifications"
    )
    notification_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for notification webhook calls",
        ge=0.1,
        le=30
    )
    notification_sender: str = Field(
        default="helpdesk@example.com",
        description="From address used for notifications"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Lists for validation ==========

TERMINAL_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED, TicketStatus.ERROR})
