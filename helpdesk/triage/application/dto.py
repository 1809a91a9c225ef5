"""
Triage Application DTOs
========================

Data Transfer Objects passed across the triage boundaries: the inbound
event, intake requests, classifier configuration and workflow outcomes.

Pydantic models for validation.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from helpdesk.config import Priority, Settings, TicketStatus


# ========== Events ==========

class TicketCreatedEvent(BaseModel):
    """
    Inbound "ticket created" event.

    May be delivered more than once for the same ticket. Accepts the
    camelCase keys used on the wire (``ticketId``, ``createdBy``).
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ticket_id: str = Field(..., min_length=1, alias="ticketId")
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    created_by: str = Field(..., min_length=1, alias="createdBy")


# ========== Request DTOs ==========

class CreateTicketRequest(BaseModel):
    """Request model for ticket intake."""
    title: str = Field(..., min_length=1, max_length=500, description="Ticket title")
    description: str = Field(..., min_length=1, description="Ticket description")
    created_by: str = Field(..., min_length=1, description="Submitting user id")

    @field_validator("title", "description")
    @classmethod
    def strip_and_require(cls, v: str) -> str:
        """Reject whitespace-only text."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("description")
    @classmethod
    def validate_description_length(cls, v: str) -> str:
        """Ensure description is not too long for the classifier."""
        if len(v) > 10000:
            raise ValueError("Description too long (max 10000 characters)")
        return v


# ========== Configuration DTOs ==========

class ClassifierConfig(BaseModel):
    """
    Explicit configuration for ``TicketClassifier``.

    Built from ``Settings`` at the composition root; tests construct it
    directly.
    """
    model_config = ConfigDict(frozen=True)

    api_key: Optional[SecretStr] = None
    base_url: Optional[str] = None
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    max_tokens: int = Field(default=800, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    transport_retries: int = Field(default=2, ge=0)
    backoff_seconds: float = Field(default=0.5, ge=0)
    mock: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClassifierConfig":
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
            transport_retries=settings.classifier_transport_retries,
            backoff_seconds=settings.classifier_backoff_seconds,
            mock=settings.mock_llm,
        )


# ========== Response DTOs ==========

class WorkflowOutcome(BaseModel):
    """Result of one triage workflow run for one ticket."""
    ticket_id: str
    success: bool = False
    skipped: bool = False
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    assignee_id: Optional[str] = None
    used_fallback: bool = False
    notified: bool = False
    failed_step: Optional[str] = None
    error: Optional[str] = None
    error_recorded: bool = False
    steps_completed: List[str] = Field(default_factory=list)
