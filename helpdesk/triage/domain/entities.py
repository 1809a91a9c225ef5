"""
Triage Domain Entities
======================

Domain entities for the ticket triage module.

Contains pure Python business objects for tickets, handlers and the values
passed between classification, normalization and assignment.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, FrozenSet, Iterable, Optional, Tuple

from helpdesk.config import HandlerRole, Priority, TicketStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def skill_key(skill: str) -> str:
    """Comparison key for skills: matching ignores case and padding."""
    return skill.strip().lower()


@dataclass
class Ticket:
    """
    Ticket entity for triage operations.

    Created in ``Processing`` by intake; every other field below ``status``
    is written by the triage workflow.
    """
    id: str
    title: str
    description: str
    created_by: str
    status: TicketStatus = TicketStatus.PROCESSING
    priority: Priority = Priority.MEDIUM
    summary: Optional[str] = None
    notes: Optional[str] = None
    required_skills: Tuple[str, ...] = ()
    assignee_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        """Validate ticket on initialization."""
        if not self.title or not self.title.strip():
            raise ValueError("Ticket title must not be empty")
        if not self.description or not self.description.strip():
            raise ValueError("Ticket description must not be empty")


@dataclass
class Handler:
    """A user eligible to receive tickets (moderator or admin)."""
    id: str
    email: str
    role: HandlerRole
    skills: FrozenSet[str] = frozenset()
    created_at: datetime = field(default_factory=_utcnow)

    def matches_any(self, required_skills: Iterable[str]) -> bool:
        """True when at least one required skill is in this handler's set."""
        own = {skill_key(s) for s in self.skills}
        return any(skill_key(s) in own for s in required_skills)


@dataclass
class ClassificationResult:
    """
    Raw reply of the classification service.

    Values are whatever the service sent; nothing here is validated until
    the result goes through ``normalize``.
    """
    summary: Any = None
    priority: Any = None
    notes: Any = None
    skills: Any = None
    model_used: str = ""
    latency_ms: int = 0


class FailureKind(str, Enum):
    """Why the classifier produced no result."""
    TRANSPORT = "transport"   # timeout, connection, rate limit, 5xx
    AUTH = "auth"             # rejected request, not worth retrying
    PARSE = "parse"           # reply contained no usable JSON object


@dataclass
class ClassifierFailure:
    """Typed classifier failure. Returned, never raised."""
    kind: FailureKind
    reason: str
    attempts: int = 1


@dataclass(frozen=True)
class NormalizedResult:
    """Classification that is safe to persist on a ticket."""
    summary: str
    priority: Priority
    notes: str
    skills: Tuple[str, ...] = ()


class ClassificationPromptBuilder:
    """
    Builds prompts for ticket classification.

    All prompt logic in one place.
    """

    SYSTEM_PROMPT = """You are a ticket triage agent for a helpdesk.

Analyze the support ticket and return a JSON object with exactly these fields:

- summary: A short 1-2 sentence summary of the issue.
- priority: One of "low", "medium", or "high".
- notes: A detailed technical explanation a moderator can use to solve the issue. Include useful external links or resources if possible.
- skills: An array of skills required to solve the issue (e.g. ["networking", "hardware"]).

PRIORITY LEVELS:
- high: Outage, data loss, security incident, or the user is fully blocked
- medium: Something is broken but a workaround exists
- low: Questions, how-to requests, cosmetic issues

Respond ONLY with the JSON object. No extra text, headers, or markdown:
{
    "summary": "Short summary of the ticket",
    "priority": "high",
    "notes": "Here are useful tips...",
    "skills": ["hardware", "networking"]
}"""

    @classmethod
    def build_prompt(cls, title: str, description: str) -> str:
        """Build classification prompt from ticket content."""
        return f"""Ticket information:

Title: {title}
Description: {description}

Classify this ticket (respond with JSON only):"""

    @classmethod
    def get_system_prompt(cls) -> str:
        """Get the system prompt for classification."""
        return cls.SYSTEM_PROMPT
