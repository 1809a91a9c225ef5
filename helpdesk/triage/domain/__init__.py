"""
Triage Domain Layer
===================

Domain layer for ticket triage module.

Contains:
- Entities: Core business objects (Ticket, Handler, ClassificationResult)
- Normalization: pure cleanup of classifier output
- Fallback: deterministic keyword classifier
- State machine: ticket status transition rules

This layer is framework-agnostic and contains pure business logic.
"""

from helpdesk.triage.domain.entities import (
    Ticket,
    Handler,
    ClassificationResult,
    ClassifierFailure,
    FailureKind,
    NormalizedResult,
    ClassificationPromptBuilder,
    skill_key,
)
from helpdesk.triage.domain.normalization import (
    normalize,
    normalize_priority,
    normalize_skills,
    SUMMARY_UNAVAILABLE,
    NOTES_MANUAL_REVIEW,
)
from helpdesk.triage.domain.fallback import FallbackClassifier
from helpdesk.triage.domain.state_machine import TicketStateMachine

__all__ = [
    "Ticket",
    "Handler",
    "ClassificationResult",
    "ClassifierFailure",
    "FailureKind",
    "NormalizedResult",
    "ClassificationPromptBuilder",
    "skill_key",
    "normalize",
    "normalize_priority",
    "normalize_skills",
    "SUMMARY_UNAVAILABLE",
    "NOTES_MANUAL_REVIEW",
    "FallbackClassifier",
    "TicketStateMachine",
]
