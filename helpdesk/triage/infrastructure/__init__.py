"""
Triage Infrastructure Layer
============================

Infrastructure implementations for ticket triage module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: record store implementations
- External: notification senders, event publisher, stale ticket sweeper
"""

from helpdesk.triage.infrastructure.models import TicketModel, HandlerModel
from helpdesk.triage.infrastructure.repositories import (
    SQLAlchemyTicketStore,
    SQLAlchemyHandlerStore,
)
from helpdesk.triage.infrastructure.external import (
    CircuitBreaker,
    WebhookNotificationSender,
    LoggingNotificationSender,
    InProcessEventPublisher,
    StaleTicketSweeper,
)

__all__ = [
    "TicketModel",
    "HandlerModel",
    "SQLAlchemyTicketStore",
    "SQLAlchemyHandlerStore",
    "CircuitBreaker",
    "WebhookNotificationSender",
    "LoggingNotificationSender",
    "InProcessEventPublisher",
    "StaleTicketSweeper",
]
