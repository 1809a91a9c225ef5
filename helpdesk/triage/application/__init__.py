"""
Triage Application Layer
=========================

Application layer for ticket triage module.

Contains:
- Services: classifier adapter, assignment policy, notifications, intake
- Workflow: the step engine that ties them together
- DTOs: events, requests, configuration and outcomes
"""

from helpdesk.triage.application.dto import (
    TicketCreatedEvent,
    CreateTicketRequest,
    ClassifierConfig,
    WorkflowOutcome,
)
from helpdesk.triage.application.services import (
    HandlerFilter,
    ITicketStore,
    IHandlerStore,
    INotificationSender,
    IEventPublisher,
    TicketClassifier,
    AssignmentPolicy,
    NotificationDispatcher,
    TicketIntakeService,
)
from helpdesk.triage.application.workflow import (
    StepPolicy,
    StepFailure,
    TriageWorkflow,
)

__all__ = [
    # DTOs
    "TicketCreatedEvent",
    "CreateTicketRequest",
    "ClassifierConfig",
    "WorkflowOutcome",
    # Services
    "TicketClassifier",
    "AssignmentPolicy",
    "NotificationDispatcher",
    "TicketIntakeService",
    "StepPolicy",
    "StepFailure",
    "TriageWorkflow",
    # Store and transport interfaces
    "HandlerFilter",
    "ITicketStore",
    "IHandlerStore",
    "INotificationSender",
    "IEventPublisher",
]
