"""Shared fixtures for the triage tests."""

from datetime import timedelta
from typing import Any, Optional

import pytest

from helpdesk.config import FallbackMode, HandlerRole
from helpdesk.triage.application import (
    AssignmentPolicy,
    ClassifierConfig,
    INotificationSender,
    NotificationDispatcher,
    StepPolicy,
    TicketClassifier,
    TicketCreatedEvent,
    TriageWorkflow,
)
from helpdesk.triage.domain import Handler, Ticket
from tests.fakes import (
    BASE_TIME,
    InMemoryHandlerStore,
    InMemoryTicketStore,
    RecordingSender,
    RecordingSleep,
    ScriptedLLMClient,
    classifier_reply,
)


# ========== Fixtures ==========

@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def ticket_store():
    return InMemoryTicketStore()


@pytest.fixture
def admin():
    return Handler(
        id="admin-1",
        email="admin@example.com",
        role=HandlerRole.ADMIN,
        skills=frozenset(),
        created_at=BASE_TIME,
    )


@pytest.fixture
def hardware_moderator():
    return Handler(
        id="mod-hw",
        email="hw@example.com",
        role=HandlerRole.MODERATOR,
        skills=frozenset({"hardware", "printers"}),
        created_at=BASE_TIME + timedelta(minutes=1),
    )


@pytest.fixture
def handler_store(admin, hardware_moderator):
    return InMemoryHandlerStore([admin, hardware_moderator])


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def ticket(ticket_store):
    return ticket_store.add(Ticket(
        id="t-1",
        title="Printer broken",
        description="Office printer shows paper jam error",
        created_by="user-1",
        created_at=BASE_TIME,
    ))


@pytest.fixture
def event(ticket):
    return TicketCreatedEvent(
        ticket_id=ticket.id,
        title=ticket.title,
        description=ticket.description,
        created_by=ticket.created_by,
    )


@pytest.fixture
def classifier_config():
    return ClassifierConfig(transport_retries=2, backoff_seconds=0.5)


@pytest.fixture
def make_workflow(ticket_store, handler_store, sender, sleep, classifier_config):
    """Factory building a workflow around a scripted classification service."""

    def factory(*replies: Any, fallback_mode: FallbackMode = FallbackMode.SENTINEL,
                notification_sender: Optional[INotificationSender] = None) -> TriageWorkflow:
        llm = ScriptedLLMClient(*(replies or (classifier_reply(),)))
        return TriageWorkflow(
            ticket_store=ticket_store,
            classifier=TicketClassifier(classifier_config, llm_client=llm, sleep=sleep),
            assignment_policy=AssignmentPolicy(handler_store),
            dispatcher=NotificationDispatcher(notification_sender or sender),
            fallback_mode=fallback_mode,
            step_policy=StepPolicy(max_retries=2, backoff_seconds=0.5),
            sleep=sleep,
        )

    return factory
