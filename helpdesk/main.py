"""
Helpdesk Triage - Worker Process
================================

Background worker that triages new helpdesk tickets.

Clean Architecture Layers:
- Interfaces: event consumer
- Application: workflow, services and DTOs
- Domain: entities, normalization, fallback rules, status state machine
- Infrastructure: database, LLM client, notification transport, scheduler

Run with ``python -m helpdesk.main``.
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from helpdesk.config import Settings, get_settings
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
)
from helpdesk.infrastructure.llm import ILLMClient
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging
from helpdesk.triage.application import (
    AssignmentPolicy,
    ClassifierConfig,
    IHandlerStore,
    INotificationSender,
    ITicketStore,
    NotificationDispatcher,
    StepPolicy,
    TicketClassifier,
    TicketIntakeService,
    TriageWorkflow,
)
from helpdesk.triage.domain import FallbackClassifier
from helpdesk.triage.infrastructure import (
    InProcessEventPublisher,
    LoggingNotificationSender,
    SQLAlchemyHandlerStore,
    SQLAlchemyTicketStore,
    StaleTicketSweeper,
    WebhookNotificationSender,
)
from helpdesk.triage.interfaces import TriageEventConsumer

logger = get_logger(__name__)


def build_notification_sender(settings: Settings) -> INotificationSender:
    """Webhook sender when a relay is configured, log-only sender otherwise."""
    if settings.notification_webhook_url:
        return WebhookNotificationSender(
            webhook_url=settings.notification_webhook_url,
            sender=settings.notification_sender,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    return LoggingNotificationSender()


def build_workflow(
    settings: Settings,
    ticket_store: ITicketStore,
    handler_store: IHandlerStore,
    sender: Optional[INotificationSender] = None,
    classifier: Optional[TicketClassifier] = None
) -> TriageWorkflow:
    """Wire the triage workflow from settings and its collaborators."""
    return TriageWorkflow(
        ticket_store=ticket_store,
        classifier=classifier or TicketClassifier(ClassifierConfig.from_settings(settings)),
        assignment_policy=AssignmentPolicy(handler_store),
        dispatcher=NotificationDispatcher(sender or build_notification_sender(settings)),
        fallback_classifier=FallbackClassifier(),
        fallback_mode=settings.triage_fallback_mode,
        step_policy=StepPolicy(
            max_retries=settings.workflow_step_retries,
            backoff_seconds=settings.workflow_backoff_seconds,
        ),
    )


class TriageApplication:
    """
    Owns the long-lived objects of the worker.

    STARTUP:
    1. Initialize database and create tables
    2. Build stores, classifier and workflow
    3. Start the event consumer and the stale ticket sweeper

    SHUTDOWN:
    1. Stop the sweeper
    2. Drain running workflows
    3. Close the notification sender, LLM client and database
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.consumer: Optional[TriageEventConsumer] = None
        self.intake: Optional[TicketIntakeService] = None
        self.sweeper: Optional[StaleTicketSweeper] = None
        self._sender: Optional[INotificationSender] = None
        self._classifier: Optional[TicketClassifier] = None

    async def start(self, llm_client: Optional[ILLMClient] = None) -> None:
        settings = self.settings
        logger.info("Starting triage worker", extra={
            "version": settings.app_version,
            "environment": settings.environment
        })

        engine = init_database(settings.database_url)
        if settings.environment in ("development", "test"):
            await create_tables(engine)

        session_maker = get_session_maker()
        tickets = SQLAlchemyTicketStore(session_maker)
        handlers = SQLAlchemyHandlerStore(session_maker)

        self._sender = build_notification_sender(settings)
        self._classifier = TicketClassifier(
            ClassifierConfig.from_settings(settings), llm_client=llm_client
        )
        workflow = build_workflow(settings, tickets, handlers, self._sender, self._classifier)

        self.consumer = TriageEventConsumer(workflow, settings.workflow_max_concurrency)
        publisher = InProcessEventPublisher(self.consumer)
        self.intake = TicketIntakeService(tickets, publisher)

        if settings.sweeper_enabled:
            self.sweeper = StaleTicketSweeper(
                tickets,
                publisher,
                stale_after_minutes=settings.sweeper_stale_after_minutes,
                interval_seconds=settings.sweeper_interval_seconds,
            )
            await self.sweeper.start()

        logger.info("Triage worker started")

    async def stop(self) -> None:
        logger.info("Stopping triage worker")

        if self.sweeper:
            await self.sweeper.stop()
        if self.consumer:
            await self.consumer.close()
        if self._sender:
            await self._sender.close()
        if self._classifier:
            await self._classifier.close()
        await close_database()

        logger.info("Triage worker stopped")


@asynccontextmanager
async def lifespan(settings: Optional[Settings] = None) -> AsyncGenerator[TriageApplication, None]:
    """Run a triage application for the duration of the block."""
    app = TriageApplication(settings or get_settings())
    await app.start()
    try:
        yield app
    finally:
        await app.stop()


async def run_worker() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.environment)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows

    async with lifespan(settings):
        await stop.wait()


if __name__ == "__main__":
    asyncio.run(run_worker())
