"""
Triage External Service Integrations
=====================================

Adapters for the collaborators around the triage workflow:
- Mail relay webhook for assignment notifications (httpx)
- Logging notification sender for development
- In-process event publisher
- APScheduler job redelivering tickets stuck in Processing
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from helpdesk.config import TicketStatus
from helpdesk.core import ApplicationException, NotificationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.triage.application import (
    IEventPublisher,
    INotificationSender,
    ITicketStore,
    TicketCreatedEvent,
)

if TYPE_CHECKING:
    from helpdesk.triage.interfaces.events import TriageEventConsumer

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        """Check if request should be allowed."""
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        """Record successful request."""
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Record failed request."""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookNotificationSender(INotificationSender):
    """
    Mail relay webhook client with circuit breaker and retry logic.

    Posts ``{"from", "to", "subject", "text"}`` as JSON. Handles:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: str,
        sender: str,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._webhook_url = webhook_url
        self._sender = sender
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._http_client = http_client
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout_seconds)
        return self._http_client

    def _build_message(self, address: str, subject: str, body: str) -> Dict[str, Any]:
        return {
            "from": self._sender,
            "to": address,
            "subject": subject,
            "text": body,
        }

    async def send(self, address: str, subject: str, body: str) -> None:
        """
        Send one message through the webhook.

        Raises:
            NotificationException: If the circuit is open or every attempt failed
        """
        if not self._circuit_breaker.allow_request():
            raise NotificationException(
                "Circuit breaker open, notification skipped",
                {"to": address}
            )

        message = self._build_message(address, subject, body)
        last_error = ""

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    return

                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "Notification webhook returned an error status",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
                if response.is_client_error and response.status_code != 429:
                    break

            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.warning(
                    "Notification webhook request failed",
                    extra={"error": last_error, "attempt": attempt + 1}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_seconds * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise NotificationException(f"Delivery failed: {last_error}", {"to": address})

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class LoggingNotificationSender(INotificationSender):
    """Writes notifications to the log instead of sending them."""

    async def send(self, address: str, subject: str, body: str) -> None:
        logger.info(
            "Notification (not delivered, no webhook configured)",
            extra={"to": address, "subject": subject, "body_chars": len(body)}
        )


class InProcessEventPublisher(IEventPublisher):
    """Hands events straight to the in-process consumer."""

    def __init__(self, consumer: "TriageEventConsumer"):
        self._consumer = consumer

    async def publish(self, event: TicketCreatedEvent) -> None:
        self._consumer.submit(event)


class StaleTicketSweeper:
    """
    Redelivers tickets stuck in Processing.

    A ticket stays in Processing when its event was lost or the host died
    mid-run. Publishing the event again is safe because the workflow is
    idempotent.
    """

    def __init__(
        self,
        ticket_store: ITicketStore,
        publisher: IEventPublisher,
        stale_after_minutes: int = 15,
        interval_seconds: int = 120,
        batch_size: int = 100
    ):
        self._tickets = ticket_store
        self._publisher = publisher
        self.stale_after = timedelta(minutes=stale_after_minutes)
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Publish events for stale Processing tickets.

        Returns:
            Number of events published
        """
        cutoff = (now or datetime.now(timezone.utc)) - self.stale_after
        try:
            stale = await self._tickets.find_stale(
                TicketStatus.PROCESSING, cutoff, limit=self.batch_size
            )
        except ApplicationException as e:
            logger.error("Stale ticket lookup failed", extra={"error": str(e)})
            return 0

        published = 0
        for ticket in stale:
            event = TicketCreatedEvent(
                ticket_id=ticket.id,
                title=ticket.title,
                description=ticket.description,
                created_by=ticket.created_by,
            )
            try:
                await self._publisher.publish(event)
            except Exception as e:
                logger.error(
                    "Failed to redeliver ticket",
                    extra={"ticket_id": ticket.id, "error": str(e)}
                )
                continue
            published += 1

        if published:
            logger.info("Redelivered stale tickets", extra={"count": published})
        return published

    async def start(self) -> None:
        """Start the periodic sweep."""
        if self._running:
            logger.warning("Stale ticket sweeper already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.sweep,
            "interval",
            seconds=self.interval_seconds,
            id="stale_ticket_sweep",
            name="Stale Ticket Sweep",
            misfire_grace_time=60,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Stale ticket sweeper started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Stale ticket sweeper stopped")

    @property
    def is_running(self) -> bool:
        """Check if the sweeper is running."""
        return self._running
