"""
Triage Event Consumer
=====================

Entry point for "ticket created" events coming from the delivery substrate.

Each event runs as its own asyncio task; steps of one ticket run in order,
different tickets run concurrently up to ``max_concurrency``. An event for a
ticket that already has a run in flight in this process joins that run.
"""

import asyncio
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from helpdesk.core import ValidationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.triage.application import TicketCreatedEvent, TriageWorkflow, WorkflowOutcome

logger = get_logger(__name__)


class TriageEventConsumer:
    """Schedules triage workflow runs for inbound events."""

    def __init__(self, workflow: TriageWorkflow, max_concurrency: int = 20):
        self._workflow = workflow
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._in_flight: Dict[str, "asyncio.Task[WorkflowOutcome]"] = {}
        self._closed = False

    @staticmethod
    def parse(payload: Mapping[str, Any]) -> TicketCreatedEvent:
        """
        Validate a raw event payload.

        Raises:
            ValidationException: If a required field is missing or empty
        """
        try:
            return TicketCreatedEvent.model_validate(payload)
        except ValidationError as e:
            raise ValidationException(
                "Invalid ticket created event", {"errors": e.errors(include_url=False)}
            ) from e

    def submit(self, event: TicketCreatedEvent) -> "asyncio.Task[WorkflowOutcome]":
        """Start (or join) the workflow run for this event's ticket."""
        if self._closed:
            raise RuntimeError("Event consumer is closed")

        running = self._in_flight.get(event.ticket_id)
        if running is not None and not running.done():
            logger.info("Ticket already in flight, joining run", extra={"ticket_id": event.ticket_id})
            return running

        task = asyncio.create_task(self._run(event), name=f"triage-{event.ticket_id}")
        self._in_flight[event.ticket_id] = task
        task.add_done_callback(lambda t, ticket_id=event.ticket_id: self._forget(ticket_id, t))
        return task

    async def handle(self, payload: Mapping[str, Any]) -> WorkflowOutcome:
        """Validate a raw payload, run the workflow and wait for its outcome."""
        return await self.submit(self.parse(payload))

    async def _run(self, event: TicketCreatedEvent) -> WorkflowOutcome:
        async with self._semaphore:
            try:
                return await self._workflow.run(event)
            except Exception as e:
                # run() reports failures in its outcome; this is a last guard for the host
                logger.exception("Workflow crashed", extra={"ticket_id": event.ticket_id})
                return WorkflowOutcome(ticket_id=event.ticket_id, error=str(e))

    def _forget(self, ticket_id: str, task: "asyncio.Task[WorkflowOutcome]") -> None:
        if self._in_flight.get(ticket_id) is task:
            del self._in_flight[ticket_id]

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def drain(self) -> None:
        """Wait for every running workflow to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def close(self) -> None:
        """Stop accepting events and wait for running workflows."""
        self._closed = True
        await self.drain()
