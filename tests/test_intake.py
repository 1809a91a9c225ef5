"""Tests for ticket intake."""

from unittest.mock import AsyncMock

import pytest

from helpdesk.config import TicketStatus
from helpdesk.core import ValidationException
from helpdesk.triage.application import IEventPublisher, TicketIntakeService


class RecordingPublisher(IEventPublisher):

    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)


class TestTicketIntakeService:

    @pytest.mark.asyncio
    async def test_creates_processing_ticket_and_publishes(self, ticket_store):
        publisher = RecordingPublisher()
        service = TicketIntakeService(ticket_store, publisher)

        ticket = await service.create_ticket("  Printer jam ", "Paper stuck", "user-1")

        assert ticket.status == TicketStatus.PROCESSING
        assert ticket.title == "Printer jam"
        assert ticket_store.tickets[ticket.id] is ticket
        assert len(publisher.events) == 1
        assert publisher.events[0].ticket_id == ticket.id
        assert publisher.events[0].created_by == "user-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,description", [
        ("", "d"),
        ("t", "   "),
        ("t", "x" * 10001),
    ])
    async def test_invalid_input(self, ticket_store, title, description):
        publisher = RecordingPublisher()
        service = TicketIntakeService(ticket_store, publisher)

        with pytest.raises(ValidationException):
            await service.create_ticket(title, description, "user-1")

        assert ticket_store.tickets == {}
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_ticket(self, ticket_store):
        publisher = AsyncMock(spec=IEventPublisher)
        publisher.publish.side_effect = RuntimeError("broker down")
        service = TicketIntakeService(ticket_store, publisher)

        ticket = await service.create_ticket("Printer jam", "Paper stuck", "user-1")

        assert ticket_store.tickets[ticket.id].status == TicketStatus.PROCESSING
        publisher.publish.assert_awaited_once()
