"""Tests for the stale ticket sweeper."""

from datetime import timedelta

import pytest

from helpdesk.config import TicketStatus
from helpdesk.core import RepositoryException
from helpdesk.triage.application import IEventPublisher
from helpdesk.triage.domain import Ticket
from helpdesk.triage.infrastructure import StaleTicketSweeper
from tests.fakes import BASE_TIME


class RecordingPublisher(IEventPublisher):

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.events = []

    async def publish(self, event):
        if event.ticket_id in self.fail_for:
            raise RuntimeError("publish failed")
        self.events.append(event)


NOW = BASE_TIME + timedelta(hours=1)


def add_ticket(store, ticket_id, minutes_old, status=TicketStatus.PROCESSING):
    return store.add(Ticket(
        id=ticket_id,
        title="Stuck",
        description="Never triaged",
        created_by="u-1",
        status=status,
        created_at=NOW - timedelta(minutes=minutes_old),
    ))


class TestStaleTicketSweeper:

    @pytest.mark.asyncio
    async def test_redelivers_only_stale_processing_tickets(self, ticket_store):
        add_ticket(ticket_store, "old", minutes_old=30)
        add_ticket(ticket_store, "fresh", minutes_old=5)
        add_ticket(ticket_store, "done", minutes_old=30, status=TicketStatus.IN_PROGRESS)
        publisher = RecordingPublisher()
        sweeper = StaleTicketSweeper(ticket_store, publisher, stale_after_minutes=15)

        count = await sweeper.sweep(now=NOW)

        assert count == 1
        assert [e.ticket_id for e in publisher.events] == ["old"]

    @pytest.mark.asyncio
    async def test_publish_failure_skips_ticket(self, ticket_store):
        add_ticket(ticket_store, "a", minutes_old=40)
        add_ticket(ticket_store, "b", minutes_old=30)
        publisher = RecordingPublisher(fail_for={"a"})
        sweeper = StaleTicketSweeper(ticket_store, publisher)

        count = await sweeper.sweep(now=NOW)

        assert count == 1
        assert [e.ticket_id for e in publisher.events] == ["b"]

    @pytest.mark.asyncio
    async def test_batch_size_limits_sweep(self, ticket_store):
        for i in range(5):
            add_ticket(ticket_store, f"t-{i}", minutes_old=60 - i)
        publisher = RecordingPublisher()
        sweeper = StaleTicketSweeper(ticket_store, publisher, batch_size=2)

        assert await sweeper.sweep(now=NOW) == 2
        assert [e.ticket_id for e in publisher.events] == ["t-0", "t-1"]

    @pytest.mark.asyncio
    async def test_store_failure_is_logged(self, ticket_store):
        ticket_store.fail("find_stale", RepositoryException("db down"))
        sweeper = StaleTicketSweeper(ticket_store, RecordingPublisher())

        assert await sweeper.sweep(now=NOW) == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, ticket_store):
        sweeper = StaleTicketSweeper(ticket_store, RecordingPublisher(), interval_seconds=3600)

        await sweeper.start()
        assert sweeper.is_running is True

        await sweeper.start()
        assert sweeper.is_running is True

        await sweeper.stop()
        assert sweeper.is_running is False
