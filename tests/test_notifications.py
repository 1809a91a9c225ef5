"""Tests for assignment notifications and the webhook sender."""

import json

import httpx
import pytest

from helpdesk.config import HandlerRole, Priority
from helpdesk.core import NotificationException
from helpdesk.triage.application import NotificationDispatcher
from helpdesk.triage.domain import Handler, NormalizedResult
from helpdesk.triage.infrastructure import CircuitBreaker, WebhookNotificationSender
from helpdesk.triage.infrastructure.external import CircuitState
from tests.fakes import RecordingSender

WEBHOOK = "https://relay.example.com/send"


def make_sender(handler, max_retries=3, circuit_breaker=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookNotificationSender(
        webhook_url=WEBHOOK,
        sender="helpdesk@example.com",
        max_retries=max_retries,
        backoff_seconds=0,
        http_client=client,
        circuit_breaker=circuit_breaker,
    )


class TestWebhookNotificationSender:

    @pytest.mark.asyncio
    async def test_posts_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202)

        sender = make_sender(handler)
        await sender.send("mod@example.com", "New Ticket Assigned: x", "body")
        await sender.close()

        assert len(requests) == 1
        assert str(requests[0].url) == WEBHOOK
        assert json.loads(requests[0].content) == {
            "from": "helpdesk@example.com",
            "to": "mod@example.com",
            "subject": "New Ticket Assigned: x",
            "text": "body",
        }

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        statuses = iter([503, 500, 200])
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(next(statuses))

        sender = make_sender(handler)
        await sender.send("mod@example.com", "s", "b")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400)

        sender = make_sender(handler)
        with pytest.raises(NotificationException) as exc_info:
            await sender.send("bad-address", "s", "b")

        assert len(calls) == 1
        assert "HTTP 400" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_error_exhausts_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        sender = make_sender(handler, max_retries=2)
        with pytest.raises(NotificationException):
            await sender.send("mod@example.com", "s", "b")

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_open_circuit_skips_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        sender = make_sender(handler, max_retries=1, circuit_breaker=breaker)

        with pytest.raises(NotificationException):
            await sender.send("mod@example.com", "s", "b")
        assert breaker.state == CircuitState.OPEN

        with pytest.raises(NotificationException) as exc_info:
            await sender.send("mod@example.com", "s", "b")

        assert len(calls) == 1
        assert "Circuit breaker open" in exc_info.value.message


class TestCircuitBreaker:

    def test_half_open_after_recovery_timeout(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=0)

        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        breaker.record_failure()

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request() is True

    def test_success_closes_circuit(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        breaker.record_failure()
        assert breaker.allow_request() is False

        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED


class TestNotificationDispatcher:

    def setup_method(self):
        self.handler = Handler(id="mod-1", email="mod@example.com", role=HandlerRole.MODERATOR)
        self.result = NormalizedResult(
            summary="Printer jam",
            priority=Priority.HIGH,
            notes="Open tray 2.",
            skills=("hardware",),
        )

    def test_message_content(self):
        subject, body = NotificationDispatcher.build_assignment_message("Printer broken", self.result)

        assert subject == "New Ticket Assigned: Printer broken"
        assert "AI Summary: Printer jam" in body
        assert "Priority: high" in body
        assert "Required skills: hardware" in body
        assert body.rstrip().endswith("Open tray 2.")

    @pytest.mark.asyncio
    async def test_delivery(self):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher(sender)

        assert await dispatcher.notify_assignment(self.handler, "t-1", "Printer broken", self.result) is True
        assert sender.sent[0]["to"] == "mod@example.com"

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self):
        dispatcher = NotificationDispatcher(RecordingSender(fail=True))

        assert await dispatcher.notify_assignment(self.handler, "t-1", "Printer broken", self.result) is False
