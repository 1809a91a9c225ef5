"""
Triage Application Services
============================

Application services for ticket classification, assignment, notification
and intake.

Orchestrates business logic between domain entities and the record store,
the classification service and the notification transport. The interfaces
below are the only view the services have of those collaborators.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from pydantic import ValidationError

from helpdesk.config import HandlerRole, TicketStatus
from helpdesk.core import LLMException, ValidationException
from helpdesk.infrastructure.llm import ILLMClient, MockLLMClient, OpenAILLMClient
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.triage.application.dto import (
    ClassifierConfig,
    CreateTicketRequest,
    TicketCreatedEvent,
)
from helpdesk.triage.application.reply_parser import (
    KNOWN_KEYS,
    NOTES_KEYS,
    PRIORITY_KEYS,
    SKILLS_KEYS,
    SUMMARY_KEYS,
    extract_json_object,
    pick,
    unwrap_payload,
)
from helpdesk.triage.domain import (
    ClassificationPromptBuilder,
    ClassificationResult,
    ClassifierFailure,
    FailureKind,
    Handler,
    NormalizedResult,
    Ticket,
    skill_key,
)

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


# ========== Record Store Interfaces ==========

@dataclass(frozen=True)
class HandlerFilter:
    """Filter for ``IHandlerStore.find_one``."""
    role: HandlerRole
    skills_any: Optional[FrozenSet[str]] = None

    def matches(self, handler: Handler) -> bool:
        if handler.role != self.role:
            return False
        if self.skills_any is None:
            return True
        return handler.matches_any(self.skills_any)


class ITicketStore(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def find_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID, None when it does not exist."""

    @abstractmethod
    async def update_by_id(self, ticket_id: str, fields: Mapping[str, Any]) -> bool:
        """
        Overwrite the given fields of one ticket in a single transaction.

        Returns:
            False when no ticket has this ID
        """

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket."""

    @abstractmethod
    async def find_stale(
        self,
        status: TicketStatus,
        created_before: datetime,
        limit: int = 100
    ) -> List[Ticket]:
        """Tickets still in ``status`` that were created before the cutoff."""


class IHandlerStore(ABC):
    """Interface for handler (moderator/admin) data access."""

    @abstractmethod
    async def find_one(self, handler_filter: HandlerFilter) -> Optional[Handler]:
        """
        First matching handler in store order (``created_at``, then ``id``).

        The order is stable for a fixed store state.
        """

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[Handler]:
        """Handler with this email, or None."""

    @abstractmethod
    async def add(self, handler: Handler) -> Handler:
        """Insert a handler."""


class INotificationSender(ABC):
    """Interface for the notification transport (mail relay)."""

    @abstractmethod
    async def send(self, address: str, subject: str, body: str) -> None:
        """
        Deliver one message.

        Raises:
            NotificationException: If delivery fails
        """

    async def close(self) -> None:
        """Release transport resources."""


class IEventPublisher(ABC):
    """Interface for handing events to the delivery substrate."""

    @abstractmethod
    async def publish(self, event: TicketCreatedEvent) -> None:
        """Publish a ticket created event."""


# ========== Application Services ==========

class TicketClassifier:
    """
    Adapter around the external classification service.

    ``classify`` never raises for modeled failures: transport errors, rejected
    requests and unusable replies all come back as ``ClassifierFailure``.
    Transient transport errors are retried with exponential backoff since the
    call is a read-only request.
    """

    def __init__(
        self,
        config: ClassifierConfig,
        llm_client: Optional[ILLMClient] = None,
        sleep: Sleep = asyncio.sleep
    ):
        self._config = config
        self._llm = llm_client or self._build_client(config)
        self._sleep = sleep

    @staticmethod
    def _build_client(config: ClassifierConfig) -> ILLMClient:
        if config.mock:
            return MockLLMClient()
        return OpenAILLMClient(
            api_key=config.api_key.get_secret_value() if config.api_key else None,
            model=config.model,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )

    async def classify(
        self,
        title: str,
        description: str
    ) -> Union[ClassificationResult, ClassifierFailure]:
        """
        Classify a ticket.

        Args:
            title: Ticket title (non-empty)
            description: Ticket description (non-empty)

        Returns:
            ClassificationResult with raw field values, or ClassifierFailure
        """
        messages = [
            {"role": "system", "content": ClassificationPromptBuilder.get_system_prompt()},
            {"role": "user", "content": ClassificationPromptBuilder.build_prompt(title, description)}
        ]
        max_attempts = self._config.transport_retries + 1

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._llm.chat_completion(
                    messages=messages,
                    temperature=self._config.temperature,
                    max_tokens=self._config.max_tokens,
                    operation="classification"
                )
                break
            except LLMException as e:
                if not e.transient:
                    logger.error(
                        "Classification request rejected",
                        extra={"error": e.message, "attempt": attempt}
                    )
                    return ClassifierFailure(FailureKind.AUTH, e.message, attempt)
                reason = e.message
            except (asyncio.TimeoutError, ConnectionError) as e:
                reason = f"{type(e).__name__}: {e}"

            if attempt >= max_attempts:
                logger.warning(
                    "Classification service unavailable",
                    extra={"error": reason, "attempts": attempt}
                )
                return ClassifierFailure(FailureKind.TRANSPORT, reason, attempt)

            delay = self._config.backoff_seconds * 2 ** (attempt - 1)
            logger.info(
                "Retrying classification",
                extra={"error": reason, "attempt": attempt, "delay_seconds": delay}
            )
            await self._sleep(delay)

        payload = extract_json_object(response.content)
        if payload is None:
            logger.warning(
                "Classification reply held no JSON object",
                extra={"reply_preview": (response.content or "")[:200]}
            )
            return ClassifierFailure(FailureKind.PARSE, "No JSON object in reply", attempt)

        payload = unwrap_payload(payload)
        if not KNOWN_KEYS & payload.keys():
            return ClassifierFailure(
                FailureKind.PARSE,
                f"Reply object has none of the expected fields: {sorted(payload)[:10]}",
                attempt
            )

        return ClassificationResult(
            summary=pick(payload, SUMMARY_KEYS),
            priority=pick(payload, PRIORITY_KEYS),
            notes=pick(payload, NOTES_KEYS),
            skills=pick(payload, SKILLS_KEYS),
            model_used=response.model,
            latency_ms=response.latency_ms,
        )

    async def close(self) -> None:
        await self._llm.close()


class AssignmentPolicy:
    """
    Picks the handler for a ticket.

    A moderator sharing at least one required skill wins; otherwise the
    first admin; otherwise nobody. Ties are broken by store order, so the
    choice is deterministic for a fixed store state.
    """

    def __init__(self, handler_store: IHandlerStore):
        self._handlers = handler_store

    async def assign(self, required_skills: Iterable[str]) -> Optional[Handler]:
        skills = frozenset(skill_key(s) for s in required_skills if s and s.strip())

        if skills:
            handler = await self._handlers.find_one(
                HandlerFilter(role=HandlerRole.MODERATOR, skills_any=skills)
            )
            if handler is not None:
                return handler

        return await self._handlers.find_one(HandlerFilter(role=HandlerRole.ADMIN))


class NotificationDispatcher:
    """
    Best-effort assignment notifications.

    Failures are logged and reported as ``False``; they never propagate.
    """

    def __init__(self, sender: INotificationSender):
        self._sender = sender

    @staticmethod
    def build_assignment_message(title: str, result: NormalizedResult) -> Tuple[str, str]:
        subject = f"New Ticket Assigned: {title}"
        body = (
            f'A new ticket titled "{title}" has been assigned to you.\n\n'
            f"AI Summary: {result.summary}\n"
            f"Priority: {result.priority.value}\n"
        )
        if result.skills:
            body += f"Required skills: {', '.join(result.skills)}\n"
        body += f"\nNotes:\n{result.notes}\n"
        return subject, body

    async def notify_assignment(
        self,
        handler: Handler,
        ticket_id: str,
        title: str,
        result: NormalizedResult
    ) -> bool:
        subject, body = self.build_assignment_message(title, result)
        try:
            await self._sender.send(handler.email, subject, body)
        except Exception as e:
            logger.warning(
                "Assignment notification failed",
                extra={"ticket_id": ticket_id, "handler_id": handler.id, "error": str(e)}
            )
            return False

        logger.info(
            "Assignment notification sent",
            extra={"ticket_id": ticket_id, "handler_id": handler.id}
        )
        return True


class TicketIntakeService:
    """
    Creates tickets and triggers triage.

    Tickets are stored in ``Processing`` before the event goes out, so no
    reader ever sees an untriaged ticket labeled open. A failed publish does
    not fail the request; the stale ticket sweeper redelivers it later.
    """

    def __init__(self, ticket_store: ITicketStore, publisher: IEventPublisher):
        self._tickets = ticket_store
        self._publisher = publisher

    async def create_ticket(self, title: str, description: str, created_by: str) -> Ticket:
        try:
            request = CreateTicketRequest(
                title=title, description=description, created_by=created_by
            )
        except ValidationError as e:
            raise ValidationException(
                "Invalid ticket", {"errors": e.errors(include_url=False)}
            ) from e

        ticket = await self._tickets.create(Ticket(
            id=str(uuid4()),
            title=request.title,
            description=request.description,
            created_by=request.created_by,
            status=TicketStatus.PROCESSING,
        ))

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
                "Failed to publish ticket created event",
                extra={"ticket_id": ticket.id, "error": str(e)}
            )
        else:
            logger.info("Ticket created and triage started", extra={"ticket_id": ticket.id})

        return ticket
