"""
Triage Infrastructure Repositories
====================================

SQLAlchemy implementations of the record store interfaces.

Every call opens its own session and commits its own transaction: a workflow
step's write is one atomic update scoped to one ticket id, and nothing is
held between steps.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import (
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk.config import HandlerRole, Priority, TicketStatus
from helpdesk.core import RepositoryException
from helpdesk.triage.application import HandlerFilter, IHandlerStore, ITicketStore
from helpdesk.triage.domain import Handler, Ticket
from helpdesk.triage.infrastructure.models import HandlerModel, TicketModel

UPDATABLE_TICKET_FIELDS = frozenset({
    "status", "priority", "summary", "notes", "required_skills", "assignee_id",
})


def _store_error(operation: str, error: Exception) -> RepositoryException:
    """Translate a driver error; connection-level failures are retryable."""
    transient = (
        isinstance(error, (OperationalError, InterfaceError, PoolTimeoutError, OSError))
        or getattr(error, "connection_invalidated", False)
    )
    return RepositoryException(
        f"Record store {operation} failed: {error}",
        {"operation": operation, "error_type": type(error).__name__},
        retryable=transient
    )


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, set, frozenset)):
        return sorted(value)
    return value


def _ticket_from_model(model: TicketModel) -> Ticket:
    return Ticket(
        id=model.id,
        title=model.title,
        description=model.description,
        created_by=model.created_by,
        status=TicketStatus(model.status),
        priority=Priority(model.priority),
        summary=model.summary,
        notes=model.notes,
        required_skills=tuple(model.required_skills or ()),
        assignee_id=model.assignee_id,
        created_at=model.created_at,
    )


def _handler_from_model(model: HandlerModel) -> Handler:
    return Handler(
        id=model.id,
        email=model.email,
        role=HandlerRole(model.role),
        skills=frozenset(model.skills or ()),
        created_at=model.created_at,
    )


class SQLAlchemyTicketStore(ITicketStore):
    """SQLAlchemy implementation for tickets."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def find_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""
        try:
            async with self._session_maker() as session:
                model = await session.get(TicketModel, ticket_id)
                return _ticket_from_model(model) if model else None
        except (SQLAlchemyError, OSError) as e:
            raise _store_error("find_by_id", e) from e

    async def update_by_id(self, ticket_id: str, fields: Mapping[str, Any]) -> bool:
        """Overwrite fields of one ticket. False when the ticket does not exist."""
        unknown = set(fields) - UPDATABLE_TICKET_FIELDS
        if unknown:
            raise ValueError(f"Cannot update ticket fields: {sorted(unknown)}")

        values = {key: _column_value(value) for key, value in fields.items()}

        stmt = update(TicketModel).where(TicketModel.id == ticket_id).values(**values)
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                return result.rowcount > 0
        except (SQLAlchemyError, OSError) as e:
            raise _store_error("update_by_id", e) from e

    async def create(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket."""
        model = TicketModel(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            created_by=ticket.created_by,
            status=ticket.status.value,
            priority=ticket.priority.value,
            summary=ticket.summary,
            notes=ticket.notes,
            required_skills=list(ticket.required_skills),
            assignee_id=ticket.assignee_id,
            created_at=ticket.created_at,
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    session.add(model)
                return _ticket_from_model(model)
        except (SQLAlchemyError, OSError) as e:
            raise _store_error("create", e) from e

    async def find_stale(
        self,
        status: TicketStatus,
        created_before: datetime,
        limit: int = 100
    ) -> List[Ticket]:
        """Tickets in ``status`` created before the cutoff, oldest first."""
        stmt = (
            select(TicketModel)
            .where(TicketModel.status == status.value)
            .where(TicketModel.created_at < created_before)
            .order_by(TicketModel.created_at, TicketModel.id)
            .limit(limit)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return [_ticket_from_model(m) for m in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            raise _store_error("find_stale", e) from e


class SQLAlchemyHandlerStore(IHandlerStore):
    """SQLAlchemy implementation for handlers."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def find_one(self, handler_filter: HandlerFilter) -> Optional[Handler]:
        """
        First handler matching the filter, ordered by ``created_at`` then ``id``.

        Skill overlap is checked in Python so the same rule applies on every
        backend (JSON array operators differ between PostgreSQL and SQLite).
        """
        stmt = (
            select(HandlerModel)
            .where(HandlerModel.role == handler_filter.role.value)
            .order_by(HandlerModel.created_at, HandlerModel.id)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                models = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise _store_error("find_one", e) from e

        for model in models:
            handler = _handler_from_model(model)
            if handler_filter.matches(handler):
                return handler
        return None

    async def find_by_email(self, email: str) -> Optional[Handler]:
        stmt = select(HandlerModel).where(HandlerModel.email == email)
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise _store_error("find_by_email", e) from e

        return _handler_from_model(model) if model else None

    async def add(self, handler: Handler) -> Handler:
        """Insert a handler."""
        model = HandlerModel(
            id=handler.id,
            email=handler.email,
            role=handler.role.value,
            skills=sorted(handler.skills),
            created_at=handler.created_at,
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    session.add(model)
                return _handler_from_model(model)
        except (SQLAlchemyError, OSError) as e:
            raise _store_error("add", e) from e
