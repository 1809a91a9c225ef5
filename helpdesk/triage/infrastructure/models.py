"""
Triage Infrastructure Models
=============================

SQLAlchemy ORM models for the triage module.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import Priority, TicketStatus
from helpdesk.infrastructure.database import Base


def _uuid_str() -> str:
    return str(uuid4())


class HandlerModel(Base):
    """
    Database model for Handler entity.

    Users with the admin or moderator role receive tickets; plain users are
    stored in the same table but never assigned.
    """
    __tablename__ = "handlers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), index=True, nullable=False)
    skills: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Status, priority and the triage fields are written by the triage
    workflow; title and description are immutable after intake.
    """
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)

    # Ticket content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Triage results
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True, default=TicketStatus.PROCESSING.value
    )
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default=Priority.MEDIUM.value)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    required_skills: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    assignee_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("handlers.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
