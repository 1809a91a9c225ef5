"""
Ticket Status State Machine
===========================

    PROCESSING -> {IN_PROGRESS, OPEN} -> {RESOLVED, CLOSED}
    any non-terminal status -> ERROR

Statuses are ranked; a move may stay level or go up, never down, except into
ERROR. RESOLVED, CLOSED and ERROR are terminal for the triage workflow.
Re-triage after redelivery may flip IN_PROGRESS and OPEN since they share a
rank.
"""

from typing import Optional

from helpdesk.config import TicketStatus, TERMINAL_STATUSES
from helpdesk.core import InvalidStatusTransition


class TicketStateMachine:
    """Pure transition rules for ticket statuses."""

    RANKS = {
        TicketStatus.PROCESSING: 0,
        TicketStatus.OPEN: 1,
        TicketStatus.IN_PROGRESS: 1,
        TicketStatus.RESOLVED: 2,
        TicketStatus.CLOSED: 2,
    }

    @staticmethod
    def is_terminal(status: TicketStatus) -> bool:
        return status in TERMINAL_STATUSES

    @classmethod
    def can_transition(cls, current: TicketStatus, target: TicketStatus) -> bool:
        if cls.is_terminal(current):
            return False
        if target == TicketStatus.ERROR:
            return True
        return cls.RANKS[target] >= cls.RANKS[current]

    @classmethod
    def ensure(
        cls,
        current: TicketStatus,
        target: TicketStatus,
        ticket_id: Optional[str] = None
    ) -> TicketStatus:
        """
        Validate a transition.

        Returns:
            The target status

        Raises:
            InvalidStatusTransition: If the move is not allowed
        """
        if not cls.can_transition(current, target):
            raise InvalidStatusTransition(current.value, target.value, ticket_id)
        return target

    @staticmethod
    def triage_target(used_fallback: bool) -> TicketStatus:
        """Status after classification: real triage vs. human-only ticket."""
        return TicketStatus.OPEN if used_fallback else TicketStatus.IN_PROGRESS
