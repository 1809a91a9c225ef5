"""
Triage Workflow
===============

Runs the triage steps for one ticket:

    load-ticket -> classify -> normalize -> persist-classification
        -> assign-handler -> persist-assignment -> notify

Steps run strictly in order. Each step is retried on its own when it fails
with a retryable ``ApplicationException``; any other failure moves the ticket
to ERROR and stops the run. Every write is a full overwrite of its fields
keyed by ticket id, so a redelivered event converges on the same record.
The notify step is the exception: a redelivery may send a second message.

This workflow is the only place ticket status changes.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

from helpdesk.config import FallbackMode, Priority, TicketStatus
from helpdesk.core import ApplicationException, ResourceNotFoundException
from helpdesk.shared.infrastructure.logging import get_context_logger, log_latency
from helpdesk.triage.application.dto import TicketCreatedEvent, WorkflowOutcome
from helpdesk.triage.application.services import (
    AssignmentPolicy,
    ITicketStore,
    NotificationDispatcher,
    Sleep,
    TicketClassifier,
)
from helpdesk.triage.domain import (
    ClassificationResult,
    ClassifierFailure,
    FallbackClassifier,
    NormalizedResult,
    Ticket,
    TicketStateMachine,
    normalize,
)


@dataclass(frozen=True)
class StepPolicy:
    """Retry budget for a single workflow step."""
    max_retries: int = 2
    backoff_seconds: float = 0.5

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * 2 ** (attempt - 1)


class StepFailure(Exception):
    """A step gave up. Carries the step name and the original error."""

    def __init__(self, step: str, cause: BaseException, attempts: int):
        self.step = step
        self.cause = cause
        self.attempts = attempts
        super().__init__(f"Step '{step}' failed after {attempts} attempt(s): {cause}")


class TriageWorkflow:
    """
    Workflow engine for ticket triage.

    ``run`` never raises: the outcome reports success, the failing step and
    whether the ERROR status could be recorded.
    """

    def __init__(
        self,
        ticket_store: ITicketStore,
        classifier: TicketClassifier,
        assignment_policy: AssignmentPolicy,
        dispatcher: NotificationDispatcher,
        fallback_classifier: Optional[FallbackClassifier] = None,
        fallback_mode: FallbackMode = FallbackMode.SENTINEL,
        step_policy: Optional[StepPolicy] = None,
        sleep: Sleep = asyncio.sleep
    ):
        self._tickets = ticket_store
        self._classifier = classifier
        self._assignment = assignment_policy
        self._dispatcher = dispatcher
        self._fallback = fallback_classifier or FallbackClassifier()
        self._fallback_mode = fallback_mode
        self._policy = step_policy or StepPolicy()
        self._sleep = sleep

    async def run(self, event: TicketCreatedEvent) -> WorkflowOutcome:
        log = get_context_logger(__name__, ticket_id=event.ticket_id)
        outcome = WorkflowOutcome(ticket_id=event.ticket_id)

        log.info("Triage started")
        try:
            await self._triage(event, outcome, log)
        except StepFailure as failure:
            outcome.success = False
            outcome.failed_step = failure.step
            outcome.error = str(failure.cause)
            log.error(
                "Triage failed",
                extra={
                    "step": failure.step,
                    "attempts": failure.attempts,
                    "error": str(failure.cause),
                    "error_type": type(failure.cause).__name__,
                }
            )
            await self._record_error(event.ticket_id, outcome, log)

        return outcome

    async def _triage(self, event: TicketCreatedEvent, outcome: WorkflowOutcome, log: Any) -> None:
        ticket = await self._step("load-ticket", outcome, log, self._load_ticket, event.ticket_id)

        if TicketStateMachine.is_terminal(ticket.status):
            log.info("Ticket already settled, skipping", extra={"status": ticket.status.value})
            outcome.skipped = True
            outcome.success = True
            outcome.status = ticket.status
            return

        raw = await self._step(
            "classify", outcome, log, self._classifier.classify, event.title, event.description
        )
        result, used_fallback = await self._step(
            "normalize", outcome, log, self._normalize, event, raw
        )

        status = TicketStateMachine.triage_target(used_fallback)
        await self._step(
            "persist-classification", outcome, log,
            self._persist_classification, ticket, status, result
        )
        outcome.status = status
        outcome.priority = result.priority
        outcome.used_fallback = used_fallback

        handler = await self._step("assign-handler", outcome, log, self._assignment.assign, result.skills)
        assignee_id = handler.id if handler else None
        await self._step(
            "persist-assignment", outcome, log,
            self._overwrite, ticket.id, {"assignee_id": assignee_id}
        )
        outcome.assignee_id = assignee_id

        if handler is None:
            log.warning("No handler available, ticket left unassigned")
        else:
            outcome.notified = await self._dispatcher.notify_assignment(
                handler, ticket.id, event.title, result
            )
            outcome.steps_completed.append("notify")

        outcome.success = True
        log.info(
            "Triage completed",
            extra={
                "status": status.value,
                "priority": result.priority.value,
                "assignee_id": assignee_id,
                "used_fallback": used_fallback,
            }
        )

    async def _step(
        self,
        name: str,
        outcome: WorkflowOutcome,
        log: Any,
        func: Callable[..., Awaitable[Any]],
        *args: Any
    ) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                with log_latency(log, name, step=name, attempt=attempt):
                    result = await func(*args)
            except ApplicationException as exc:
                if not exc.retryable or attempt > self._policy.max_retries:
                    raise StepFailure(name, exc, attempt) from exc
                delay = self._policy.delay(attempt)
                log.warning(
                    "Step failed, retrying",
                    extra={"step": name, "attempt": attempt, "delay_seconds": delay, "error": str(exc)}
                )
                await self._sleep(delay)
                continue
            except Exception as exc:
                raise StepFailure(name, exc, attempt) from exc

            outcome.steps_completed.append(name)
            return result

    # ========== Step bodies ==========

    async def _load_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._tickets.find_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def _normalize(
        self,
        event: TicketCreatedEvent,
        raw: Union[ClassificationResult, ClassifierFailure, None]
    ) -> Tuple[NormalizedResult, bool]:
        result, used_fallback = normalize(raw)
        if not isinstance(raw, ClassificationResult) and self._fallback_mode == FallbackMode.HEURISTIC:
            result = self._fallback.classify(event.title, event.description)
        return result, used_fallback

    async def _persist_classification(
        self,
        ticket: Ticket,
        status: TicketStatus,
        result: NormalizedResult
    ) -> None:
        TicketStateMachine.ensure(ticket.status, status, ticket.id)
        await self._overwrite(ticket.id, {
            "status": status,
            "priority": result.priority,
            "summary": result.summary,
            "notes": result.notes,
            "required_skills": list(result.skills),
        })

    async def _overwrite(self, ticket_id: str, fields: dict) -> None:
        if not await self._tickets.update_by_id(ticket_id, fields):
            raise ResourceNotFoundException("Ticket", ticket_id)

    async def _record_error(self, ticket_id: str, outcome: WorkflowOutcome, log: Any) -> None:
        """Best-effort move to ERROR with priority reset to medium; a failure here is logged, not raised."""
        fields = {"status": TicketStatus.ERROR, "priority": Priority.MEDIUM}
        try:
            recorded = await self._tickets.update_by_id(ticket_id, fields)
        except Exception as exc:
            log.error("Failed to set ticket status to error", extra={"error": str(exc)})
            return

        if recorded:
            outcome.status = TicketStatus.ERROR
            outcome.error_recorded = True
        else:
            log.warning("Ticket missing, error status not recorded")
