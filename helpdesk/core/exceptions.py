"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Every exception carries a ``retryable`` flag. The triage workflow retries a
step only when the raised exception is retryable; everything else moves the
ticket straight to the error state.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        retryable: Optional[bool] = None
    ):
        self.message = message
        self.details = details or {}
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class InvalidStatusTransition(DomainException):
    """Raised when a ticket status change would break the lifecycle."""

    def __init__(self, current: str, target: str, ticket_id: Optional[str] = None):
        self.current = current
        self.target = target
        self.ticket_id = ticket_id
        super().__init__(
            f"Cannot move ticket from {current} to {target}",
            {"ticket_id": ticket_id, "current": current, "target": target}
        )


class RepositoryException(ApplicationException):
    """
    Record store failure.

    Retryable by default: connection drops, pool timeouts and similar
    infrastructure hiccups. Pass ``retryable=False`` for integrity errors.
    """

    retryable = True


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    retryable = True

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None,
        retryable: Optional[bool] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details, retryable)


class LLMException(ExternalServiceException):
    """
    Exception for LLM API failures.

    ``transient`` marks timeouts, connection errors, rate limits and 5xx
    replies, which the classifier retries with backoff.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        transient: bool = True
    ):
        self.transient = transient
        super().__init__("LLM Service", message, details, retryable=transient)


class NotificationException(ExternalServiceException):
    """Exception for notification delivery failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification Service", message, details)
