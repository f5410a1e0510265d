"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Ambiguous and not-found
resolutions are outcomes, not exceptions, and have no class here.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class ValidationException(ApplicationException):
    """Exception for validation errors, optionally tied to one draft field."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.field = field
        super().__init__(message, details or ({"field": field} if field else None))


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
    """Exception for missing or invalid configuration (no credentials)."""


class DirectoryNotReadyException(ApplicationException):
    """Raised when the directory cache is queried before it finished loading."""

    def __init__(self, message: str = "Organizations and contacts are still loading. Please wait and try again."):
        super().__init__(message)


class InvalidTransitionException(DomainException):
    """Exception when a review session operation is not allowed in its state."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(
            f"Cannot {operation} while session is {state}",
            {"operation": operation, "state": state}
        )


class SessionBusyException(DomainException):
    """Exception when a call is attempted while the previous one is in flight."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"A {operation} request is already in progress",
            {"operation": operation}
        )


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    TRANSPORT = "transport"
    SHAPE = "shape"

    kind = TRANSPORT

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None,
        kind: Optional[str] = None
    ):
        self.service_name = service_name
        if kind is not None:
            self.kind = kind
        super().__init__(f"{service_name}: {message}", details)


class TransportException(ExternalServiceException):
    """Service unreachable or answered with an error status."""

    kind = ExternalServiceException.TRANSPORT


class ShapeMismatchException(ExternalServiceException):
    """Service answered, but the payload lacks the expected fields."""

    kind = ExternalServiceException.SHAPE


class LLMException(TransportException):
    """Exception for completion API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Completion Service", message, details)


class TicketingException(TransportException):
    """Exception for Syncro API transport failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Syncro", message, details)


class ExtractionException(ExternalServiceException):
    """Description could not be turned into an extracted record."""

    def __init__(self, message: str, kind: str, details: Optional[dict] = None):
        super().__init__("Extraction", message, details, kind=kind)


class SubmissionException(ExternalServiceException):
    """Ticket creation failed; details carry the raw service response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        kind: str = ExternalServiceException.SHAPE
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(
            "Ticket Submission",
            message,
            {"status_code": status_code, "response_body": response_body},
            kind=kind
        )
