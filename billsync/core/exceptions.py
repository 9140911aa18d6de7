"""Shared exceptions module."""

from typing import Optional

from pydantic import ValidationError


class BillsyncException(Exception):
    """Base exception for billsync services."""

    pass


class NotFoundException(BillsyncException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class InvalidStateError(BillsyncException):
    """Exception raised when an object is in an invalid state.

    Raised for rejected subscription transitions and for orchestrator
    preconditions that do not hold (e.g. changing to the plan already active).
    """

    def __init__(self, message: Optional[str] = "Object is in an invalid state"):
        """Create a new InvalidStateError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class DuplicateRecordError(BillsyncException):
    """Raised when an insert collides with a uniqueness constraint."""

    def __init__(self, message: Optional[str] = "Record already exists"):
        """Create a new DuplicateRecordError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class WebhookUnauthorizedException(BillsyncException):
    """Raised when a webhook signature is missing or does not match."""

    def __init__(self, message: Optional[str] = "Invalid webhook signature"):
        """Create a new WebhookUnauthorizedException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class WebhookMisconfiguredException(BillsyncException):
    """Raised when no webhook secret is configured.

    This is an operator error, not a forged request.
    """

    def __init__(self, message: Optional[str] = "Webhook secret is not configured"):
        """Create a new WebhookMisconfiguredException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class MalformedPayloadException(BillsyncException):
    """Raised when a correctly signed webhook body cannot be decoded."""

    def __init__(self, message: Optional[str] = "Malformed webhook payload"):
        """Create a new MalformedPayloadException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class ExternalServiceError(Exception):
    """Exception raised when an external service fails."""

    def __init__(self, service_name: str, message: Optional[str] = "External service failed"):
        """Create a new ExternalServiceError instance.

        Args:
        ----
            service_name (str): The name of the external service.
            message (str, optional): The error message. Has default message.

        """
        self.service_name = service_name
        self.message = message
        super().__init__(f"{service_name}: {message}")


def unpack_validation_error(exc: ValidationError) -> dict:
    """Unpack a Pydantic validation error into a dictionary.

    Args:
    ----
        exc (ValidationError): The Pydantic validation error.

    Returns:
    -------
        dict: The dictionary representation of the validation error.

    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        error_messages.append({field: error["msg"]})

    return {"errors": error_messages}
