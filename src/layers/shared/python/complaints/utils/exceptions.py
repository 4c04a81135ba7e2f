"""Custom exceptions for the complaints pipeline."""

from typing import Any


class ComplaintsError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize ComplaintsError.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code when surfaced through the API.
            error_code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(ComplaintsError):
    """Raised when a payload fails validation."""

    def __init__(self, errors: list[dict[str, str]]):
        self.errors = errors
        super().__init__(
            "Validation failed",
            status_code=400,
            error_code="VALIDATION_ERROR",
            details={"errors": errors},
        )


class ConflictError(ComplaintsError):
    """Raised on a conditional write conflict."""

    def __init__(self, message: str = "Resource conflict"):
        super().__init__(message, status_code=409, error_code="CONFLICT")


class ConfigurationError(ComplaintsError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str):
        super().__init__(message, status_code=500, error_code="CONFIGURATION_ERROR")


class EnqueueError(ComplaintsError):
    """Raised when a message could not be sent to the queue."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=500, error_code="ENQUEUE_FAILED", details=details)
