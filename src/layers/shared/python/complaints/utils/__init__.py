"""Utility functions and helpers."""

from complaints.utils.exceptions import (
    ComplaintsError,
    ConfigurationError,
    ConflictError,
    EnqueueError,
    ValidationError,
)
from complaints.utils.responses import accepted, error, success, validation_error

__all__ = [
    # Response helpers
    "accepted",
    "error",
    "success",
    "validation_error",
    # Exceptions
    "ComplaintsError",
    "ConfigurationError",
    "ConflictError",
    "EnqueueError",
    "ValidationError",
]
