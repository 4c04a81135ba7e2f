"""Decoding of queue payloads into models.

Decoding never raises. Each function returns a ``DecodeResult`` that is
either ``ok`` with a value or carries a ``DecodeFailure`` kind and a
reason, so workers branch on a closed set of outcomes.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from pydantic import ValidationError as PydanticValidationError

from complaints.models.complaint import ComplaintSubmission
from complaints.models.events import ComplaintProcessedEvent, TopicEnvelope

T = TypeVar("T")


class DecodeFailure(str, Enum):
    """Why a payload could not be decoded."""

    EMPTY = "empty"  # Missing or whitespace-only body
    MALFORMED = "malformed"  # Not valid JSON, or not a JSON object
    INVALID = "invalid"  # Valid JSON that fails model validation


@dataclass
class DecodeResult(Generic[T]):
    """Outcome of decoding a payload."""

    value: T | None = None
    failure: DecodeFailure | None = None
    reason: str | None = None
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failure is None


def validation_errors(exc: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic ValidationError into field/message pairs.

    Args:
        exc: The validation error.

    Returns:
        List of dicts with ``field`` and ``message`` keys.
    """
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "body"
        errors.append({"field": loc, "message": err.get("msg", "invalid value")})
    return errors


def _decode(body: str | None, model: type[T]) -> DecodeResult[T]:
    if body is None or not body.strip():
        return DecodeResult(failure=DecodeFailure.EMPTY, reason="empty body")

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        return DecodeResult(failure=DecodeFailure.MALFORMED, reason=f"invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return DecodeResult(
            failure=DecodeFailure.MALFORMED,
            reason=f"expected a JSON object, got {type(data).__name__}",
        )

    try:
        return DecodeResult(value=model.model_validate(data))
    except PydanticValidationError as e:
        errors = validation_errors(e)
        return DecodeResult(
            failure=DecodeFailure.INVALID,
            reason="; ".join(f"{err['field']}: {err['message']}" for err in errors),
            errors=errors,
        )


def decode_submission(body: str | None) -> DecodeResult[ComplaintSubmission]:
    """Decode and validate a complaints queue message body."""
    return _decode(body, ComplaintSubmission)


def decode_envelope(body: str | None) -> DecodeResult[TopicEnvelope]:
    """Decode the SNS envelope of a notifications queue message.

    An envelope whose ``Message`` is blank is reported as EMPTY.
    """
    result = _decode(body, TopicEnvelope)
    if result.ok and not result.value.message.strip():
        return DecodeResult(failure=DecodeFailure.EMPTY, reason="envelope Message is empty")
    return result


def decode_processed_event(message: str | None) -> DecodeResult[ComplaintProcessedEvent]:
    """Decode the event carried inside an envelope."""
    return _decode(message, ComplaintProcessedEvent)
