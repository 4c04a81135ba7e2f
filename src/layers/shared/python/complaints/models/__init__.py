"""Pydantic models for the complaints pipeline."""

from complaints.models.base import BaseModel, generate_ulid, utc_now
from complaints.models.complaint import ComplaintRecord, ComplaintStatus, ComplaintSubmission
from complaints.models.decoding import (
    DecodeFailure,
    DecodeResult,
    decode_envelope,
    decode_processed_event,
    decode_submission,
    validation_errors,
)
from complaints.models.events import COMPLAINT_PROCESSED, ComplaintProcessedEvent, TopicEnvelope

__all__ = [
    # Base
    "BaseModel",
    "generate_ulid",
    "utc_now",
    # Complaint
    "ComplaintRecord",
    "ComplaintStatus",
    "ComplaintSubmission",
    # Events
    "COMPLAINT_PROCESSED",
    "ComplaintProcessedEvent",
    "TopicEnvelope",
    # Decoding
    "DecodeFailure",
    "DecodeResult",
    "decode_envelope",
    "decode_processed_event",
    "decode_submission",
    "validation_errors",
]
