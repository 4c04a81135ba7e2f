"""Complaint submission and stored complaint record models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, EmailStr, Field, field_validator

from complaints.models.base import BaseModel, utc_now


class ComplaintStatus(str, Enum):
    """Lifecycle status of a stored complaint."""

    RECEIVED = "Received"
    PROCESSING = "Processing"
    CLOSED = "Closed"


class ComplaintSubmission(PydanticBaseModel):
    """Complaint as submitted by a customer.

    This is the body of a message on the complaints queue. The wire
    format uses PascalCase names; snake_case is accepted on input.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    customer_name: str = Field(..., alias="CustomerName")
    customer_email: EmailStr = Field(..., alias="CustomerEmail")
    complaint_type: str = Field(
        ...,
        alias="ComplaintType",
        description="Free-form category, e.g. 'Billing' or 'Defective product'",
    )
    description: str = Field(..., alias="Description", min_length=10, max_length=1000)

    @field_validator("customer_name", "complaint_type", "description")
    @classmethod
    def require_non_blank(cls, v: str) -> str:
        """Reject values that are only whitespace."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    def to_message_body(self) -> str:
        """Serialize to the queue wire format."""
        return self.model_dump_json(by_alias=True)


class ComplaintRecord(BaseModel):
    """Stored complaint.

    Key Pattern:
        PK: COMPLAINT#{idempotency_key}
        SK: RECORD
        GSI1PK: COMPLAINT#{id}
        GSI1SK: RECORD

    The partition key is derived from the queue message identity, not from
    the generated id, so a redelivered message maps onto the same item.
    """

    idempotency_key: str = Field(..., description="Stable key derived from the source message")
    customer_name: str
    customer_email: str
    complaint_type: str
    description: str
    received_at: datetime = Field(default_factory=utc_now)
    status: ComplaintStatus = ComplaintStatus.RECEIVED
    source_message_id: str | None = None

    @classmethod
    def from_submission(
        cls,
        submission: ComplaintSubmission,
        idempotency_key: str,
        source_message_id: str | None = None,
    ) -> "ComplaintRecord":
        """Build a new record for a submission taken off the queue."""
        return cls(
            idempotency_key=idempotency_key,
            customer_name=submission.customer_name,
            customer_email=str(submission.customer_email),
            complaint_type=submission.complaint_type,
            description=submission.description,
            source_message_id=source_message_id,
        )

    def get_pk(self) -> str:
        """Get partition key: COMPLAINT#{idempotency_key}."""
        return f"COMPLAINT#{self.idempotency_key}"

    def get_sk(self) -> str:
        """Get sort key: RECORD."""
        return "RECORD"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for lookup by record id."""
        return {
            "GSI1PK": f"COMPLAINT#{self.id}",
            "GSI1SK": "RECORD",
        }
