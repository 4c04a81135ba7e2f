"""Events published after a complaint has been stored."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field

from complaints.models.base import utc_now
from complaints.models.complaint import ComplaintRecord

COMPLAINT_PROCESSED = "ComplaintProcessed"


class ComplaintProcessedEvent(PydanticBaseModel):
    """Announces that a complaint has been persisted.

    May be published more than once for the same complaint when a
    publish fails after the record was stored.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    complaint_id: str = Field(..., alias="ComplaintId", min_length=1)
    customer_email: str = Field(..., alias="CustomerEmail", min_length=1)
    complaint_type: str = Field(..., alias="ComplaintType")
    processed_at: datetime = Field(default_factory=utc_now, alias="ProcessedAt")

    @classmethod
    def from_record(cls, record: ComplaintRecord) -> "ComplaintProcessedEvent":
        """Build the event for a stored record."""
        return cls(
            complaint_id=record.id,
            customer_email=record.customer_email,
            complaint_type=record.complaint_type,
        )

    def to_message_body(self) -> str:
        """Serialize to the topic wire format."""
        return self.model_dump_json(by_alias=True)

    def message_attributes(self) -> dict[str, str]:
        """Attributes attached to the published message for subscription filters."""
        return {
            "event_type": COMPLAINT_PROCESSED,
            "complaint_type": self.complaint_type,
        }


class TopicEnvelope(PydanticBaseModel):
    """SNS notification envelope as delivered to a subscribed queue.

    Only ``Message`` is required; it carries the published body as a string.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message: str = Field(..., alias="Message")
    type: str | None = Field(None, alias="Type")
    message_id: str | None = Field(None, alias="MessageId")
    topic_arn: str | None = Field(None, alias="TopicArn")
    message_attributes: dict[str, Any] = Field(default_factory=dict, alias="MessageAttributes")
