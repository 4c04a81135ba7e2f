"""Customer notification senders.

The notification worker hands each processed event to a sender. Two are
provided: one that only logs the customer-facing message (the default,
used in development and tests) and one that emails it through Amazon SES.
"""

import asyncio
import os
from typing import Any, Protocol

import boto3
import structlog

from complaints.config import Settings
from complaints.models.events import ComplaintProcessedEvent
from complaints.utils.exceptions import ConfigurationError

logger = structlog.get_logger()

NOTIFICATION_SUBJECT = "Complaint received"


def build_message(event: ComplaintProcessedEvent) -> str:
    """Customer-facing text for a processed complaint."""
    return (
        f"Your complaint about '{event.complaint_type}' was received "
        f"and is being processed."
    )


class NotificationSender(Protocol):
    """Performs the notification action for one event."""

    async def send(self, event: ComplaintProcessedEvent) -> None:
        ...


class LogNotificationSender:
    """Logs the notification instead of delivering it.

    Waits ``delay`` seconds per send to stand in for a provider call.
    """

    def __init__(self, delay: float = 0.1):
        self.delay = delay
        self.logger = logger.bind(service="log_notification_sender")

    async def send(self, event: ComplaintProcessedEvent) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)

        self.logger.info(
            "Notification sent",
            complaint_id=event.complaint_id,
            to=event.customer_email,
            message=build_message(event),
        )


class SesNotificationSender:
    """Emails the notification through Amazon SES.

    SES errors propagate unchanged so the notification policy can tell
    throttling from permanent rejections.
    """

    def __init__(
        self,
        from_email: str,
        region_name: str | None = None,
        client: Any = None,
    ):
        """Initialize the SES sender.

        Args:
            from_email: Verified sender address.
            region_name: AWS region for SES. Falls back to AWS_REGION env var.
            client: Optional pre-built boto3 SES client.
        """
        self.from_email = from_email
        self.region_name = region_name or os.environ.get("AWS_REGION")
        self._client = client
        self.logger = logger.bind(service="ses_notification_sender")

    @property
    def client(self):
        """Get SES client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("ses", region_name=self.region_name)
        return self._client

    async def send(self, event: ComplaintProcessedEvent) -> None:
        message_id = await asyncio.to_thread(self._send_email, event)

        self.logger.info(
            "Notification email sent",
            complaint_id=event.complaint_id,
            message_id=message_id,
        )

    def _send_email(self, event: ComplaintProcessedEvent) -> str:
        response = self.client.send_email(
            Source=self.from_email,
            Destination={"ToAddresses": [event.customer_email]},
            Message={
                "Subject": {"Data": NOTIFICATION_SUBJECT, "Charset": "UTF-8"},
                "Body": {"Text": {"Data": build_message(event), "Charset": "UTF-8"}},
            },
            Tags=[{"Name": "complaint_type", "Value": _tag_value(event.complaint_type)}],
        )
        return response["MessageId"]


def _tag_value(value: str) -> str:
    # SES tag values allow only alphanumerics, '_', '-', '.' and '@'
    cleaned = "".join(c if c.isalnum() or c in "_-.@" else "_" for c in value)
    return cleaned[:256] or "unknown"


def get_notification_sender(settings: Settings) -> NotificationSender:
    """Build the sender selected by NOTIFICATION_CHANNEL.

    Args:
        settings: Pipeline settings.

    Returns:
        Configured sender.

    Raises:
        ConfigurationError: If the SES channel is selected without a sender address.
    """
    if settings.notification_channel == "ses":
        if not settings.ses_from_email:
            raise ConfigurationError("SES_FROM_EMAIL is required when NOTIFICATION_CHANNEL=ses")
        return SesNotificationSender(settings.ses_from_email, region_name=settings.region_name)

    return LogNotificationSender()
