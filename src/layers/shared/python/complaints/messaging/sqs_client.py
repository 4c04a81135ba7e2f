"""SQS queue client.

Thin wrapper over the boto3 SQS client covering the three operations
the pipeline needs: long-poll receive, delete by receipt handle, send.
Errors from boto3 propagate unchanged so resilience policies can
classify them.
"""

import os
from dataclasses import dataclass, field
from typing import Any

import boto3
import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class QueueMessage:
    """A message received from a queue."""

    message_id: str
    body: str
    receipt_handle: str
    attributes: dict[str, str] = field(default_factory=dict)
    message_attributes: dict[str, str] = field(default_factory=dict)

    @property
    def receive_count(self) -> int:
        """Number of times SQS has delivered this message."""
        try:
            return int(self.attributes.get("ApproximateReceiveCount", "1"))
        except ValueError:
            return 1

    @property
    def deduplication_id(self) -> str:
        """Identity that stays the same across redeliveries.

        FIFO queues carry an explicit MessageDeduplicationId; standard
        queues keep the MessageId stable across redeliveries.
        """
        return self.attributes.get("MessageDeduplicationId") or self.message_id

    @classmethod
    def from_sqs(cls, raw: dict[str, Any]) -> "QueueMessage":
        """Build from an entry of a ReceiveMessage response."""
        return cls(
            message_id=raw.get("MessageId", ""),
            body=raw.get("Body", ""),
            receipt_handle=raw.get("ReceiptHandle", ""),
            attributes=dict(raw.get("Attributes", {})),
            message_attributes={
                name: attr.get("StringValue", "")
                for name, attr in raw.get("MessageAttributes", {}).items()
                if isinstance(attr, dict)
            },
        )


class QueueClient:
    """Client for a single SQS queue.

    Example:
        queue = QueueClient(queue_url)
        for message in queue.receive(max_messages=5, wait_seconds=20):
            ...
            queue.delete(message.receipt_handle)
    """

    def __init__(
        self,
        queue_url: str,
        region_name: str | None = None,
        client: Any = None,
    ):
        """Initialize the queue client.

        Args:
            queue_url: URL of the queue.
            region_name: AWS region. Falls back to AWS_REGION env var.
            client: Optional pre-built boto3 SQS client.
        """
        self.queue_url = queue_url
        self.region_name = region_name or os.environ.get("AWS_REGION")
        self._client = client
        self.logger = logger.bind(service="queue_client", queue_url=queue_url)

    @property
    def client(self):
        """Get SQS client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("sqs", region_name=self.region_name)
        return self._client

    def receive(
        self,
        max_messages: int = 1,
        wait_seconds: int = 20,
        visibility_timeout: int | None = None,
    ) -> list[QueueMessage]:
        """Receive a batch of messages using long polling.

        Args:
            max_messages: Maximum messages to return (1-10).
            wait_seconds: Long-poll wait time (0-20).
            visibility_timeout: Optional override of the queue's visibility timeout.

        Returns:
            Received messages, possibly empty.
        """
        kwargs: dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "MaxNumberOfMessages": max(1, min(max_messages, 10)),
            "WaitTimeSeconds": max(0, min(wait_seconds, 20)),
            "AttributeNames": ["All"],
            "MessageAttributeNames": ["All"],
        }
        if visibility_timeout is not None:
            kwargs["VisibilityTimeout"] = visibility_timeout

        response = self.client.receive_message(**kwargs)
        messages = [QueueMessage.from_sqs(raw) for raw in response.get("Messages", [])]

        self.logger.debug("Received messages", count=len(messages))

        return messages

    def delete(self, receipt_handle: str) -> None:
        """Delete a message by its receipt handle.

        Args:
            receipt_handle: Handle from the receive that returned the message.
        """
        self.client.delete_message(
            QueueUrl=self.queue_url,
            ReceiptHandle=receipt_handle,
        )

    def send(
        self,
        body: str,
        attributes: dict[str, str] | None = None,
        delay_seconds: int = 0,
    ) -> str:
        """Send a message.

        Args:
            body: Message body.
            attributes: Optional string message attributes.
            delay_seconds: Delivery delay (0-900).

        Returns:
            The SQS MessageId.
        """
        kwargs: dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "MessageBody": body,
        }
        if attributes:
            kwargs["MessageAttributes"] = {
                name: {"DataType": "String", "StringValue": value}
                for name, value in attributes.items()
            }
        if delay_seconds:
            kwargs["DelaySeconds"] = delay_seconds

        response = self.client.send_message(**kwargs)

        self.logger.debug("Message sent", message_id=response["MessageId"])

        return response["MessageId"]
