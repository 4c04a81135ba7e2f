"""SNS topic client."""

import os
from typing import Any

import boto3
import structlog

logger = structlog.get_logger()


class TopicClient:
    """Publishes messages to a single SNS topic.

    Subscribers receive each publish wrapped in an SNS envelope whose
    ``Message`` field carries the body as a string.
    """

    def __init__(
        self,
        topic_arn: str,
        region_name: str | None = None,
        client: Any = None,
    ):
        """Initialize the topic client.

        Args:
            topic_arn: ARN of the topic.
            region_name: AWS region. Falls back to AWS_REGION env var.
            client: Optional pre-built boto3 SNS client.
        """
        self.topic_arn = topic_arn
        self.region_name = region_name or os.environ.get("AWS_REGION")
        self._client = client
        self.logger = logger.bind(service="topic_client", topic_arn=topic_arn)

    @property
    def client(self):
        """Get SNS client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("sns", region_name=self.region_name)
        return self._client

    def publish(self, body: str, attributes: dict[str, str] | None = None) -> str:
        """Publish a message.

        Args:
            body: Message body.
            attributes: Optional string message attributes.

        Returns:
            The SNS MessageId.
        """
        kwargs: dict[str, Any] = {
            "TopicArn": self.topic_arn,
            "Message": body,
        }
        if attributes:
            kwargs["MessageAttributes"] = {
                name: {"DataType": "String", "StringValue": value}
                for name, value in attributes.items()
            }

        response = self.client.publish(**kwargs)

        self.logger.debug("Message published", message_id=response["MessageId"])

        return response["MessageId"]
