"""Queue and topic clients."""

from complaints.messaging.sns_client import TopicClient
from complaints.messaging.sqs_client import QueueClient, QueueMessage

__all__ = [
    "QueueClient",
    "QueueMessage",
    "TopicClient",
]
