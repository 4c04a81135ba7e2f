"""Service classes for ingestion and notification."""

from complaints.services.ingestion_service import ComplaintIngestionService
from complaints.services.notification_service import (
    LogNotificationSender,
    NotificationSender,
    SesNotificationSender,
    build_message,
    get_notification_sender,
)

__all__ = [
    "ComplaintIngestionService",
    "LogNotificationSender",
    "NotificationSender",
    "SesNotificationSender",
    "build_message",
    "get_notification_sender",
]
