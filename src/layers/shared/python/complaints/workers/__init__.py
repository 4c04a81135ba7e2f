"""Queue workers for the complaints pipeline."""

from complaints.workers.base import HandlingResult, PollingWorker, WorkerMetrics
from complaints.workers.notifier import NotificationWorker
from complaints.workers.outcomes import MessageOutcome
from complaints.workers.processor import ComplaintProcessingWorker

__all__ = [
    "ComplaintProcessingWorker",
    "HandlingResult",
    "MessageOutcome",
    "NotificationWorker",
    "PollingWorker",
    "WorkerMetrics",
]
