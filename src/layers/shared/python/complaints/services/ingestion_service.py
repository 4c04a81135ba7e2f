"""Accepts complaint submissions onto the complaints queue."""

import asyncio

import structlog

from complaints.execution.policies import ResiliencePolicy
from complaints.messaging.sqs_client import QueueClient
from complaints.models.complaint import ComplaintSubmission
from complaints.utils.exceptions import EnqueueError

logger = structlog.get_logger()


class ComplaintIngestionService:
    """Enqueues validated submissions without further processing.

    A submission counts as accepted only once the queue has returned a
    message id for it.
    """

    def __init__(self, queue: QueueClient, policy: ResiliencePolicy):
        """Initialize the service.

        Args:
            queue: Client for the complaints queue.
            policy: Resilience policy applied to the send.
        """
        self.queue = queue
        self.policy = policy
        self.logger = logger.bind(service="complaint_ingestion")

    async def submit(self, submission: ComplaintSubmission, body: str | None = None) -> str:
        """Send a submission to the queue.

        Args:
            submission: Validated submission.
            body: Request body exactly as the client sent it. It is
                enqueued unchanged; without it the submission is serialized.

        Returns:
            The queue message id.

        Raises:
            EnqueueError: If the send failed after retries.
        """
        if body is None:
            body = submission.to_message_body()

        result = await self.policy.run(
            lambda: asyncio.to_thread(
                self.queue.send,
                body,
                {"complaint_type": submission.complaint_type},
            ),
            context={"operation": "enqueue_complaint"},
        )

        if not result.success:
            self.logger.error(
                "Failed to enqueue complaint",
                error=str(result.error),
                failure=result.failure.value if result.failure else None,
                attempts=result.attempts,
            )
            raise EnqueueError(
                "Failed to enqueue complaint",
                details={"failure": result.failure.value if result.failure else None},
            ) from result.error

        self.logger.info(
            "Complaint enqueued",
            message_id=result.value,
            complaint_type=submission.complaint_type,
        )

        return result.value
