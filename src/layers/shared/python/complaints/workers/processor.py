"""Complaint processing worker.

Consumes the complaints queue. For each message:
    decode -> persist (database policy) -> publish event (topic policy)

The message is deleted only when both effects succeeded, or when its
payload is poison. Persistence is keyed on the message's idempotency
key, so a message redelivered after a failed publish maps onto the
record already stored and re-publishes the same complaint id.
"""

import asyncio

from complaints.dlq.sink import DeadLetterSink
from complaints.execution.policies import ResiliencePolicy
from complaints.messaging.sns_client import TopicClient
from complaints.messaging.sqs_client import QueueClient, QueueMessage
from complaints.models.complaint import ComplaintRecord
from complaints.models.decoding import decode_submission
from complaints.models.events import ComplaintProcessedEvent
from complaints.repositories.complaint import ComplaintRepository
from complaints.workers.base import HandlingResult, PollingWorker
from complaints.workers.outcomes import MessageOutcome

MAX_BATCH_SIZE = 5


class ComplaintProcessingWorker(PollingWorker):
    """Persists submitted complaints and announces them on the topic."""

    name = "complaint_processor"

    def __init__(
        self,
        queue: QueueClient,
        repository: ComplaintRepository,
        topic: TopicClient,
        database_policy: ResiliencePolicy,
        topic_policy: ResiliencePolicy,
        batch_size: int = MAX_BATCH_SIZE,
        wait_seconds: int = 20,
        visibility_timeout: int | None = None,
        dead_letter_sink: DeadLetterSink | None = None,
        delete_policy: ResiliencePolicy | None = None,
    ):
        super().__init__(
            queue,
            batch_size=max(1, min(batch_size, MAX_BATCH_SIZE)),
            wait_seconds=wait_seconds,
            visibility_timeout=visibility_timeout,
            dead_letter_sink=dead_letter_sink,
            delete_policy=delete_policy,
        )
        self.repository = repository
        self.topic = topic
        self.database_policy = database_policy
        self.topic_policy = topic_policy

    async def handle_message(self, message: QueueMessage) -> HandlingResult:
        decoded = decode_submission(message.body)
        if not decoded.ok:
            self.logger.warning(
                "Discarding undecodable complaint",
                message_id=message.message_id,
                failure=decoded.failure.value,
                reason=decoded.reason,
            )
            return HandlingResult(
                MessageOutcome.POISON,
                reason=f"{decoded.failure.value}: {decoded.reason}",
            )

        record = ComplaintRecord.from_submission(
            decoded.value,
            idempotency_key=message.deduplication_id,
            source_message_id=message.message_id,
        )
        context = {"message_id": message.message_id, "idempotency_key": record.idempotency_key}

        persisted = await self.database_policy.run(
            lambda: asyncio.to_thread(self.repository.create_once, record),
            context=context,
        )
        if not persisted.success:
            return HandlingResult.from_policy("persist", persisted)

        stored, created = persisted.value
        event = ComplaintProcessedEvent.from_record(stored)

        published = await self.topic_policy.run(
            lambda: asyncio.to_thread(
                self.topic.publish,
                event.to_message_body(),
                event.message_attributes(),
            ),
            context={**context, "complaint_id": stored.id},
        )
        if not published.success:
            return HandlingResult.from_policy("publish", published)

        self.logger.info(
            "Complaint processed",
            message_id=message.message_id,
            complaint_id=stored.id,
            complaint_type=stored.complaint_type,
            created=created,
            event_message_id=published.value,
        )

        return HandlingResult(MessageOutcome.COMPLETED)
