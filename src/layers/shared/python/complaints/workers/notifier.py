"""Notification worker.

Consumes the notifications queue, which is subscribed to the complaints
topic. Each message is an SNS envelope whose ``Message`` field holds a
serialized ComplaintProcessedEvent. Messages are handled one at a time.
"""

from complaints.dlq.sink import DeadLetterSink
from complaints.execution.policies import ResiliencePolicy
from complaints.messaging.sqs_client import QueueClient, QueueMessage
from complaints.models.decoding import decode_envelope, decode_processed_event
from complaints.services.notification_service import NotificationSender
from complaints.workers.base import HandlingResult, PollingWorker
from complaints.workers.outcomes import MessageOutcome


class NotificationWorker(PollingWorker):
    """Notifies customers that their complaint is being processed."""

    name = "notification_worker"

    def __init__(
        self,
        queue: QueueClient,
        sender: NotificationSender,
        notification_policy: ResiliencePolicy,
        wait_seconds: int = 20,
        visibility_timeout: int | None = None,
        dead_letter_sink: DeadLetterSink | None = None,
        delete_policy: ResiliencePolicy | None = None,
    ):
        super().__init__(
            queue,
            batch_size=1,
            wait_seconds=wait_seconds,
            visibility_timeout=visibility_timeout,
            dead_letter_sink=dead_letter_sink,
            delete_policy=delete_policy,
        )
        self.sender = sender
        self.notification_policy = notification_policy

    async def handle_message(self, message: QueueMessage) -> HandlingResult:
        envelope = decode_envelope(message.body)
        if not envelope.ok:
            return self._poison(message, "envelope", envelope.failure.value, envelope.reason)

        decoded = decode_processed_event(envelope.value.message)
        if not decoded.ok:
            return self._poison(message, "event", decoded.failure.value, decoded.reason)

        event = decoded.value
        sent = await self.notification_policy.run(
            lambda: self.sender.send(event),
            context={"message_id": message.message_id, "complaint_id": event.complaint_id},
        )
        if not sent.success:
            return HandlingResult.from_policy("notify", sent)

        return HandlingResult(MessageOutcome.COMPLETED)

    def _poison(self, message: QueueMessage, part: str, failure: str, reason: str | None) -> HandlingResult:
        self.logger.warning(
            "Discarding undecodable notification",
            message_id=message.message_id,
            part=part,
            failure=failure,
            reason=reason,
        )
        return HandlingResult(MessageOutcome.POISON, reason=f"{part} {failure}: {reason}")
