"""Dead-letter sinks for messages the workers give up on or cannot finish.

Workers call ``on_poison`` after deleting a message whose payload can
never be processed, and ``on_failure`` when a message is left on the
queue after a failed attempt. A sink only observes: it cannot change
what the worker does with the message.
"""

import json
from typing import TYPE_CHECKING, Protocol

import structlog

from complaints.messaging.sqs_client import QueueClient, QueueMessage

if TYPE_CHECKING:
    from complaints.workers.outcomes import MessageOutcome

logger = structlog.get_logger()


class DeadLetterSink(Protocol):
    """Receives messages the pipeline could not handle normally."""

    def on_poison(self, message: QueueMessage, reason: str) -> None:
        ...

    def on_failure(
        self,
        message: QueueMessage,
        outcome: "MessageOutcome",
        error: Exception | None,
    ) -> None:
        ...


class LoggingDeadLetterSink:
    """Records poison messages and failures as log events."""

    def __init__(self, source: str = "worker"):
        self.logger = logger.bind(service="dead_letter_sink", source=source)

    def on_poison(self, message: QueueMessage, reason: str) -> None:
        self.logger.error(
            "Poison message discarded",
            message_id=message.message_id,
            reason=reason,
            body=message.body[:500],
        )

    def on_failure(
        self,
        message: QueueMessage,
        outcome: "MessageOutcome",
        error: Exception | None,
    ) -> None:
        self.logger.warning(
            "Message left for redelivery",
            message_id=message.message_id,
            outcome=outcome.value,
            receive_count=message.receive_count,
            error=str(error) if error else None,
            error_class=type(error).__name__ if error else None,
        )


class SqsDeadLetterSink:
    """Copies poison and failed messages to a dead-letter queue.

    The original body is sent verbatim; the failure is described in
    message attributes so the copy can be replayed as-is.
    """

    def __init__(self, queue: QueueClient, source: str = "worker", include_failures: bool = False):
        """Initialize the sink.

        Args:
            queue: Client for the dead-letter queue.
            source: Name of the worker feeding this sink.
            include_failures: Also copy messages left for redelivery. Off by
                default, since those messages stay on their own queue and
                the queue's redrive policy moves them eventually.
        """
        self.queue = queue
        self.source = source
        self.include_failures = include_failures
        self.logger = logger.bind(service="dead_letter_sink", source=source)

    def on_poison(self, message: QueueMessage, reason: str) -> None:
        message_id = self.queue.send(
            message.body or json.dumps({"empty": True}),
            self._attributes(message, "poison", reason),
        )
        self.logger.info(
            "Poison message copied to dead-letter queue",
            message_id=message.message_id,
            dead_letter_message_id=message_id,
        )

    def on_failure(
        self,
        message: QueueMessage,
        outcome: "MessageOutcome",
        error: Exception | None,
    ) -> None:
        if not self.include_failures:
            return

        reason = f"{type(error).__name__}: {error}" if error else outcome.value
        message_id = self.queue.send(
            message.body or json.dumps({"empty": True}),
            self._attributes(message, outcome.value, reason),
        )
        self.logger.info(
            "Failed message copied to dead-letter queue",
            message_id=message.message_id,
            dead_letter_message_id=message_id,
            outcome=outcome.value,
        )

    def _attributes(self, message: QueueMessage, outcome: str, reason: str) -> dict[str, str]:
        return {
            "source": self.source,
            "outcome": outcome,
            "reason": reason[:1000] or "unknown",
            "source_message_id": message.message_id,
            "receive_count": str(message.receive_count),
        }
