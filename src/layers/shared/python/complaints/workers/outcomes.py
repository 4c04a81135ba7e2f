"""Per-message outcomes reported by the polling workers."""

from enum import Enum


class MessageOutcome(str, Enum):
    """How handling of a single queue message ended."""

    COMPLETED = "completed"  # Every step succeeded; message deleted
    POISON = "poison"  # Payload can never be processed; message deleted
    RETRY_LATER = "retry_later"  # Transient failure or open circuit; left for redelivery
    FAILED = "failed"  # Non-retryable failure; left for redelivery and reported

    @property
    def deletes_message(self) -> bool:
        return self in (MessageOutcome.COMPLETED, MessageOutcome.POISON)
