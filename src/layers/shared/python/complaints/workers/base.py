"""Polling loop shared by the queue workers.

A worker long-polls one queue, hands each message to ``handle_message``
and acts on the returned outcome: completed and poison messages are
deleted, everything else is left on the queue to reappear after its
visibility timeout. Per-message errors never escape the loop.

Shutdown: ``stop()`` wakes a pending long poll immediately. The message
in flight is finished; messages received but not yet started are left
on the queue.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import structlog

from complaints.dlq.sink import DeadLetterSink, LoggingDeadLetterSink
from complaints.execution.policies import FailureKind, PolicyResult, ResiliencePolicy
from complaints.messaging.sqs_client import QueueClient, QueueMessage
from complaints.workers.outcomes import MessageOutcome

logger = structlog.get_logger()


@dataclass
class HandlingResult:
    """What ``handle_message`` decided for one message."""

    outcome: MessageOutcome
    reason: str | None = None
    error: Exception | None = None

    @classmethod
    def from_policy(cls, step: str, result: PolicyResult) -> "HandlingResult":
        """Map a failed policy run to an outcome.

        Exhausted retries and an open circuit are retried through
        redelivery; a non-retryable failure is reported as failed.
        """
        if result.failure == FailureKind.FATAL:
            outcome = MessageOutcome.FAILED
        else:
            outcome = MessageOutcome.RETRY_LATER
        failure = result.failure.value if result.failure else "unknown"
        return cls(outcome=outcome, reason=f"{step} {failure}", error=result.error)


@dataclass
class WorkerMetrics:
    """Counters for one worker instance."""

    received: int = 0
    completed: int = 0
    poison: int = 0
    retry_later: int = 0
    failed: int = 0
    receive_errors: int = 0
    delete_errors: int = 0
    sink_errors: int = 0
    abandoned_receives: int = 0
    by_reason: dict[str, int] = field(default_factory=dict)


class PollingWorker(ABC):
    """Base class for long-polling queue workers."""

    name = "worker"

    def __init__(
        self,
        queue: QueueClient,
        batch_size: int = 1,
        wait_seconds: int = 20,
        visibility_timeout: int | None = None,
        dead_letter_sink: DeadLetterSink | None = None,
        delete_policy: ResiliencePolicy | None = None,
        receive_error_backoff: float = 5.0,
    ):
        """Initialize the worker.

        Args:
            queue: Queue to consume.
            batch_size: Maximum messages per receive.
            wait_seconds: Long-poll wait time.
            visibility_timeout: Optional visibility timeout override for receives.
            dead_letter_sink: Receives poison and failed messages. Defaults to logging.
            delete_policy: Optional resilience policy for deletes.
            receive_error_backoff: Seconds to wait after a failed receive.
        """
        self.queue = queue
        self.batch_size = batch_size
        self.wait_seconds = wait_seconds
        self.visibility_timeout = visibility_timeout
        self.dead_letter_sink = dead_letter_sink or LoggingDeadLetterSink(self.name)
        self.delete_policy = delete_policy
        self.receive_error_backoff = receive_error_backoff
        self.metrics = WorkerMetrics()
        self._stop_event = asyncio.Event()
        self.logger = logger.bind(service=self.name)

    @abstractmethod
    async def handle_message(self, message: QueueMessage) -> HandlingResult:
        """Process one message and report its outcome. Must not delete it."""

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to finish the message in flight and return."""
        if not self._stop_event.is_set():
            self.logger.info("Worker stop requested")
        self._stop_event.set()

    async def run(self) -> None:
        """Poll until ``stop()`` is called."""
        self.logger.info(
            "Worker started",
            queue_url=self.queue.queue_url,
            batch_size=self.batch_size,
            wait_seconds=self.wait_seconds,
        )

        while not self._stop_event.is_set():
            await self.poll_once()

        self.logger.info("Worker stopped", **self.get_metrics())

    async def poll_once(self) -> list[MessageOutcome]:
        """Receive one batch and handle each message.

        Returns:
            Outcome of every message handled, in receive order.
        """
        try:
            messages = await self._receive()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.metrics.receive_errors += 1
            self.logger.error(
                "Receive failed",
                error=str(e),
                error_class=type(e).__name__,
                backoff=self.receive_error_backoff,
            )
            await self._wait_for_stop(self.receive_error_backoff)
            return []

        self.metrics.received += len(messages)

        outcomes: list[MessageOutcome] = []
        for index, message in enumerate(messages):
            if self._stop_event.is_set():
                self.logger.info(
                    "Leaving unstarted messages for redelivery",
                    count=len(messages) - index,
                )
                break
            outcomes.append(await self._handle(message))

        return outcomes

    async def _receive(self) -> list[QueueMessage]:
        if self._stop_event.is_set():
            return []

        receive = asyncio.ensure_future(
            asyncio.to_thread(
                self.queue.receive,
                self.batch_size,
                self.wait_seconds,
                self.visibility_timeout,
            )
        )
        stop = asyncio.ensure_future(self._stop_event.wait())

        try:
            done, _ = await asyncio.wait({receive, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

        if receive in done:
            return receive.result()

        # Anything the abandoned poll returns stays invisible until its timeout lapses.
        # Its thread keeps running, and interpreter exit joins it.
        receive.cancel()
        self.metrics.abandoned_receives += 1
        self.logger.info(
            "Abandoned in-flight receive",
            max_exit_delay_seconds=self.wait_seconds,
        )
        return []

    async def _wait_for_stop(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout)
        except asyncio.TimeoutError:
            pass

    async def _handle(self, message: QueueMessage) -> MessageOutcome:
        log = self.logger.bind(message_id=message.message_id, receive_count=message.receive_count)

        try:
            result = await self.handle_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception("Unhandled error while handling message", error=str(e))
            result = HandlingResult(MessageOutcome.FAILED, reason="unhandled error", error=e)

        if result.outcome.deletes_message and not await self._delete(message, log):
            result = HandlingResult(
                MessageOutcome.RETRY_LATER,
                reason="delete failed",
                error=result.error,
            )

        if result.outcome == MessageOutcome.POISON:
            await self._report(self.dead_letter_sink.on_poison, message, result.reason or "poison")
        elif result.outcome != MessageOutcome.COMPLETED:
            await self._report(self.dead_letter_sink.on_failure, message, result.outcome, result.error)

        self._count(result)

        if result.outcome == MessageOutcome.COMPLETED:
            log.info("Message completed")
        else:
            log.warning(
                "Message not completed",
                outcome=result.outcome.value,
                reason=result.reason,
            )

        return result.outcome

    async def _delete(self, message: QueueMessage, log: Any) -> bool:
        def delete() -> Any:
            return asyncio.to_thread(self.queue.delete, message.receipt_handle)

        try:
            if self.delete_policy is not None:
                await self.delete_policy.execute(delete, context={"operation": "delete_message"})
            else:
                await delete()
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.metrics.delete_errors += 1
            log.error("Failed to delete message", error=str(e), error_class=type(e).__name__)
            return False

    async def _report(self, callback: Any, *args: Any) -> None:
        try:
            await asyncio.to_thread(callback, *args)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.metrics.sink_errors += 1
            self.logger.error(
                "Dead-letter sink failed",
                error=str(e),
                error_class=type(e).__name__,
            )

    def _count(self, result: HandlingResult) -> None:
        if result.outcome == MessageOutcome.COMPLETED:
            self.metrics.completed += 1
        elif result.outcome == MessageOutcome.POISON:
            self.metrics.poison += 1
        elif result.outcome == MessageOutcome.RETRY_LATER:
            self.metrics.retry_later += 1
        else:
            self.metrics.failed += 1

        if result.reason:
            self.metrics.by_reason[result.reason] = self.metrics.by_reason.get(result.reason, 0) + 1

    def get_metrics(self) -> dict[str, Any]:
        """Get worker counters.

        Returns:
            Dict of metrics.
        """
        return {
            "received": self.metrics.received,
            "completed": self.metrics.completed,
            "poison": self.metrics.poison,
            "retry_later": self.metrics.retry_later,
            "failed": self.metrics.failed,
            "receive_errors": self.metrics.receive_errors,
            "delete_errors": self.metrics.delete_errors,
            "sink_errors": self.metrics.sink_errors,
            "abandoned_receives": self.metrics.abandoned_receives,
            "by_reason": dict(self.metrics.by_reason),
        }
