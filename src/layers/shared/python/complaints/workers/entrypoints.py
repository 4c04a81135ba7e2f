"""Process entry points for the long-running workers.

Each entry point reads settings from the environment, configures
logging, wires clients and policies into a worker and runs it until
SIGINT or SIGTERM. After a signal the worker gets ``SHUTDOWN_TIMEOUT``
seconds to finish the message in flight before it is cancelled.
"""

import asyncio
import signal

import structlog

from complaints.config import Settings
from complaints.dlq.sink import DeadLetterSink, LoggingDeadLetterSink, SqsDeadLetterSink
from complaints.execution.policies import (
    database_policy,
    notification_policy,
    queue_policy,
    topic_policy,
)
from complaints.log_config import configure_logging
from complaints.messaging.sns_client import TopicClient
from complaints.messaging.sqs_client import QueueClient
from complaints.repositories.complaint import ComplaintRepository
from complaints.services.notification_service import get_notification_sender
from complaints.workers.base import PollingWorker
from complaints.workers.notifier import NotificationWorker
from complaints.workers.processor import ComplaintProcessingWorker

logger = structlog.get_logger()


def build_dead_letter_sink(settings: Settings, source: str) -> DeadLetterSink:
    """SQS sink when DEAD_LETTER_QUEUE_URL is set, logging sink otherwise."""
    if settings.dead_letter_queue_url:
        return SqsDeadLetterSink(
            QueueClient(settings.dead_letter_queue_url, region_name=settings.region_name),
            source=source,
        )
    return LoggingDeadLetterSink(source)


def build_processing_worker(settings: Settings) -> ComplaintProcessingWorker:
    """Wire a processing worker from settings.

    Raises:
        ConfigurationError: If the queue URL or topic ARN is missing.
    """
    settings.require("complaints_queue_url", "complaints_topic_arn", "table_name")

    queue = QueueClient(settings.complaints_queue_url, region_name=settings.region_name)

    return ComplaintProcessingWorker(
        queue=queue,
        repository=ComplaintRepository(settings.table_name, settings.region_name),
        topic=TopicClient(settings.complaints_topic_arn, region_name=settings.region_name),
        database_policy=database_policy(settings),
        topic_policy=topic_policy(settings),
        batch_size=settings.processor_batch_size,
        wait_seconds=settings.receive_wait_seconds,
        visibility_timeout=settings.visibility_timeout,
        dead_letter_sink=build_dead_letter_sink(settings, ComplaintProcessingWorker.name),
        delete_policy=queue_policy(settings),
    )


def build_notification_worker(settings: Settings) -> NotificationWorker:
    """Wire a notification worker from settings.

    Raises:
        ConfigurationError: If the queue URL is missing or the sender is misconfigured.
    """
    settings.require("notifications_queue_url")

    return NotificationWorker(
        queue=QueueClient(settings.notifications_queue_url, region_name=settings.region_name),
        sender=get_notification_sender(settings),
        notification_policy=notification_policy(settings),
        wait_seconds=settings.receive_wait_seconds,
        visibility_timeout=settings.visibility_timeout,
        dead_letter_sink=build_dead_letter_sink(settings, NotificationWorker.name),
        delete_policy=queue_policy(settings),
    )


async def serve(worker: PollingWorker, shutdown_timeout: float) -> None:
    """Run a worker until a termination signal arrives.

    Returns within ``shutdown_timeout`` of the signal. A long poll that was
    in flight keeps its thread until the poll ends, and ``asyncio.run``
    joins that thread, so process exit can take up to the receive wait
    (at most 20 seconds) longer.
    """
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    task = asyncio.create_task(worker.run())
    stop_wait = asyncio.create_task(stop_requested.wait())

    try:
        await asyncio.wait({task, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop_wait.cancel()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    if not task.done():
        worker.stop()
        try:
            await asyncio.wait_for(task, shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Worker did not stop within shutdown timeout",
                worker=worker.name,
                shutdown_timeout=shutdown_timeout,
            )
            return

    # Surface a crash of the loop itself
    await task


def _run(build) -> None:
    settings = Settings.from_env()
    configure_logging(settings)

    worker = build(settings)
    asyncio.run(serve(worker, settings.shutdown_timeout))


def run_processor() -> None:
    """Console entry point for the complaint processing worker."""
    _run(build_processing_worker)


def run_notifier() -> None:
    """Console entry point for the notification worker."""
    _run(build_notification_worker)
