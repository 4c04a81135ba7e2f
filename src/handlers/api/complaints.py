"""Complaints API handler.

Accepts complaint submissions and places them on the complaints queue.
Nothing else happens synchronously: persistence and notification run
in the queue workers.
"""

import asyncio
import base64
import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from complaints.config import Settings
from complaints.execution.policies import queue_policy
from complaints.messaging.sqs_client import QueueClient
from complaints.models.complaint import ComplaintSubmission
from complaints.models.decoding import validation_errors
from complaints.services.ingestion_service import ComplaintIngestionService
from complaints.utils.exceptions import ConfigurationError, EnqueueError, ValidationError
from complaints.utils.responses import accepted, error, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle complaint API requests.

    Routes:
        POST /complaints
    """
    try:
        http_method = (
            event.get("httpMethod")
            or event.get("requestContext", {}).get("http", {}).get("method", "")
        ).upper()

        if http_method == "POST":
            return submit_complaint(event)
        else:
            return error("Method not allowed", 405)

    except ValidationError as e:
        return validation_error(e.errors)
    except EnqueueError:
        return error("Could not accept complaint, please try again later", 500, "ENQUEUE_FAILED")
    except ConfigurationError as e:
        logger.error("Complaints handler misconfigured", error=e.message)
        return error("Internal server error", 500)
    except Exception as e:
        logger.exception("Complaints handler error", error=str(e))
        return error("Internal server error", 500)


def submit_complaint(event: dict) -> dict:
    """Validate and enqueue a complaint.

    Args:
        event: API Gateway event.

    Returns:
        202 response with the queue message id.
    """
    raw, body = _parse_body(event)

    try:
        submission = ComplaintSubmission.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(validation_errors(e)) from e

    service = get_ingestion_service()
    message_id = asyncio.run(service.submit(submission, raw))

    logger.info(
        "Complaint accepted",
        message_id=message_id,
        complaint_type=submission.complaint_type,
    )

    return accepted({"status": "accepted", "message_id": message_id})


def get_ingestion_service() -> ComplaintIngestionService:
    """Build the ingestion service from the environment."""
    settings = Settings.from_env()
    settings.require("complaints_queue_url")

    return ComplaintIngestionService(
        QueueClient(settings.complaints_queue_url, region_name=settings.region_name),
        queue_policy(settings),
    )


def _parse_body(event: dict) -> tuple[str, dict]:
    """Return the decoded request body text and its parsed JSON object."""
    raw = event.get("body") or ""
    if event.get("isBase64Encoded") and raw:
        raw = base64.b64decode(raw).decode("utf-8")

    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError([{"field": "body", "message": "Invalid JSON body"}]) from None

    if not isinstance(body, dict):
        raise ValidationError([{"field": "body", "message": "Body must be a JSON object"}])

    return raw, body
