"""Pytest configuration and fixtures."""

import json
import os

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "complaints-test"
os.environ["STAGE"] = "test"
os.environ["SERVICE_NAME"] = "complaints"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

REGION = "us-east-1"
TABLE_NAME = "complaints-test"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = REGION


@pytest.fixture
def aws(aws_credentials):
    """Run the test inside a moto mock of every AWS service."""
    from moto import mock_aws

    with mock_aws():
        yield


@pytest.fixture
def dynamodb_table(aws):
    """Create mocked DynamoDB table."""
    import boto3

    dynamodb = boto3.resource("dynamodb", region_name=REGION)

    table = dynamodb.create_table(
        TableName=TABLE_NAME,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
            {"AttributeName": "GSI1PK", "AttributeType": "S"},
            {"AttributeName": "GSI1SK", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "GSI1",
                "KeySchema": [
                    {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    table.wait_until_exists()

    yield table


@pytest.fixture
def sqs(aws):
    """Mocked SQS client."""
    import boto3

    return boto3.client("sqs", region_name=REGION)


@pytest.fixture
def complaints_queue_url(sqs, monkeypatch):
    """Create the complaints queue and expose it via COMPLAINTS_QUEUE_URL."""
    url = sqs.create_queue(
        QueueName="complaints-test",
        Attributes={"VisibilityTimeout": "30"},
    )["QueueUrl"]
    monkeypatch.setenv("COMPLAINTS_QUEUE_URL", url)
    return url


@pytest.fixture
def notifications_queue_url(sqs, monkeypatch):
    """Create the notifications queue and expose it via NOTIFICATIONS_QUEUE_URL."""
    url = sqs.create_queue(QueueName="complaint-notifications-test")["QueueUrl"]
    monkeypatch.setenv("NOTIFICATIONS_QUEUE_URL", url)
    return url


@pytest.fixture
def dead_letter_queue_url(sqs):
    """Create a dead-letter queue."""
    return sqs.create_queue(QueueName="complaints-dlq-test")["QueueUrl"]


@pytest.fixture
def topic_arn(aws, monkeypatch):
    """Create the complaints topic and expose it via COMPLAINTS_TOPIC_ARN."""
    import boto3

    sns = boto3.client("sns", region_name=REGION)
    arn = sns.create_topic(Name="complaints-test")["TopicArn"]
    monkeypatch.setenv("COMPLAINTS_TOPIC_ARN", arn)
    return arn


@pytest.fixture
def subscribed_notifications_queue(sqs, topic_arn, notifications_queue_url):
    """Subscribe the notifications queue to the complaints topic."""
    import boto3

    sns = boto3.client("sns", region_name=REGION)
    queue_arn = sqs.get_queue_attributes(
        QueueUrl=notifications_queue_url,
        AttributeNames=["QueueArn"],
    )["Attributes"]["QueueArn"]
    sns.subscribe(TopicArn=topic_arn, Protocol="sqs", Endpoint=queue_arn)
    return notifications_queue_url


@pytest.fixture
def test_settings():
    """Settings with zero retry delays and no long polling."""
    from complaints.config import Settings

    return Settings(
        table_name=TABLE_NAME,
        region_name=REGION,
        receive_wait_seconds=0,
        db_retry_attempts=3,
        db_retry_base_delay=0.0,
        topic_retry_attempts=3,
        topic_retry_base_delay=0.0,
        queue_retry_attempts=3,
        queue_retry_base_delay=0.0,
        notify_retry_attempts=3,
        notify_retry_base_delay=0.0,
        circuit_failure_threshold=5,
        circuit_recovery_timeout=30.0,
    )


@pytest.fixture
def submission_payload():
    """Wire-format complaint submission."""
    return {
        "CustomerName": "Ana",
        "CustomerEmail": "ana@x.com",
        "ComplaintType": "Billing",
        "Description": "Charged twice for the same order in March",
    }


@pytest.fixture
def sample_submission(submission_payload):
    """Create a sample complaint submission."""
    from complaints.models.complaint import ComplaintSubmission

    return ComplaintSubmission.model_validate(submission_payload)


@pytest.fixture
def sample_record(sample_submission):
    """Create a sample complaint record."""
    from complaints.models.complaint import ComplaintRecord

    return ComplaintRecord.from_submission(
        sample_submission,
        idempotency_key="msg-123",
        source_message_id="msg-123",
    )


@pytest.fixture
def queue_message():
    """Factory for QueueMessage instances."""
    from complaints.messaging.sqs_client import QueueMessage

    counter = {"n": 0}

    def _create(body, message_id=None, attributes=None):
        counter["n"] += 1
        if isinstance(body, dict):
            body = json.dumps(body)
        return QueueMessage(
            message_id=message_id or f"msg-{counter['n']}",
            body=body,
            receipt_handle=f"handle-{counter['n']}",
            attributes=attributes or {"ApproximateReceiveCount": "1"},
        )

    return _create


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event."""
    def _create_event(
        method: str = "POST",
        path: str = "/complaints",
        body=None,
    ):
        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": {},
            "queryStringParameters": {},
            "body": body if isinstance(body, str) else (
                json.dumps(body) if body is not None else None
            ),
            "headers": {
                "Content-Type": "application/json",
            },
            "requestContext": {},
        }

    return _create_event
