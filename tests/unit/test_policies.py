"""Tests for error classifiers and composed resilience policies."""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from complaints.config import Settings
from complaints.execution.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from complaints.execution.policies import (
    FailureKind,
    ResiliencePolicy,
    classify_aws_error,
    classify_database_error,
    classify_notification_error,
    database_policy,
    notification_policy,
    queue_policy,
    topic_policy,
)
from complaints.execution.retry_policy import ErrorType, RetryConfig, RetryPolicy, RetryStrategy


def _client_error(code, status=400):
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        "Operation",
    )


async def _no_sleep(delay):
    return None


def _retry(max_retries=3, classifier=classify_aws_error, on_retry=None):
    return RetryPolicy(
        RetryConfig(max_retries=max_retries, base_delay=0.0, strategy=RetryStrategy.LINEAR, classifier=classifier),
        on_retry=on_retry,
        sleep=_no_sleep,
    )


class TestClassifiers:
    """Tests for the AWS error classifiers."""

    def test_connection_errors_are_transient(self):
        """Transport failures are retried."""
        assert classify_aws_error(EndpointConnectionError(endpoint_url="https://sqs")) == ErrorType.TRANSIENT
        assert classify_aws_error(ReadTimeoutError(endpoint_url="https://sns")) == ErrorType.TRANSIENT
        assert classify_aws_error(TimeoutError()) == ErrorType.TRANSIENT

    def test_throttling_and_5xx_are_transient(self):
        """Throttling codes and server errors are retried."""
        assert classify_aws_error(_client_error("ThrottlingException")) == ErrorType.TRANSIENT
        assert classify_aws_error(_client_error("Anything", status=503)) == ErrorType.TRANSIENT

    def test_client_errors_are_permanent(self):
        """Bad requests are not retried."""
        assert classify_aws_error(_client_error("InvalidParameter")) == ErrorType.PERMANENT
        assert classify_aws_error(_client_error("AccessDenied", status=403)) == ErrorType.PERMANENT
        assert classify_aws_error(RuntimeError("bug")) == ErrorType.PERMANENT

    def test_database_throughput_is_transient(self):
        """Capacity errors from DynamoDB are retried."""
        assert (
            classify_database_error(_client_error("ProvisionedThroughputExceededException"))
            == ErrorType.TRANSIENT
        )
        assert classify_aws_error(_client_error("ProvisionedThroughputExceededException")) == ErrorType.PERMANENT

    def test_database_constraint_violations_are_permanent(self):
        """Validation and conditional failures are fatal."""
        assert classify_database_error(_client_error("ValidationException")) == ErrorType.PERMANENT
        assert (
            classify_database_error(_client_error("ConditionalCheckFailedException"))
            == ErrorType.PERMANENT
        )

    def test_notification_errors(self):
        """Unknown notification failures are transient, bad input is not."""
        assert classify_notification_error(RuntimeError("provider down")) == ErrorType.TRANSIENT
        assert classify_notification_error(ValueError("no address")) == ErrorType.PERMANENT
        assert classify_notification_error(_client_error("MessageRejected")) == ErrorType.PERMANENT


class TestResiliencePolicy:
    """Tests for ResiliencePolicy.run and execute."""

    @pytest.mark.asyncio
    async def test_run_success(self):
        """A successful run is tagged as such and carries the value."""
        policy = ResiliencePolicy("test", _retry())

        result = await policy.run(lambda: "value")

        assert result.success is True
        assert result.value == "value"
        assert result.failure is None

    @pytest.mark.asyncio
    async def test_run_exhausted(self):
        """Transient failures on every attempt are tagged EXHAUSTED."""
        policy = ResiliencePolicy("test", _retry(max_retries=3))
        calls = []

        def op():
            calls.append(1)
            raise _client_error("ServiceUnavailable", status=503)

        result = await policy.run(op)

        assert result.success is False
        assert result.failure == FailureKind.EXHAUSTED
        assert result.attempts == 3
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_run_fatal(self):
        """A permanent error is tagged FATAL after a single attempt."""
        policy = ResiliencePolicy("test", _retry())
        calls = []

        def op():
            calls.append(1)
            raise _client_error("ValidationException")

        result = await policy.run(op)

        assert result.failure == FailureKind.FATAL
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_execute_raises_terminal_error(self):
        """execute() re-raises the error that ended the run."""
        policy = ResiliencePolicy("test", _retry(max_retries=2))

        def op():
            raise TimeoutError("slow")

        with pytest.raises(TimeoutError):
            await policy.execute(op)

    @pytest.mark.asyncio
    async def test_breaker_observes_final_outcome_only(self):
        """Retries absorbed inside one run do not count as breaker failures."""
        breaker = CircuitBreaker("test", CircuitBreakerConfig(failure_threshold=2))
        policy = ResiliencePolicy("test", _retry(max_retries=3, classifier=classify_notification_error), breaker)
        errors = [RuntimeError("blip"), RuntimeError("blip")]

        def op():
            if errors:
                raise errors.pop(0)
            return "sent"

        result = await policy.run(op)

        assert result.success is True
        assert breaker.state == CircuitState.CLOSED
        assert breaker.get_status()["metrics"]["failed_calls"] == 0

    @pytest.mark.asyncio
    async def test_breaker_opens_after_exhausted_runs(self):
        """Each exhausted run is one breaker failure; T of them open the circuit."""
        breaker = CircuitBreaker("test", CircuitBreakerConfig(failure_threshold=2, recovery_timeout=60))
        policy = ResiliencePolicy("test", _retry(max_retries=2, classifier=classify_notification_error), breaker)
        calls = []

        def op():
            calls.append(1)
            raise RuntimeError("provider down")

        first = await policy.run(op)
        second = await policy.run(op)
        third = await policy.run(op)

        assert first.failure == FailureKind.EXHAUSTED
        assert second.failure == FailureKind.EXHAUSTED
        assert third.failure == FailureKind.CIRCUIT_OPEN
        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_breaker_fatal_failure_kind(self):
        """A permanent error through a breaker is tagged FATAL."""
        breaker = CircuitBreaker("test")
        policy = ResiliencePolicy("test", _retry(classifier=classify_notification_error), breaker)

        def op():
            raise ValueError("bad address")

        result = await policy.run(op)

        assert result.failure == FailureKind.FATAL


class TestPolicyFactories:
    """Tests for the policies built from settings."""

    def test_database_policy_is_exponential(self):
        """The database policy uses exponential backoff from its base delay."""
        policy = database_policy(Settings())

        assert policy.breaker is None
        assert policy.retry.config.max_retries == 4
        assert policy.retry.config.strategy == RetryStrategy.EXPONENTIAL
        assert [policy.retry._calculate_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_topic_policy_is_linear(self):
        """The topic policy uses linear backoff."""
        policy = topic_policy(Settings())

        assert policy.retry.config.max_retries == 4
        assert policy.retry.config.strategy == RetryStrategy.LINEAR
        assert [policy.retry._calculate_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_default_schedule_retries_three_times(self, monkeypatch):
        """With default settings a failing send waits 1s, 2s and 3s before giving up."""
        for name in ("QUEUE_RETRY_ATTEMPTS", "QUEUE_RETRY_BASE_DELAY"):
            monkeypatch.delenv(name, raising=False)
        delays = []
        policy = queue_policy(
            Settings.from_env(),
            on_retry=lambda error, attempt, delay: delays.append(delay),
        )
        policy.retry._sleep = _no_sleep
        calls = []

        async def send():
            calls.append(None)
            raise EndpointConnectionError(endpoint_url="https://sqs")

        result = await policy.run(send)

        assert result.failure == FailureKind.EXHAUSTED
        assert len(calls) == 4
        assert delays == [1.0, 2.0, 3.0]

    def test_notification_policy_has_breaker(self):
        """The notification policy wraps retries in a circuit breaker."""
        settings = Settings(
            notify_retry_attempts=2,
            notify_retry_base_delay=0.5,
            circuit_failure_threshold=7,
            circuit_recovery_timeout=12.0,
        )

        policy = notification_policy(settings)

        assert policy.retry.config.max_retries == 2
        assert policy.breaker is not None
        assert policy.breaker.config.failure_threshold == 7
        assert policy.breaker.config.recovery_timeout == 12.0
