"""Composed resilience policies for the pipeline's external calls.

A ``ResiliencePolicy`` runs an operation through a retry policy and,
optionally, a circuit breaker. Retry is the inner layer: the breaker only
sees the final outcome of all attempts, so a blip absorbed by a retry
never counts towards opening the circuit.

Policies used by the pipeline:
- database: exponential backoff (2s, 4s), transient DynamoDB faults only
- topic: linear backoff (1s, 2s), transport and SNS service errors
- queue: linear backoff (1s, 2s), transport and SQS service errors
- notification: linear backoff plus a circuit breaker
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from botocore.exceptions import ClientError, ConnectionError as BotoConnectionError, HTTPClientError

from complaints.config import RetrySettings, Settings
from complaints.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    StateChangeCallback,
)
from complaints.execution.retry_policy import (
    ErrorClassifier,
    ErrorType,
    RetryCallback,
    RetryConfig,
    RetryPolicy,
    RetryStrategy,
)

# Error codes AWS services return for conditions that clear up on their own
TRANSIENT_ERROR_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestThrottled",
    "RequestThrottledException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "InternalError",
    "InternalFailure",
    "InternalServerError",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "RequestTimeout",
    "RequestTimeoutException",
    "KMSThrottlingException",
})

DATABASE_TRANSIENT_ERROR_CODES = TRANSIENT_ERROR_CODES | {
    "ProvisionedThroughputExceededException",
    "TransactionConflictException",
    "TransactionInProgressException",
    "LimitExceededException",
}


def _client_error_is_transient(error: ClientError, codes: frozenset[str]) -> bool:
    code = error.response.get("Error", {}).get("Code", "")
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
    return code in codes or status >= 500


def classify_aws_error(error: Exception) -> ErrorType:
    """Classify errors raised by SQS, SNS and SES calls.

    Transport failures and throttling/5xx responses are transient;
    everything else (bad parameters, missing resources, access denied)
    is permanent.
    """
    if isinstance(error, (BotoConnectionError, HTTPClientError, TimeoutError, ConnectionError)):
        return ErrorType.TRANSIENT
    if isinstance(error, ClientError) and _client_error_is_transient(error, TRANSIENT_ERROR_CODES):
        return ErrorType.TRANSIENT
    return ErrorType.PERMANENT


def classify_database_error(error: Exception) -> ErrorType:
    """Classify errors raised by DynamoDB calls.

    Conditional check failures and validation errors are permanent.
    """
    if isinstance(error, (BotoConnectionError, HTTPClientError, TimeoutError, ConnectionError)):
        return ErrorType.TRANSIENT
    if isinstance(error, ClientError) and _client_error_is_transient(
        error, DATABASE_TRANSIENT_ERROR_CODES
    ):
        return ErrorType.TRANSIENT
    return ErrorType.PERMANENT


def classify_notification_error(error: Exception) -> ErrorType:
    """Classify errors raised by a notification sender.

    AWS errors follow the AWS rules; any other failure of the action is
    treated as transient.
    """
    if isinstance(error, (ClientError, BotoConnectionError, HTTPClientError)):
        return classify_aws_error(error)
    if isinstance(error, (ValueError, TypeError)):
        return ErrorType.PERMANENT
    return ErrorType.TRANSIENT


class FailureKind(str, Enum):
    """How an operation run through a policy ended, when it did not succeed."""

    EXHAUSTED = "exhausted"  # Transient failures used up every attempt
    FATAL = "fatal"  # Non-retryable failure
    CIRCUIT_OPEN = "circuit_open"  # Rejected by the circuit breaker


@dataclass
class PolicyResult:
    """Outcome of running an operation through a ResiliencePolicy."""

    success: bool
    value: Any = None
    error: Exception | None = None
    failure: FailureKind | None = None
    attempts: int = 0


class ResiliencePolicy:
    """Retry policy with an optional circuit breaker around it.

    Example:
        policy = ResiliencePolicy("notification", retry, breaker)

        result = await policy.run(send_email)
        if result.failure == FailureKind.CIRCUIT_OPEN:
            ...
    """

    def __init__(
        self,
        name: str,
        retry: RetryPolicy,
        breaker: CircuitBreaker | None = None,
    ):
        self.name = name
        self.retry = retry
        self.breaker = breaker

    async def execute(
        self,
        func: Callable[[], Any],
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Run the operation and return its value.

        Raises:
            CircuitBreakerError: If the breaker rejected the call.
            Exception: The terminal error from the retry policy.
        """
        if self.breaker is None:
            return await self.retry.call(func, context)
        return await self.breaker.call(lambda: self.retry.call(func, context))

    async def run(
        self,
        func: Callable[[], Any],
        context: dict[str, Any] | None = None,
    ) -> PolicyResult:
        """Run the operation and report a tagged outcome instead of raising."""
        if self.breaker is not None:
            try:
                value = await self.execute(func, context)
            except asyncio.CancelledError:
                raise
            except CircuitBreakerError as e:
                return PolicyResult(success=False, error=e, failure=FailureKind.CIRCUIT_OPEN)
            except Exception as e:
                return PolicyResult(success=False, error=e, failure=self._failure_kind(e))
            return PolicyResult(success=True, value=value)

        result = await self.retry.execute(func, context)
        if result.success:
            return PolicyResult(success=True, value=result.value, attempts=result.attempts)
        return PolicyResult(
            success=False,
            error=result.error,
            failure=FailureKind.EXHAUSTED if result.exhausted else FailureKind.FATAL,
            attempts=result.attempts,
        )

    def _failure_kind(self, error: Exception) -> FailureKind:
        if self.retry.classify_error(error) == ErrorType.PERMANENT:
            return FailureKind.FATAL
        return FailureKind.EXHAUSTED


def _retry_policy(
    name: str,
    retry: RetrySettings,
    strategy: RetryStrategy,
    classifier: ErrorClassifier,
    on_retry: RetryCallback | None,
) -> RetryPolicy:
    return RetryPolicy(
        RetryConfig(
            max_retries=retry.attempts,
            base_delay=retry.base_delay,
            strategy=strategy,
            exponential_base=2.0,
            classifier=classifier,
        ),
        name=name,
        on_retry=on_retry,
    )


def database_policy(settings: Settings, on_retry: RetryCallback | None = None) -> ResiliencePolicy:
    """Exponential backoff for DynamoDB writes."""
    return ResiliencePolicy(
        "database",
        _retry_policy(
            "database",
            settings.database_retry,
            RetryStrategy.EXPONENTIAL,
            classify_database_error,
            on_retry,
        ),
    )


def topic_policy(settings: Settings, on_retry: RetryCallback | None = None) -> ResiliencePolicy:
    """Linear backoff for SNS publishes."""
    return ResiliencePolicy(
        "topic",
        _retry_policy(
            "topic",
            settings.topic_retry,
            RetryStrategy.LINEAR,
            classify_aws_error,
            on_retry,
        ),
    )


def queue_policy(settings: Settings, on_retry: RetryCallback | None = None) -> ResiliencePolicy:
    """Linear backoff for SQS sends."""
    return ResiliencePolicy(
        "queue",
        _retry_policy(
            "queue",
            settings.queue_retry,
            RetryStrategy.LINEAR,
            classify_aws_error,
            on_retry,
        ),
    )


def notification_policy(
    settings: Settings,
    on_retry: RetryCallback | None = None,
    on_state_change: StateChangeCallback | None = None,
) -> ResiliencePolicy:
    """Linear backoff wrapped in a circuit breaker for the notification action."""
    breaker = CircuitBreaker(
        "notification",
        CircuitBreakerConfig(
            failure_threshold=settings.circuit_failure_threshold,
            recovery_timeout=settings.circuit_recovery_timeout,
        ),
        on_state_change=on_state_change,
    )
    return ResiliencePolicy(
        "notification",
        _retry_policy(
            "notification",
            settings.notification_retry,
            RetryStrategy.LINEAR,
            classify_notification_error,
            on_retry,
        ),
        breaker,
    )
