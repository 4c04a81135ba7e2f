"""Resilience infrastructure for calls to external services.

This module provides:
- RetryPolicy: Linear or exponential backoff for transient errors
- CircuitBreaker: Stops calling a dependency after repeated failures
- ResiliencePolicy: Retry inside a circuit breaker, with tagged outcomes
"""

from complaints.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)
from complaints.execution.policies import (
    FailureKind,
    PolicyResult,
    ResiliencePolicy,
    classify_aws_error,
    classify_database_error,
    classify_notification_error,
    database_policy,
    notification_policy,
    queue_policy,
    topic_policy,
)
from complaints.execution.retry_policy import (
    ErrorType,
    RetryConfig,
    RetryPolicy,
    RetryResult,
    RetryStrategy,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
    # Retry policy
    "ErrorType",
    "RetryConfig",
    "RetryPolicy",
    "RetryResult",
    "RetryStrategy",
    # Composed policies
    "FailureKind",
    "PolicyResult",
    "ResiliencePolicy",
    "classify_aws_error",
    "classify_database_error",
    "classify_notification_error",
    "database_policy",
    "notification_policy",
    "queue_policy",
    "topic_policy",
]
