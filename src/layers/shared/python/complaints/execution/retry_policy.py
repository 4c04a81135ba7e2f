"""Retry policy with linear or exponential backoff.

Provides configurable retry strategies for calls to AWS services with:
- Linear backoff for network calls (1s, 2s, 3s)
- Exponential backoff for database faults (2s, 4s, 8s)
- Optional jitter to distribute retry attempts
- A pluggable classifier deciding transient vs permanent errors

``max_retries`` is the total number of attempts. A permanent error is
returned after the attempt that raised it, without sleeping.

Usage:
    policy = RetryPolicy(RetryConfig(max_retries=3, classifier=classify_aws_error))

    result = await policy.execute(lambda: table.put_item(Item=item))
    if not result.success:
        raise result.error
"""

import asyncio
import inspect
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()


class ErrorType(str, Enum):
    """Classification of error types for retry decisions."""

    TRANSIENT = "transient"  # Temporary failure, retry likely to succeed
    PERMANENT = "permanent"  # Won't succeed on retry


class RetryStrategy(str, Enum):
    """Retry strategy types."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


ErrorClassifier = Callable[[Exception], ErrorType]
RetryCallback = Callable[[Exception, int, float], None]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 60.0  # Maximum delay cap
    jitter_factor: float = 0.0  # Random jitter (0-1)
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    exponential_base: float = 2.0

    # Decides whether an error is worth retrying; defaults to message patterns
    classifier: ErrorClassifier | None = None

    transient_errors: list[str] = field(default_factory=lambda: [
        "timeout",
        "throttl",
        "rate exceeded",
        "service unavailable",
        "too many requests",
        "connection reset",
        "temporary failure",
        "try again",
    ])


@dataclass
class RetryResult:
    """Result of a retry operation."""

    success: bool
    value: Any = None
    error: Exception | None = None
    attempts: int = 0
    total_delay: float = 0.0
    error_type: ErrorType | None = None
    exhausted: bool = False  # True when the last attempt failed transiently


@dataclass
class RetryMetrics:
    """Metrics for retry operations."""

    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    retries: int = 0
    total_delay_seconds: float = 0.0
    retries_by_type: dict[ErrorType, int] = field(default_factory=dict)


class RetryPolicy:
    """Configurable retry policy with backoff strategies.

    Example:
        policy = RetryPolicy(RetryConfig(
            max_retries=3,
            base_delay=2.0,
            strategy=RetryStrategy.EXPONENTIAL,
        ), name="database")

        value = await policy.call(save_record)
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        name: str = "default",
        on_retry: RetryCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration.
            name: Policy name used in log events.
            on_retry: Called with (error, attempt, delay) before each retry sleep.
            sleep: Coroutine used to wait between attempts.
        """
        self.config = config or RetryConfig()
        self.name = name
        self.on_retry = on_retry
        self._sleep = sleep
        self.metrics = RetryMetrics()
        self.logger = logger.bind(service="retry_policy", policy=name)

    async def execute(
        self,
        func: Callable[[], Any],
        context: dict[str, Any] | None = None,
    ) -> RetryResult:
        """Execute a function with retry logic.

        Args:
            func: Sync function, async function, or callable returning an awaitable.
            context: Optional context for logging.

        Returns:
            RetryResult with outcome.
        """
        attempts = 0
        total_delay = 0.0
        last_error: Exception | None = None
        last_error_type: ErrorType | None = None

        while True:
            attempts += 1
            self.metrics.total_attempts += 1

            try:
                result = func()
                if inspect.isawaitable(result):
                    result = await result

                self.metrics.successful_attempts += 1

                self.logger.debug(
                    "Operation succeeded",
                    attempts=attempts,
                    total_delay=total_delay,
                    **(context or {}),
                )

                return RetryResult(
                    success=True,
                    value=result,
                    attempts=attempts,
                    total_delay=total_delay,
                )

            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                last_error_type = self.classify_error(e)

                if last_error_type == ErrorType.PERMANENT:
                    self.metrics.failed_attempts += 1
                    self.logger.warning(
                        "Operation failed permanently",
                        error=str(e),
                        error_class=type(e).__name__,
                        attempts=attempts,
                        **(context or {}),
                    )
                    return RetryResult(
                        success=False,
                        error=e,
                        attempts=attempts,
                        total_delay=total_delay,
                        error_type=last_error_type,
                    )

                if attempts >= self.config.max_retries:
                    break

                delay = self._calculate_delay(attempts)
                total_delay += delay
                self.metrics.retries += 1
                self.metrics.retries_by_type[last_error_type] = (
                    self.metrics.retries_by_type.get(last_error_type, 0) + 1
                )

                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    error_class=type(e).__name__,
                    attempt=attempts,
                    next_delay=delay,
                    **(context or {}),
                )

                if self.on_retry:
                    self.on_retry(e, attempts, delay)

                await self._sleep(delay)

        # Exhausted all attempts
        self.metrics.failed_attempts += 1
        self.metrics.total_delay_seconds += total_delay

        self.logger.warning(
            "Operation failed after max retries",
            error=str(last_error),
            error_class=type(last_error).__name__,
            attempts=attempts,
            total_delay=total_delay,
            **(context or {}),
        )

        return RetryResult(
            success=False,
            error=last_error,
            attempts=attempts,
            total_delay=total_delay,
            error_type=last_error_type,
            exhausted=True,
        )

    async def call(
        self,
        func: Callable[[], Any],
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Execute with retries and return the value.

        Raises:
            Exception: The last error if the operation did not succeed.
        """
        result = await self.execute(func, context)
        if result.success:
            return result.value
        raise result.error

    def classify_error(self, error: Exception) -> ErrorType:
        """Classify an error as transient or permanent.

        Args:
            error: Exception to classify.

        Returns:
            ErrorType classification.
        """
        if self.config.classifier is not None:
            return self.config.classifier(error)

        error_str = str(error).lower()
        error_class = type(error).__name__.lower()

        for pattern in self.config.transient_errors:
            if pattern in error_str or pattern in error_class:
                return ErrorType.TRANSIENT

        if isinstance(error, (TimeoutError, ConnectionError)):
            return ErrorType.TRANSIENT

        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorType.PERMANENT

        # Default to transient for unknown errors
        return ErrorType.TRANSIENT

    def _calculate_delay(self, attempt: int) -> float:
        """Calculate delay before next retry.

        Args:
            attempt: Attempt that just failed (1-indexed).

        Returns:
            Delay in seconds.
        """
        if self.config.strategy == RetryStrategy.EXPONENTIAL:
            delay = self.config.base_delay * (
                self.config.exponential_base ** (attempt - 1)
            )
        elif self.config.strategy == RetryStrategy.LINEAR:
            delay = self.config.base_delay * attempt
        else:
            delay = self.config.base_delay

        if self.config.jitter_factor > 0:
            jitter_range = delay * self.config.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)

        delay = min(delay, self.config.max_delay)
        return max(delay, 0)

    def get_metrics(self) -> dict[str, Any]:
        """Get retry metrics.

        Returns:
            Dict of metrics.
        """
        return {
            "total_attempts": self.metrics.total_attempts,
            "successful_attempts": self.metrics.successful_attempts,
            "failed_attempts": self.metrics.failed_attempts,
            "retries": self.metrics.retries,
            "total_delay_seconds": self.metrics.total_delay_seconds,
            "retries_by_type": {
                k.value: v for k, v in self.metrics.retries_by_type.items()
            },
        }
