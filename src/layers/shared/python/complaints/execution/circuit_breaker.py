"""Circuit breaker for calls to a failing downstream dependency.

Implements the Circuit Breaker pattern to shed load from a dependency
that keeps failing. One breaker instance is owned by each worker and
shared by every invocation that goes through it.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Dependency is failing, requests are rejected immediately
- HALF_OPEN: One trial request is let through

Transitions:
- CLOSED → OPEN: After failure_threshold consecutive failures
- OPEN → HALF_OPEN: After recovery_timeout seconds
- HALF_OPEN → CLOSED: After success_threshold consecutive successes
- HALF_OPEN → OPEN: On any failure (cool-down restarts)
"""

import asyncio
import inspect
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import structlog

logger = structlog.get_logger()

StateChangeCallback = Callable[[str, "CircuitState", "CircuitState"], None]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for a circuit breaker."""

    failure_threshold: int = 5  # Consecutive failures before opening
    recovery_timeout: float = 30.0  # Seconds open before a trial call
    success_threshold: int = 1  # Successes to close from half-open
    half_open_max_calls: int = 1  # Trial calls allowed while half-open


@dataclass
class CircuitMetrics:
    """Metrics for a circuit breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    state_changed_at: float = field(default_factory=time.monotonic)

    def record_success(self) -> None:
        """Record a successful call."""
        self.total_calls += 1
        self.successful_calls += 1
        self.consecutive_successes += 1
        self.consecutive_failures = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        self.total_calls += 1
        self.failed_calls += 1
        self.consecutive_failures += 1
        self.consecutive_successes = 0


class CircuitBreakerError(Exception):
    """Raised when the circuit rejects a request."""

    def __init__(self, circuit_id: str, state: CircuitState, retry_after: float = 0.0):
        self.circuit_id = circuit_id
        self.state = state
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{circuit_id}' is {state.value}")


class CircuitBreaker:
    """Consecutive-failure circuit breaker.

    State changes happen under a lock so concurrent invocations see a
    consistent state. The wrapped call itself runs outside the lock.

    Example:
        breaker = CircuitBreaker("notification", CircuitBreakerConfig(failure_threshold=5))

        try:
            await breaker.call(send_notification)
        except CircuitBreakerError:
            # rejected without calling send_notification
            ...
    """

    def __init__(
        self,
        circuit_id: str,
        config: CircuitBreakerConfig | None = None,
        on_state_change: StateChangeCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the circuit breaker.

        Args:
            circuit_id: Identifier used in logs and errors.
            config: Breaker thresholds.
            on_state_change: Called with (circuit_id, old_state, new_state).
            clock: Monotonic time source in seconds.
        """
        self.circuit_id = circuit_id
        self.config = config or CircuitBreakerConfig()
        self.on_state_change = on_state_change
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._metrics = CircuitMetrics(state_changed_at=clock())
        self._half_open_calls = 0
        self._lock = threading.RLock()
        self.logger = logger.bind(service="circuit_breaker", circuit_id=circuit_id)

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN to HALF_OPEN once the cool-down has passed."""
        with self._lock:
            if self._state == CircuitState.OPEN and self._cooldown_remaining() <= 0:
                self._transition_to(CircuitState.HALF_OPEN)
            return self._state

    async def call(self, func: Callable[[], Any]) -> Any:
        """Execute a function with circuit breaker protection.

        Args:
            func: Sync function, async function, or callable returning an awaitable.

        Returns:
            The function result.

        Raises:
            CircuitBreakerError: If the circuit rejects the request.
        """
        self._before_call()

        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            self._release_trial()
            raise
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def _before_call(self) -> None:
        with self._lock:
            if self._allow_request():
                return
            self._metrics.rejected_calls += 1
            state = self._state
            retry_after = max(self._cooldown_remaining(), 0.0)

        self.logger.warning(
            "Circuit breaker rejected request",
            state=state.value,
            retry_after=round(retry_after, 3),
        )
        raise CircuitBreakerError(self.circuit_id, state, retry_after)

    def _allow_request(self) -> bool:
        if self._state == CircuitState.CLOSED:
            return True

        if self._state == CircuitState.OPEN:
            if self._cooldown_remaining() > 0:
                return False
            self._transition_to(CircuitState.HALF_OPEN)

        if self._half_open_calls < self.config.half_open_max_calls:
            self._half_open_calls += 1
            return True
        return False

    def _cooldown_remaining(self) -> float:
        elapsed = self._clock() - self._metrics.state_changed_at
        return self.config.recovery_timeout - elapsed

    def _release_trial(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
                self._half_open_calls -= 1

    def record_success(self) -> None:
        """Record a successful request."""
        with self._lock:
            self._metrics.record_success()

            if self._state == CircuitState.HALF_OPEN:
                if self._metrics.consecutive_successes >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
                else:
                    self._half_open_calls = max(self._half_open_calls - 1, 0)

    def record_failure(self) -> None:
        """Record a failed request."""
        with self._lock:
            self._metrics.record_failure()

            if self._state == CircuitState.CLOSED:
                if self._metrics.consecutive_failures >= self.config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)

            elif self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the circuit back to closed with fresh metrics."""
        with self._lock:
            self._transition_to(CircuitState.CLOSED)
            self._metrics = CircuitMetrics(state_changed_at=self._clock())

        self.logger.info("Circuit breaker manually reset")

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state. Caller holds the lock.

        Args:
            new_state: New circuit state.
        """
        old_state = self._state
        self._state = new_state
        self._metrics.state_changed_at = self._clock()
        self._half_open_calls = 0

        if new_state == CircuitState.CLOSED:
            self._metrics.consecutive_failures = 0

        self.logger.info(
            "Circuit breaker state transition",
            old_state=old_state.value,
            new_state=new_state.value,
            consecutive_failures=self._metrics.consecutive_failures,
            consecutive_successes=self._metrics.consecutive_successes,
        )

        if self.on_state_change and old_state != new_state:
            self.on_state_change(self.circuit_id, old_state, new_state)

    def get_status(self) -> dict[str, Any]:
        """Get a snapshot of the breaker for health reporting.

        Returns:
            Dict with state, metrics and config.
        """
        state = self.state
        with self._lock:
            return {
                "circuit_id": self.circuit_id,
                "state": state.value,
                "metrics": {
                    "total_calls": self._metrics.total_calls,
                    "successful_calls": self._metrics.successful_calls,
                    "failed_calls": self._metrics.failed_calls,
                    "rejected_calls": self._metrics.rejected_calls,
                    "consecutive_failures": self._metrics.consecutive_failures,
                },
                "config": {
                    "failure_threshold": self.config.failure_threshold,
                    "recovery_timeout": self.config.recovery_timeout,
                },
            }
