"""Tests for the circuit breaker."""

import pytest

from complaints.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _failing():
    raise RuntimeError("downstream failed")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transitions():
    return []


@pytest.fixture
def breaker(clock, transitions):
    return CircuitBreaker(
        "test",
        CircuitBreakerConfig(failure_threshold=3, recovery_timeout=30.0),
        on_state_change=lambda cid, old, new: transitions.append((old, new)),
        clock=clock,
    )


async def _fail_times(breaker, n):
    for _ in range(n):
        with pytest.raises(RuntimeError):
            await breaker.call(_failing)


class TestCircuitBreaker:
    """Tests for CircuitBreaker state transitions."""

    @pytest.mark.asyncio
    async def test_closed_passes_calls_through(self, breaker):
        """A closed breaker returns the wrapped call's result."""
        assert await breaker.call(lambda: "ok") == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker, transitions):
        """T consecutive failures open the circuit."""
        await _fail_times(breaker, 3)

        assert breaker.state == CircuitState.OPEN
        assert transitions == [(CircuitState.CLOSED, CircuitState.OPEN)]

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_count(self, breaker):
        """Failures separated by a success do not open the circuit."""
        await _fail_times(breaker, 2)
        await breaker.call(lambda: "ok")
        await _fail_times(breaker, 2)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_open_rejects_without_calling(self, breaker, clock):
        """While open, calls fail fast and the wrapped function is not invoked."""
        await _fail_times(breaker, 3)
        calls = []

        clock.advance(10)
        with pytest.raises(CircuitBreakerError) as exc_info:
            await breaker.call(lambda: calls.append(1))

        assert calls == []
        assert exc_info.value.state == CircuitState.OPEN
        assert exc_info.value.retry_after == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_half_open_after_cooldown(self, breaker, clock):
        """After the cool-down the breaker reports half-open."""
        await _fail_times(breaker, 3)

        clock.advance(30)

        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker, clock, transitions):
        """A successful trial call closes the circuit."""
        await _fail_times(breaker, 3)
        clock.advance(31)

        assert await breaker.call(lambda: "ok") == "ok"

        assert breaker.state == CircuitState.CLOSED
        assert transitions[-1] == (CircuitState.HALF_OPEN, CircuitState.CLOSED)

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        """A failed trial call re-opens the circuit and restarts the cool-down."""
        await _fail_times(breaker, 3)
        clock.advance(31)

        await _fail_times(breaker, 1)

        assert breaker.state == CircuitState.OPEN
        clock.advance(29)
        with pytest.raises(CircuitBreakerError):
            await breaker.call(lambda: "ok")

    @pytest.mark.asyncio
    async def test_half_open_allows_single_trial(self, breaker, clock):
        """Only one trial call is admitted while half-open."""
        await _fail_times(breaker, 3)
        clock.advance(31)

        # Admit the trial, then check a second call is refused before it finishes
        breaker._before_call()
        with pytest.raises(CircuitBreakerError) as exc_info:
            breaker._before_call()

        assert exc_info.value.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_reset(self, breaker):
        """reset() closes the circuit."""
        await _fail_times(breaker, 3)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert await breaker.call(lambda: 1) == 1

    @pytest.mark.asyncio
    async def test_status_snapshot(self, breaker):
        """get_status() reports state and counters."""
        await _fail_times(breaker, 3)
        with pytest.raises(CircuitBreakerError):
            await breaker.call(lambda: None)

        status = breaker.get_status()

        assert status["state"] == "open"
        assert status["metrics"]["failed_calls"] == 3
        assert status["metrics"]["rejected_calls"] == 1
        assert status["config"]["failure_threshold"] == 3
