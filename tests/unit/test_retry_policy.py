"""Tests for the retry policy."""

import pytest

from complaints.execution.retry_policy import (
    ErrorType,
    RetryConfig,
    RetryPolicy,
    RetryStrategy,
)


class Flaky:
    """Callable that raises the given errors in order, then returns a value."""

    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


def _policy(max_retries=3, strategy=RetryStrategy.LINEAR, base_delay=1.0, **kwargs):
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    policy = RetryPolicy(
        RetryConfig(max_retries=max_retries, base_delay=base_delay, strategy=strategy, **kwargs),
        name="test",
        sleep=fake_sleep,
    )
    return policy, sleeps


class TestRetryPolicy:
    """Tests for RetryPolicy.execute and call."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        """A successful call returns after one attempt without sleeping."""
        policy, sleeps = _policy()

        result = await policy.execute(lambda: 42)

        assert result.success is True
        assert result.value == 42
        assert result.attempts == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_awaits_async_functions(self):
        """Coroutines returned by the callable are awaited."""
        policy, _ = _policy()

        async def work():
            return "done"

        assert await policy.call(work) == "done"

    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self):
        """Transient errors are retried until the call succeeds."""
        policy, sleeps = _policy()
        func = Flaky([TimeoutError("timeout"), TimeoutError("timeout")])

        result = await policy.execute(func)

        assert result.success is True
        assert result.attempts == 3
        assert func.calls == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausts_after_max_attempts(self):
        """max_retries bounds the total number of attempts."""
        policy, sleeps = _policy(max_retries=3)
        func = Flaky([ConnectionError("reset")] * 5)

        result = await policy.execute(func)

        assert result.success is False
        assert result.exhausted is True
        assert result.attempts == 3
        assert func.calls == 3
        assert isinstance(result.error, ConnectionError)
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        """A permanent error is returned after the attempt that raised it."""
        policy, sleeps = _policy()
        func = Flaky([ValueError("bad input")])

        result = await policy.execute(func)

        assert result.success is False
        assert result.exhausted is False
        assert result.error_type == ErrorType.PERMANENT
        assert func.calls == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_call_raises_terminal_error(self):
        """call() re-raises the last error."""
        policy, _ = _policy(max_retries=2)

        with pytest.raises(TimeoutError):
            await policy.call(Flaky([TimeoutError("t1"), TimeoutError("t2")]))

    @pytest.mark.asyncio
    async def test_custom_classifier(self):
        """The configured classifier decides what is retried."""
        policy, _ = _policy(classifier=lambda e: ErrorType.PERMANENT)
        func = Flaky([TimeoutError("timeout")])

        result = await policy.execute(func)

        assert result.success is False
        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_on_retry_called_per_retry(self):
        """on_retry fires once per retry with attempt and delay."""
        events = []
        sleeps = []

        async def fake_sleep(delay):
            sleeps.append(delay)

        policy = RetryPolicy(
            RetryConfig(max_retries=3, base_delay=2.0, strategy=RetryStrategy.EXPONENTIAL),
            on_retry=lambda e, attempt, delay: events.append((type(e).__name__, attempt, delay)),
            sleep=fake_sleep,
        )

        await policy.execute(Flaky([TimeoutError(), TimeoutError()]))

        assert events == [("TimeoutError", 1, 2.0), ("TimeoutError", 2, 4.0)]

    def test_linear_delays(self):
        """Linear backoff grows by base_delay per attempt."""
        policy, _ = _policy(strategy=RetryStrategy.LINEAR, base_delay=1.0)

        assert [policy._calculate_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_exponential_delays(self):
        """Exponential backoff doubles from base_delay."""
        policy, _ = _policy(strategy=RetryStrategy.EXPONENTIAL, base_delay=2.0)

        assert [policy._calculate_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_delay_capped(self):
        """Delays never exceed max_delay."""
        policy, _ = _policy(strategy=RetryStrategy.EXPONENTIAL, base_delay=10.0, max_delay=15.0)

        assert policy._calculate_delay(5) == 15.0

    def test_default_classification(self):
        """Without a classifier, messages and types decide the error type."""
        policy, _ = _policy()

        assert policy.classify_error(Exception("Rate exceeded")) == ErrorType.TRANSIENT
        assert policy.classify_error(TimeoutError()) == ErrorType.TRANSIENT
        assert policy.classify_error(KeyError("x")) == ErrorType.PERMANENT

    @pytest.mark.asyncio
    async def test_metrics(self):
        """Metrics count attempts and retries."""
        policy, _ = _policy()

        await policy.execute(Flaky([TimeoutError()]))

        metrics = policy.get_metrics()
        assert metrics["total_attempts"] == 2
        assert metrics["successful_attempts"] == 1
        assert metrics["retries"] == 1
        assert metrics["retries_by_type"] == {"transient": 1}
