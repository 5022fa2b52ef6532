"""
Tests for retry with exponential backoff.
"""

import pytest

from src.common.resilience import RetryConfig, retry_with_backoff


class TestRetryConfig:
    """Tests for RetryConfig delays."""

    def test_exponential_delays(self):
        config = RetryConfig(base_delay=5.0, exponential_base=3.0)
        assert [config.delay_for(n) for n in (1, 2, 3)] == [5.0, 15.0, 45.0]

    def test_delay_is_capped(self):
        config = RetryConfig(base_delay=10.0, max_delay=25.0)
        assert config.delay_for(5) == 25.0

    def test_jitter_stays_in_range(self):
        config = RetryConfig(base_delay=2.0, jitter=True)
        for _ in range(20):
            assert 1.0 <= config.delay_for(1) <= 3.0


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_success_no_retry(self):
        """Successful call should not retry."""
        calls = []

        async def success():
            calls.append(1)
            return "ok"

        assert await retry_with_backoff(success) == "ok"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_on_failure(self):
        """Should retry on retryable exceptions."""
        attempts = 0

        async def fail_then_succeed():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ConnectionError("Connection failed")
            return "success"

        config = RetryConfig(max_attempts=3, base_delay=0.0)
        assert await retry_with_backoff(fail_then_succeed, config=config) == "success"
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """Should re-raise the last error after max attempts."""
        attempts = 0

        async def always_fail():
            nonlocal attempts
            attempts += 1
            raise TimeoutError(f"attempt {attempts}")

        config = RetryConfig(max_attempts=3, base_delay=0.0)
        with pytest.raises(TimeoutError, match="attempt 3"):
            await retry_with_backoff(always_fail, config=config)
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_no_retry_for_non_retryable(self):
        """Should not retry for non-retryable exceptions."""
        attempts = 0

        async def value_error():
            nonlocal attempts
            attempts += 1
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await retry_with_backoff(value_error, config=RetryConfig(base_delay=0.0))
        assert attempts == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback_and_arguments(self):
        """Arguments pass through and on_retry sees each scheduled delay."""
        seen = []
        attempts = 0

        async def flaky(a, b=0):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise OSError("reset")
            return a + b

        config = RetryConfig(max_attempts=2, base_delay=0.0)
        result = await retry_with_backoff(
            flaky,
            2,
            b=3,
            config=config,
            on_retry=lambda attempt, error, delay: seen.append((attempt, str(error), delay)),
        )

        assert result == 5
        assert seen == [(1, "reset", 0.0)]
