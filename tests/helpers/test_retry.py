"""Tests for retry and error-suppression helpers."""

import pytest

import logging

import httpx

from src.helpers import retry
from src.helpers.errors import ConfirmationTimeoutError
from src.helpers.retry import (
    RetryConfig,
    is_retryable_error,
    log_and_suppress_errors,
    retry_with_backoff,
    with_retry,
)


@pytest.fixture
def recorded_sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace the backoff sleep with a recorder."""
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr(retry, "sleep", fake_sleep)
    return delays


class Flaky:
    """Fails ``failures`` times with ``error`` before returning ``result``."""

    def __init__(self, failures: int, error: Exception, result: str = "ok") -> None:
        self.failures = failures
        self.error = error
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_delay_grows_and_caps(self) -> None:
        config = RetryConfig(base_delay=15.0, max_delay=60.0, backoff_multiplier=1.5)

        assert config.delay_for(1) == 15.0
        assert config.delay_for(2) == 22.5
        assert config.delay_for(5) == 60.0

    def test_max_retries_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RetryConfig(max_retries=0)


class TestIsRetryableError:
    """Tests for is_retryable_error function."""

    def test_transport_and_timeouts_are_retryable(self) -> None:
        assert is_retryable_error(httpx.ConnectError("refused"))
        assert is_retryable_error(TimeoutError())
        assert is_retryable_error(ConfirmationTimeoutError("0xabc", 3, 1.0))

    def test_message_substrings(self) -> None:
        assert is_retryable_error(ValueError("Nonce too low"))
        assert is_retryable_error(ValueError("replacement transaction underpriced"))
        assert not is_retryable_error(ValueError("execution reverted"))

    def test_custom_substrings(self) -> None:
        assert is_retryable_error(ValueError("sequencer busy"), ("sequencer",))
        assert not is_retryable_error(ValueError("nonce too low"), ("sequencer",))


class TestWithRetry:
    """Tests for with_retry function."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, recorded_sleeps: list[float]) -> None:
        operation = Flaky(0, ValueError("network"))

        assert await with_retry(operation) == "ok"
        assert operation.calls == 1
        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_retries_transient_errors_with_backoff(
        self, recorded_sleeps: list[float]
    ) -> None:
        operation = Flaky(2, ValueError("network unreachable"))
        config = RetryConfig(max_retries=4, base_delay=1.0, backoff_multiplier=2.0)

        assert await with_retry(operation, config) == "ok"
        assert operation.calls == 3
        assert recorded_sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_permanent_transient_failure_attempts_exactly_max(
        self, recorded_sleeps: list[float]
    ) -> None:
        operation = Flaky(10, ValueError("timeout talking to node"))
        config = RetryConfig(max_retries=4, base_delay=0.5)

        with pytest.raises(ValueError, match="timeout talking to node"):
            await with_retry(operation, config)

        assert operation.calls == 4
        assert len(recorded_sleeps) == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_raises_immediately(
        self, recorded_sleeps: list[float]
    ) -> None:
        operation = Flaky(1, ValueError("execution reverted"))

        with pytest.raises(ValueError, match="execution reverted"):
            await with_retry(operation, RetryConfig(max_retries=5))

        assert operation.calls == 1
        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_zero_delay_retries_without_patching(
        self, no_delay_retry: RetryConfig
    ) -> None:
        operation = Flaky(2, TimeoutError())

        assert await with_retry(operation, no_delay_retry) == "ok"
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_logs_warning_per_retry(
        self, recorded_sleeps: list[float], caplog: pytest.LogCaptureFixture
    ) -> None:
        operation = Flaky(1, ValueError("network"))

        with caplog.at_level(logging.WARNING, logger="src.helpers.retry"):
            await with_retry(operation, operation_name="sepolia get_block")

        assert any("sepolia get_block error" in r.message for r in caplog.records)


class TestRetryWithBackoff:
    """Tests for the decorator form."""

    @pytest.mark.asyncio
    async def test_decorated_function_retries(self, recorded_sleeps: list[float]) -> None:
        calls = 0

        @retry_with_backoff(max_retries=3, base_delay=2.0)
        async def fetch_head() -> int:
            nonlocal calls
            calls += 1
            if calls < 3:
                msg = "server error"
                raise RuntimeError(msg)
            return 100

        assert await fetch_head() == 100
        assert recorded_sleeps == [2.0, 4.0]
        assert fetch_head.__name__ == "fetch_head"


class TestLogAndSuppressErrors:
    """Tests for log_and_suppress_errors context manager."""

    @pytest.mark.asyncio
    async def test_suppresses_and_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="src.helpers.retry"):
            async with log_and_suppress_errors("MEV monitor tick"):
                msg = "rpc down"
                raise ValueError(msg)

        assert any("MEV monitor tick failed: rpc down" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_reraises_when_not_suppressing(self) -> None:
        with pytest.raises(ValueError, match="rpc down"):
            async with log_and_suppress_errors("tick", suppress=False):
                msg = "rpc down"
                raise ValueError(msg)
