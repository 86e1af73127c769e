"""
Tests for the bounded retry primitive.
"""

import pytest
from unittest.mock import AsyncMock

from src.engine.retry import retry_with_delay
from src.errors import RetryExhaustedError


class TestRetryWithDelay:

    @pytest.mark.asyncio
    async def test_returns_first_success_without_retrying(self):
        operation = AsyncMock(return_value="ok")

        result = await retry_with_delay(
            operation, max_retries=3, delay_ms=0, description="op"
        )

        assert result == "ok"
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_rejected_results_until_success(self):
        operation = AsyncMock(side_effect=[False, False, True])

        result = await retry_with_delay(
            operation, max_retries=3, delay_ms=0, description="op", is_success=bool
        )

        assert result is True
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_exceptions_count_as_failed_attempts(self):
        operation = AsyncMock(side_effect=[RuntimeError("boom"), "ok"])

        result = await retry_with_delay(
            operation, max_retries=1, delay_ms=0, description="op"
        )

        assert result == "ok"
        assert operation.await_count == 2

    @pytest.mark.parametrize("max_retries", [0, 1, 3])
    @pytest.mark.asyncio
    async def test_makes_exactly_max_retries_plus_one_attempts(self, max_retries):
        operation = AsyncMock(return_value=False)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_with_delay(
                operation,
                max_retries=max_retries,
                delay_ms=0,
                description="op",
                is_success=bool,
            )

        assert operation.await_count == max_retries + 1
        assert exc_info.value.attempts == max_retries + 1
        assert exc_info.value.last_result is False
        assert exc_info.value.last_error is None

    @pytest.mark.asyncio
    async def test_exhaustion_keeps_last_exception(self):
        error = ConnectionError("down")
        operation = AsyncMock(side_effect=[False, error])

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_with_delay(
                operation, max_retries=1, delay_ms=0, description="op", is_success=bool
            )

        assert exc_info.value.last_error is error
        assert exc_info.value.last_result is None

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts_only(self, monkeypatch):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr("src.engine.retry.asyncio.sleep", fake_sleep)
        operation = AsyncMock(return_value=False)

        with pytest.raises(RetryExhaustedError):
            await retry_with_delay(
                operation, max_retries=2, delay_ms=250, description="op", is_success=bool
            )

        assert delays == [0.25, 0.25]
