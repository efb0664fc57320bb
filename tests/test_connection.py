"""Tests for connection utilities."""
import pytest
from netreconcile.utils.connection import call_with_retry, RETRYABLE_EXCEPTIONS


class TestCallWithRetry:
    """Tests for runtime-configured retries."""

    @pytest.mark.asyncio
    async def test_success_no_retry(self):
        """Successful call doesn't retry."""
        call_count = 0

        async def succeeding_func():
            nonlocal call_count
            call_count += 1
            return "success"

        result = await call_with_retry(succeeding_func, attempts=3)
        assert result == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        """Call retries on failure then succeeds."""
        call_count = 0

        async def failing_then_succeeding():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionRefusedError("Connection refused")
            return "success"

        result = await call_with_retry(
            failing_then_succeeding, attempts=3, start_wait=0.01, increment=0.01
        )
        assert result == "success"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        """Last error is re-raised after the last attempt."""
        call_count = 0

        async def always_failing():
            nonlocal call_count
            call_count += 1
            raise TimeoutError("Always times out")

        with pytest.raises(TimeoutError):
            await call_with_retry(always_failing, attempts=3, start_wait=0.01, increment=0.01)
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        call_count = 0

        async def always_failing():
            nonlocal call_count
            call_count += 1
            raise ConnectionResetError("reset")

        with pytest.raises(ConnectionResetError):
            await call_with_retry(always_failing, attempts=1)
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_non_retryable_exception(self):
        """Non-retryable exceptions are not retried."""
        call_count = 0

        async def raises_value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("Not retryable")

        with pytest.raises(ValueError):
            await call_with_retry(raises_value_error, attempts=3, start_wait=0.01)
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_arguments_passed(self):
        async def add(a, b):
            return a + b

        assert await call_with_retry(add, 2, 3) == 5

    def test_retryable_exceptions(self):
        assert ConnectionRefusedError in RETRYABLE_EXCEPTIONS
        assert EOFError in RETRYABLE_EXCEPTIONS
        assert ValueError not in RETRYABLE_EXCEPTIONS
