"""Tests for retry with exponential backoff and the retrying store reads."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from config.settings import ResilienceSettings
from database.memory_store import InMemoryDataStore
from database.store import query_with_retry, get_with_retry
from domain.errors import AuthorizationError, StoreError, UnauthenticatedError, ValidationError
from domain.resources import ResourceType
from resilience.retry import RetryConfig, RetryExhausted, async_retry


class TestRetryConfig:
    """Tests for RetryConfig class."""

    def test_default_values(self):
        """Should have sensible defaults."""
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.5
        assert config.max_delay == 30.0
        assert config.backoff_multiplier == 2.0
        assert config.retryable_exceptions == (Exception,)

    def test_calculate_delay_exponential_backoff(self):
        """Delay should increase exponentially."""
        config = RetryConfig(base_delay=1.0, backoff_multiplier=2.0, jitter=0)
        assert config.calculate_delay(1) == 1.0
        assert config.calculate_delay(2) == 2.0
        assert config.calculate_delay(3) == 4.0

    def test_calculate_delay_respects_max(self):
        """Delay should be capped at max_delay."""
        config = RetryConfig(base_delay=10.0, backoff_multiplier=2.0, max_delay=15.0, jitter=0)
        assert config.calculate_delay(2) == 15.0
        assert config.calculate_delay(5) == 15.0

    def test_calculate_delay_with_jitter(self):
        config = RetryConfig(base_delay=1.0, jitter=0.5)
        delays = [config.calculate_delay(1) for _ in range(50)]
        assert all(0.5 <= d <= 1.5 for d in delays)

    def test_authorization_errors_never_retried(self):
        """Even a catch-all config refuses to retry access decisions."""
        config = RetryConfig(retryable_exceptions=(Exception,))
        assert config.should_retry(AuthorizationError()) is False
        assert config.should_retry(UnauthenticatedError()) is False
        assert config.should_retry(StoreError("down")) is True

    def test_from_settings(self):
        settings = ResilienceSettings(retry_max_attempts=5, retry_initial_delay=0.1, retry_jitter=0)
        config = settings.to_retry_config()
        assert config.max_attempts == 5
        assert config.base_delay == 0.1
        assert config.jitter == 0


class TestAsyncRetry:
    """Tests for the async_retry decorator."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")
        wrapped = async_retry(max_attempts=3, base_delay=0)(func)
        assert await wrapped() == "ok"
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[StoreError("blip"), StoreError("blip"), "ok"])
        wrapped = async_retry(max_attempts=3, base_delay=0, jitter=0)(func)
        assert await wrapped() == "ok"
        assert func.call_count == 3

    @pytest.mark.asyncio
    async def test_exhausted(self):
        func = AsyncMock(side_effect=StoreError("down"))
        wrapped = async_retry(max_attempts=2, base_delay=0, jitter=0)(func)
        with pytest.raises(RetryExhausted) as exc_info:
            await wrapped()
        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, StoreError)

    @pytest.mark.asyncio
    async def test_authorization_error_raised_immediately(self):
        func = AsyncMock(side_effect=AuthorizationError())
        wrapped = async_retry(max_attempts=5, base_delay=0)(func)
        with pytest.raises(AuthorizationError):
            await wrapped()
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        callback = MagicMock()
        func = AsyncMock(side_effect=[StoreError("blip"), "ok"])
        wrapped = async_retry(max_attempts=3, base_delay=0, jitter=0, on_retry=callback)(func)
        await wrapped()
        callback.assert_called_once()
        assert callback.call_args[0][0] == 1

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts(self):
        func = AsyncMock(side_effect=[StoreError("blip"), "ok"])
        wrapped = async_retry(max_attempts=2, base_delay=0.25, jitter=0)(func)
        with patch("resilience.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await wrapped()
        sleep.assert_awaited_once_with(0.25)


class TestRetryingReads:
    """Tests for query_with_retry / get_with_retry."""

    @pytest.mark.asyncio
    async def test_transient_read_failure_recovers(self, fast_retry):
        store = InMemoryDataStore()
        original = store.query_resource
        store.query_resource = AsyncMock(side_effect=[StoreError("blip"), await original(ResourceType.INCIDENT)])
        rows = await query_with_retry(store, ResourceType.INCIDENT, retry_config=fast_retry)
        assert rows == []
        assert store.query_resource.call_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_read_surfaces_store_error(self, fast_retry):
        store = InMemoryDataStore()
        store.get_resource = AsyncMock(side_effect=StoreError("down"))
        with pytest.raises(StoreError) as exc_info:
            await get_with_retry(store, ResourceType.PROFILE, "p1", retry_config=fast_retry)
        assert exc_info.value.details["attempts"] == 3
        assert store.get_resource.call_count == 3

    @pytest.mark.asyncio
    async def test_non_transient_errors_not_retried(self, fast_retry):
        store = InMemoryDataStore()
        store.query_resource = AsyncMock(side_effect=ValidationError("bad column", field="x"))
        with pytest.raises(ValidationError):
            await query_with_retry(store, ResourceType.INCIDENT, retry_config=fast_retry)
        assert store.query_resource.call_count == 1
