"""
Unit tests for shared configuration, errors and retry helpers.
"""

import pytest
from unittest.mock import AsyncMock

import pydantic

from shared.config import get_config
from shared.errors import MalformedVersionError, StorageError, UnauthorizedError
from shared.logging import clear_context, set_request_id
from shared.retry import RetryConfig, RetryError, _calculate_delay, retry_on_exception


class TestConfig:
    """Test cases for service configuration."""

    def test_defaults(self, monkeypatch):
        """Test default settings."""
        monkeypatch.delenv("HERCULES_SECRET", raising=False)
        config = get_config("patches")

        assert config.service_name == "patches"
        assert config.port == 3000
        assert config.catalog_backend == "postgres"
        assert config.cache_backend == "memory"

    def test_environment_prefix(self, monkeypatch):
        """Test HERCULES_ environment variables are read."""
        monkeypatch.setenv("HERCULES_SECRET", "from-env")
        monkeypatch.setenv("HERCULES_PORT", "8088")
        monkeypatch.setenv("HERCULES_CACHE_BACKEND", "redis")

        config = get_config("patches")

        assert config.secret == "from-env"
        assert config.port == 8088
        assert config.cache_backend == "redis"

    def test_rejects_unknown_backend(self):
        """Test backend names are validated."""
        with pytest.raises(pydantic.ValidationError):
            get_config("patches", catalog_backend="sqlite")


class TestErrors:
    """Test cases for error responses."""

    def test_status_codes(self):
        """Test each error carries its HTTP status."""
        assert MalformedVersionError().status_code == 400
        assert UnauthorizedError().status_code == 401
        assert StorageError().status_code == 500
        assert StorageError(status_code=400).status_code == 400

    def test_response_includes_request_id(self):
        """Test error responses carry the current request id."""
        set_request_id("req-1")
        try:
            response = MalformedVersionError(details={"version": "x"}).to_response()
        finally:
            clear_context()

        assert response.request_id == "req-1"
        assert response.code == "MALFORMED_VERSION"
        assert response.details == {"version": "x"}


class TestRetry:
    """Test cases for the retry decorator."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        """Test transient failures are retried."""
        func = AsyncMock(side_effect=[StorageError("blip"), "ok"])
        wrapped = retry_on_exception((StorageError,), RetryConfig(max_attempts=3, base_delay=0.0))(func)

        assert await wrapped() == "ok"
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_reraise_last_exception(self):
        """Test reraise surfaces the original exception type."""
        func = AsyncMock(side_effect=StorageError("down"))
        wrapped = retry_on_exception((StorageError,), RetryConfig(max_attempts=2, base_delay=0.0),
                                     reraise=True)(func)

        with pytest.raises(StorageError):
            await wrapped()
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_error_when_exhausted(self):
        """Test exhausted retries raise RetryError by default."""
        func = AsyncMock(side_effect=StorageError("down"))
        wrapped = retry_on_exception((StorageError,), RetryConfig(max_attempts=2, base_delay=0.0))(func)

        with pytest.raises(RetryError) as exc_info:
            await wrapped()
        assert isinstance(exc_info.value.last_exception, StorageError)

    @pytest.mark.asyncio
    async def test_other_exceptions_not_retried(self):
        """Test exceptions outside the retry set propagate immediately."""
        func = AsyncMock(side_effect=UnauthorizedError())
        wrapped = retry_on_exception((StorageError,), RetryConfig(max_attempts=3, base_delay=0.0))(func)

        with pytest.raises(UnauthorizedError):
            await wrapped()
        assert func.await_count == 1

    def test_delay_strategies(self):
        """Test backoff delay calculation."""
        exponential = RetryConfig(base_delay=1.0, jitter=False)
        assert _calculate_delay(3, exponential) == 4.0

        linear = RetryConfig(base_delay=1.0, jitter=False, backoff_strategy="linear")
        assert _calculate_delay(3, linear) == 3.0

        capped = RetryConfig(base_delay=10.0, max_delay=15.0, jitter=False)
        assert _calculate_delay(5, capped) == 15.0
