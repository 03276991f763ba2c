"""Tests for the retry helper."""

from unittest.mock import AsyncMock

import pytest

from helper_bot.infra.retry import retry_async


class AuthError(Exception):
    pass


def is_auth(error: BaseException) -> bool:
    return isinstance(error, AuthError)


class TestRetryAsync:
    """Test bounded retry of a single attempt function."""

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self):
        attempt = AsyncMock(return_value="ok")
        refresh = AsyncMock()

        assert await retry_async(attempt, should_retry=is_auth, before_retry=refresh) == "ok"
        attempt.assert_awaited_once()
        refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_once_after_hook(self):
        attempt = AsyncMock(side_effect=[AuthError("expired"), "ok"])
        refresh = AsyncMock()

        assert await retry_async(attempt, should_retry=is_auth, before_retry=refresh) == "ok"
        assert attempt.await_count == 2
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempt = AsyncMock(side_effect=AuthError("expired"))

        with pytest.raises(AuthError):
            await retry_async(attempt, should_retry=is_auth, max_retries=1)
        assert attempt.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        attempt = AsyncMock(side_effect=RuntimeError("boom"))
        refresh = AsyncMock()

        with pytest.raises(RuntimeError):
            await retry_async(attempt, should_retry=is_auth, before_retry=refresh)
        attempt.assert_awaited_once()
        refresh.assert_not_awaited()
