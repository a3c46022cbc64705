from unittest.mock import AsyncMock, MagicMock

import pytest

from fintrack.db.helpers import DatabaseError
from fintrack.services import notification_service as notification_module
from fintrack.services.infrastructure.redis_client import FastRedisClient
from fintrack.services.notification_service import (
    GMAIL_RECONNECT_ACTION_URL,
    GMAIL_RECONNECT_TITLE,
    NotificationService,
)


@pytest.mark.asyncio
async def test_reconnect_notification(monkeypatch):
    fetch_val = AsyncMock(return_value=42)
    monkeypatch.setattr(notification_module, "fetch_val", fetch_val)

    notification_id = await NotificationService().notify_gmail_reconnect("user-123")

    assert notification_id == "42"
    params = fetch_val.await_args.args[1]
    assert params[0] == "user-123"
    assert params[1] == "gmail_token_error"
    assert params[2] == GMAIL_RECONNECT_TITLE
    assert params[4] == GMAIL_RECONNECT_ACTION_URL


@pytest.mark.asyncio
async def test_notification_failure_is_logged_not_raised(monkeypatch):
    monkeypatch.setattr(
        notification_module, "fetch_val", AsyncMock(side_effect=DatabaseError("insert failed"))
    )
    assert await NotificationService().notify_gmail_reconnect("user-123") is None


@pytest.mark.asyncio
async def test_lock_unavailable_without_redis():
    client = FastRedisClient()
    assert client.configured is False
    assert await client.acquire_lock("k", "t", 60) is None
    assert await client.release_lock("k", "t") is False


@pytest.mark.asyncio
async def test_lock_uses_set_nx_and_token_checked_release():
    client = FastRedisClient()
    client._initialized = True
    client.client = MagicMock()
    client.client.set = AsyncMock(side_effect=[True, None])
    client.client.eval = AsyncMock(return_value=1)

    assert await client.acquire_lock("job:lock", "token-1", 60) is True
    assert await client.acquire_lock("job:lock", "token-2", 60) is False
    client.client.set.assert_awaited_with("job:lock", "token-2", nx=True, ex=60)

    assert await client.release_lock("job:lock", "token-1") is True
    _, numkeys, key, token = client.client.eval.await_args.args
    assert (numkeys, key, token) == (1, "job:lock", "token-1")
