"""RedisClient as the lock backend, against a mocked redis.asyncio client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from filplus.infrastructure.cache.redis_client import RedisClient

KEY = "lock:application:app-1"


def _client(**methods) -> tuple[RedisClient, MagicMock]:
    raw = MagicMock()
    for name, mock in methods.items():
        setattr(raw, name, mock)
    return RedisClient("redis://localhost:6379/0", client=raw), raw


@pytest.mark.asyncio
async def test_set_nx_ex():
    client, raw = _client(set=AsyncMock(side_effect=[True, None]))
    assert await client.set_nx_ex(KEY, "token", 30) is True
    assert await client.set_nx_ex(KEY, "token", 30) is False
    raw.set.assert_awaited_with(KEY, "token", nx=True, ex=30)


@pytest.mark.asyncio
async def test_delete_if_value_runs_atomic_script():
    client, raw = _client(eval=AsyncMock(side_effect=[1, 0]))
    assert await client.delete_if_value(KEY, "token") is True
    assert await client.delete_if_value(KEY, "someone-else") is False
    assert raw.eval.await_args_list[0].args[1:] == (1, KEY, "token")


@pytest.mark.asyncio
async def test_close():
    client, raw = _client(aclose=AsyncMock())
    await client.close()
    raw.aclose.assert_awaited_once()
