"""Single-writer-per-aggregate locking. In-process asyncio locks, or Redis SET NX EX across nodes."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Protocol

LOCK_PREFIX = "lock:application:"


class AggregateLockTimeoutError(Exception):
    """Raised when an aggregate lock could not be acquired in time."""


class AggregateLock(Protocol):
    """Serializes command execution for one aggregate id."""

    def hold(self, aggregate_id: str) -> "AsyncIterator[None]":
        ...


class LocalAggregateLock:
    """One asyncio.Lock per aggregate id; entries are dropped once nobody holds or waits."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, aggregate_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(aggregate_id, asyncio.Lock())
        self._users[aggregate_id] = self._users.get(aggregate_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[aggregate_id] -= 1
            if self._users[aggregate_id] == 0:
                del self._users[aggregate_id]
                del self._locks[aggregate_id]


class RedisLockBackend(Protocol):
    """Minimal Redis operations for the lock. Injected; no global state."""

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool: ...
    async def delete_if_value(self, key: str, value: str) -> bool: ...


class RedisAggregateLock:
    """
    Distributed lock using Redis SET NX EX, polled until acquired or wait_seconds elapse.
    A unique token per acquire so only the holder can release; TTL prevents deadlock
    if a node dies while holding it.
    """

    def __init__(
        self,
        backend: RedisLockBackend,
        ttl_seconds: int = 30,
        wait_seconds: float = 10.0,
        poll_interval: float = 0.05,
        key_prefix: str = LOCK_PREFIX,
    ) -> None:
        self._backend = backend
        self._ttl = ttl_seconds
        self._wait = wait_seconds
        self._poll = poll_interval
        self._prefix = key_prefix

    def _key(self, aggregate_id: str) -> str:
        return f"{self._prefix}{aggregate_id}"

    async def _acquire(self, key: str, token: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait
        while not await self._backend.set_nx_ex(key, token, self._ttl):
            if loop.time() >= deadline:
                raise AggregateLockTimeoutError(f"Timed out waiting for {key}")
            await asyncio.sleep(self._poll)

    @asynccontextmanager
    async def hold(self, aggregate_id: str) -> AsyncIterator[None]:
        key = self._key(aggregate_id)
        token = str(uuid.uuid4())
        await self._acquire(key, token)
        try:
            yield
        finally:
            await self._backend.delete_if_value(key, token)
