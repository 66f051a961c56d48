"""
Spark - Keyed critical sections.

Only three kinds of key ever need mutual exclusion:

  ``pair:<low>:<high>``  swipe record + reverse check + match insert
  ``chat:<match_id>``    next message id + insert
  ``otp:<email>``        supersede / consume a challenge

Everything else is partitioned by key and runs without coordination.
``LocalKeyedLocks`` serialises within one event loop; ``RedisKeyedLocks``
extends the same contract across worker processes.
"""

from __future__ import annotations

import asyncio
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Protocol

import structlog
from redis.exceptions import LockError

from spark.exceptions import ConflictError

logger = structlog.get_logger("spark.locks")


class KeyedLocks(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]:
        ...


class LocalKeyedLocks:
    """One ``asyncio.Lock`` per live key; entries vanish once nobody holds
    or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class RedisKeyedLocks:
    """Distributed variant built on redis-py's asyncio ``Lock``."""

    def __init__(
        self,
        redis,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
        prefix: str = "spark:lock",
    ) -> None:
        self._redis = redis
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout
        self._prefix = prefix

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        name = f"{self._prefix}:{key}"
        lock = self._redis.lock(
            name,
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        if not await lock.acquire():
            logger.warning("lock_acquire_timeout", key=key)
            raise ConflictError(f"Resource {key!r} is busy, retry shortly.")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the unique constraints still guard the data.
                logger.warning("lock_release_failed", key=key)


def pair_key(low, high) -> str:
    return f"pair:{low}:{high}"


def chat_key(match_id) -> str:
    return f"chat:{match_id}"


def otp_key(email: str) -> str:
    return f"otp:{email}"
