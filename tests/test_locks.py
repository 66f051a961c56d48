"""Unit tests for keyed critical sections."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import LockNotOwnedError

from spark.exceptions import ConflictError
from spark.services.locks import LocalKeyedLocks, RedisKeyedLocks, pair_key


class TestLocalKeyedLocks:

    async def test_same_key_serialised(self):
        locks = LocalKeyedLocks()
        events = []

        async def worker(name):
            async with locks.hold("k"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert events in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    async def test_distinct_keys_overlap(self):
        locks = LocalKeyedLocks()
        inside = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with locks.hold("k1"):
                inside.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await inside.wait()
        async with locks.hold("k2"):
            pass  # does not wait for k1
        release.set()
        await task

    async def test_entries_dropped_after_release(self):
        locks = LocalKeyedLocks()
        async with locks.hold("k"):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_released_on_error(self):
        locks = LocalKeyedLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")
        async with locks.hold("k"):
            pass
        assert len(locks) == 0


class TestRedisKeyedLocks:

    def _redis(self, acquired=True):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=acquired)
        lock.release = AsyncMock()
        redis = MagicMock()
        redis.lock.return_value = lock
        return redis, lock

    async def test_acquire_and_release(self):
        redis, lock = self._redis()
        locks = RedisKeyedLocks(redis, timeout=3.0, blocking_timeout=1.0)

        async with locks.hold(pair_key("a", "b")):
            lock.release.assert_not_awaited()

        redis.lock.assert_called_once_with(
            "spark:lock:pair:a:b", timeout=3.0, blocking_timeout=1.0
        )
        lock.acquire.assert_awaited_once()
        lock.release.assert_awaited_once()

    async def test_busy_raises_conflict(self):
        redis, lock = self._redis(acquired=False)
        locks = RedisKeyedLocks(redis)

        with pytest.raises(ConflictError):
            async with locks.hold("chat:1"):
                pytest.fail("body must not run")
        lock.release.assert_not_awaited()

    async def test_expired_lock_release_tolerated(self):
        redis, lock = self._redis()
        lock.release.side_effect = LockNotOwnedError("expired")
        locks = RedisKeyedLocks(redis)

        async with locks.hold("otp:a@x.com"):
            pass
        lock.release.assert_awaited_once()
