"""
Tests for the distributed lock manager on both the mock Valkey client and
the in-memory fallback.
"""

import pytest
import asyncio

from helitour.cache.manager import CacheManager
from helitour.cache.utils import key_manager
from helitour.services import DistributedLockManager


@pytest.fixture(params=["valkey", "memory"])
def lock_manager(request, mock_valkey_client):
    client = mock_valkey_client if request.param == "valkey" else None
    return DistributedLockManager(CacheManager(client=client))


class TestDistributedLockManager:

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, lock_manager):
        lock = await lock_manager.acquire_lock("helitour:lock:test", ttl_seconds=5, timeout_seconds=0.1)

        assert lock is not None
        assert lock.ttl_seconds == 5
        assert lock.owner_id == lock_manager.instance_id
        assert "helitour:lock:test" in lock_manager.active_locks
        assert not lock.is_expired

        assert await lock_manager.release_lock(lock) is True
        assert lock_manager.active_locks == {}

    @pytest.mark.asyncio
    async def test_held_lock_times_out(self, lock_manager):
        first = await lock_manager.acquire_lock("helitour:lock:test", timeout_seconds=0.1)

        second = await lock_manager.acquire_lock("helitour:lock:test", timeout_seconds=0.1, retry_delay=0.02)

        assert first is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_ttl_is_capped(self, lock_manager):
        lock = await lock_manager.acquire_lock("helitour:lock:test", ttl_seconds=3600)
        assert lock.ttl_seconds == lock_manager.max_lock_ttl

    @pytest.mark.asyncio
    async def test_release_by_non_owner_is_refused(self, lock_manager):
        lock = await lock_manager.acquire_lock("helitour:lock:test")
        other = DistributedLockManager(lock_manager.cache)
        stolen = await other.acquire_lock("helitour:lock:test", timeout_seconds=0.05)
        assert stolen is None

        lock.lock_value = "someone-else"
        assert await lock_manager.release_lock(lock) is False

    @pytest.mark.asyncio
    async def test_lock_context_releases_on_error(self, lock_manager):
        with pytest.raises(RuntimeError):
            async with lock_manager.lock_context("helitour:lock:test") as lock:
                assert lock is not None
                raise RuntimeError("boom")

        again = await lock_manager.acquire_lock("helitour:lock:test", timeout_seconds=0.05)
        assert again is not None

    @pytest.mark.asyncio
    async def test_flight_hold_lock_serialises(self, lock_manager):
        order = []

        async def worker(name):
            async with lock_manager.flight_hold_lock(7, timeout_seconds=1.0) as lock:
                assert lock is not None
                assert lock.lock_key == key_manager.hold_lock_key(7)
                order.append(f"{name}-in")
                await asyncio.sleep(0.02)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    def test_lock_info_to_dict(self, lock_manager):
        lock = asyncio.run(lock_manager.acquire_lock("helitour:lock:test"))

        info = lock.to_dict()

        assert info["lock_key"] == "helitour:lock:test"
        assert info["is_expired"] is False
        assert "lock_value" not in info
