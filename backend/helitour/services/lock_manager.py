"""
Per-flight locks for hold creation.

A lock is a cache key written with SET NX EX whose value identifies the
owner. Only that owner can delete it, and the TTL frees it if the owner
dies mid-section. Without Valkey the same calls land in the CacheManager's
MemoryStore, which serialises callers inside one process only.
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, AsyncIterator

from ..cache.manager import CacheManager
from ..cache.utils import TTLPreset, key_manager

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    lock_key: str
    lock_value: str
    acquired_at: datetime
    expires_at: datetime
    ttl_seconds: int
    owner_id: str

    @property
    def is_expired(self) -> bool:
        return datetime.now() > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        # lock_value is the release token and stays private
        return {
            "lock_key": self.lock_key,
            "owner_id": self.owner_id,
            "ttl_seconds": self.ttl_seconds,
            "acquired_at": self.acquired_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "is_expired": self.is_expired,
        }


class DistributedLockManager:
    """Acquires and releases owner-tagged locks through a CacheManager."""

    max_lock_ttl = 300
    lock_retry_delay = 0.05

    def __init__(self, cache_manager: CacheManager):
        self.cache = cache_manager
        self.instance_id = uuid.uuid4().hex[:8]
        self.default_lock_ttl = int(TTLPreset.HOLD_LOCK)
        self.active_locks: Dict[str, LockInfo] = {}

        logger.info(f"Lock manager {self.instance_id} ready")

    def _token(self) -> str:
        return f"{self.instance_id}:{uuid.uuid4().hex}"

    async def acquire_lock(
        self,
        lock_key: str,
        ttl_seconds: Optional[int] = None,
        timeout_seconds: float = 5.0,
        retry_delay: Optional[float] = None
    ) -> Optional[LockInfo]:
        """
        Poll for ``lock_key`` until it is ours or ``timeout_seconds`` runs out.

        The TTL is capped at ``max_lock_ttl``. Returns None on timeout.
        """
        ttl = min(ttl_seconds or self.default_lock_ttl, self.max_lock_ttl)
        delay = retry_delay or self.lock_retry_delay
        token = self._token()
        deadline = time.monotonic() + timeout_seconds
        attempts = 0

        while True:
            attempts += 1
            if await self.cache.set_if_absent(lock_key, token, ttl):
                break
            if time.monotonic() + delay > deadline:
                logger.warning(f"Gave up on lock {lock_key} after {attempts} attempt(s)")
                return None
            await asyncio.sleep(delay)

        now = datetime.now()
        lock = LockInfo(
            lock_key=lock_key,
            lock_value=token,
            acquired_at=now,
            expires_at=now + timedelta(seconds=ttl),
            ttl_seconds=ttl,
            owner_id=self.instance_id,
        )
        self.active_locks[lock_key] = lock
        logger.debug(f"Acquired lock {lock_key} after {attempts} attempt(s)")
        return lock

    async def release_lock(self, lock_info: LockInfo) -> bool:
        """Release the lock; False when it already expired or changed hands."""
        self.active_locks.pop(lock_info.lock_key, None)
        released = await self.cache.delete_if_value(lock_info.lock_key, lock_info.lock_value)
        if not released:
            logger.warning(f"Lock {lock_info.lock_key} was no longer ours to release")
        return released

    @asynccontextmanager
    async def lock_context(
        self,
        lock_key: str,
        ttl_seconds: Optional[int] = None,
        timeout_seconds: float = 5.0
    ) -> AsyncIterator[Optional[LockInfo]]:
        """Yield the LockInfo, or None on timeout, and always release what was taken."""
        lock = await self.acquire_lock(lock_key, ttl_seconds, timeout_seconds)
        try:
            yield lock
        finally:
            if lock is not None:
                await self.release_lock(lock)

    @asynccontextmanager
    async def flight_hold_lock(self, flight_id: int, timeout_seconds: float = 5.0) -> AsyncIterator[Optional[LockInfo]]:
        async with self.lock_context(key_manager.hold_lock_key(flight_id), timeout_seconds=timeout_seconds) as lock:
            yield lock
