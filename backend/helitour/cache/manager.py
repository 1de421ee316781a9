"""
Cache access for flight listings and hold locks.

Valkey is an accelerator here, never the source of truth: seat and weight
capacity live in the database. When Valkey is missing, failing, or behind
an open circuit breaker, every call is answered by an in-process
MemoryStore with the same semantics, so listings keep working and
per-flight hold locks still serialise callers within one process.
"""

import fnmatch
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Union, Callable, Awaitable

from valkey.exceptions import ConnectionError, TimeoutError, ResponseError

from .client import ValkeyClient
from .config import ValkeyConnectionError
from .utils import TTLCalculator, TTLPreset, key_manager

logger = logging.getLogger(__name__)

CACHE_FAILURES = (ConnectionError, TimeoutError, ResponseError, ValkeyConnectionError)

# Compare-and-delete: only the current owner may remove a lock
COMPARE_AND_DELETE = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


@dataclass
class CacheStats:
    hit_count: int = 0
    miss_count: int = 0
    error_count: int = 0
    set_count: int = 0
    delete_count: int = 0
    total_operations: int = 0
    total_response_time_ms: float = 0.0
    degraded_operations: int = 0
    fallback_operations: int = 0
    start_time: datetime = field(default_factory=datetime.now)

    @property
    def hit_ratio(self) -> float:
        reads = self.hit_count + self.miss_count
        return self.hit_count / reads if reads else 0.0

    @property
    def avg_response_time_ms(self) -> float:
        if not self.total_operations:
            return 0.0
        return self.total_response_time_ms / self.total_operations

    def to_dict(self) -> Dict[str, Any]:
        counters = {
            name: getattr(self, name)
            for name in (
                "hit_count", "miss_count", "error_count", "set_count", "delete_count",
                "total_operations", "degraded_operations", "fallback_operations",
            )
        }
        counters["hit_ratio"] = self.hit_ratio
        counters["avg_response_time_ms"] = self.avg_response_time_ms
        return counters


class MemoryStore:
    """Bounded in-process key/value store with per-key expiry."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> Optional[tuple]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return entry

    def contains(self, key: str) -> bool:
        return self._live(key) is not None

    def get(self, key: str) -> Any:
        entry = self._live(key)
        return entry[0] if entry else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        expires_at = time.monotonic() + ttl if ttl else None
        self._entries[key] = (value, expires_at)

    def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if self.contains(key):
            return False
        self.set(key, value, ttl)
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_if_value(self, key: str, value: Any) -> bool:
        if self.get(key) != value:
            return False
        return self.delete(key)

    def delete_matching(self, pattern: str) -> int:
        doomed = [key for key in self._entries if fnmatch.fnmatch(key, pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()


class CacheManager:
    """
    JSON cache and lock primitives over Valkey with an in-memory fallback.

    ``client=None`` runs on the MemoryStore alone. After
    ``circuit_breaker_threshold`` consecutive Valkey failures the breaker
    opens and calls skip Valkey until ``circuit_breaker_timeout`` seconds
    have passed.
    """

    def __init__(
        self,
        client: Optional[ValkeyClient] = None,
        enable_fallback: bool = True,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_timeout: int = 60
    ):
        self.client = client
        self.enable_fallback = enable_fallback
        self.key_manager = key_manager
        self.ttl_calculator = TTLCalculator()
        self.stats = CacheStats()
        self.memory = MemoryStore()

        self.circuit_breaker_threshold = circuit_breaker_threshold
        self.circuit_breaker_timeout = circuit_breaker_timeout
        self.consecutive_failures = 0
        self.circuit_open_time: Optional[float] = None

        logger.info("CacheManager ready (fallback %s)", "on" if enable_fallback else "off")

    async def initialize(self) -> None:
        """Connect to Valkey, dropping to the MemoryStore if it is unreachable."""
        if self.client is None:
            logger.info("No Valkey client configured, caching in memory")
            return
        try:
            await self.client.connect()
        except ValkeyConnectionError as e:
            if not self.enable_fallback:
                raise
            logger.warning(f"Valkey unavailable, caching in memory: {e}")
            self.client = None
            return
        logger.info("CacheManager connected to Valkey")

    @property
    def is_circuit_open(self) -> bool:
        return self.circuit_open_time is not None

    @property
    def is_degraded(self) -> bool:
        return self.client is None or self.is_circuit_open

    def _circuit_blocks(self) -> bool:
        if not self.is_circuit_open:
            return False
        if time.monotonic() - self.circuit_open_time >= self.circuit_breaker_timeout:
            logger.info("Circuit breaker half-open, retrying Valkey")
            return False
        return True

    def _on_failure(self, error: Exception) -> None:
        logger.warning(f"Cache operation failed: {error}")
        self.stats.error_count += 1
        self.consecutive_failures += 1
        if not self.is_circuit_open and self.consecutive_failures >= self.circuit_breaker_threshold:
            self.circuit_open_time = time.monotonic()
            logger.warning(f"Circuit breaker opened after {self.consecutive_failures} consecutive failures")

    def _on_success(self, started: float) -> None:
        self.stats.total_operations += 1
        self.stats.total_response_time_ms += (time.monotonic() - started) * 1000
        self.consecutive_failures = 0
        if self.is_circuit_open:
            self.circuit_open_time = None
            logger.info("Circuit breaker closed")

    async def _run(self, remote: Callable[[], Awaitable[Any]], local: Callable[[], Any]) -> Any:
        """Try Valkey first and answer from memory when it cannot."""
        if self.client is None:
            return local()

        if self._circuit_blocks():
            self.stats.degraded_operations += 1
            return local() if self.enable_fallback else None

        started = time.monotonic()
        try:
            result = await remote()
        except CACHE_FAILURES as e:
            self._on_failure(e)
            if not self.enable_fallback:
                return None
            self.stats.fallback_operations += 1
            return local()
        self._on_success(started)
        return result

    async def _valkey(self):
        await self.client.ensure_connection()
        return self.client.client

    async def get(self, key: str, default: Any = None) -> Any:
        async def remote():
            raw = (await self._valkey()).get(key)
            if raw is None:
                return None
            try:
                return json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                return raw

        value = await self._run(remote, lambda: self.memory.get(key))
        if value is None:
            self.stats.miss_count += 1
            return default
        self.stats.hit_count += 1
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[Union[int, TTLPreset]] = None,
        jitter: bool = True
    ) -> bool:
        """Store a JSON-serialisable value; TTLs get +/-10% jitter unless ``jitter=False``."""
        seconds = int(ttl) if ttl else None
        if seconds and jitter:
            seconds = self.ttl_calculator.calculate_ttl_with_jitter(seconds)

        async def remote():
            payload = json.dumps(value)
            valkey = await self._valkey()
            if seconds:
                return bool(valkey.setex(key, seconds, payload))
            return bool(valkey.set(key, payload))

        def local():
            self.memory.set(key, value, seconds)
            return True

        stored = bool(await self._run(remote, local))
        if stored:
            self.stats.set_count += 1
        return stored

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """SET NX EX: True only for the caller that created the key."""
        async def remote():
            return bool((await self._valkey()).set(key, value, nx=True, ex=ttl))

        return bool(await self._run(remote, lambda: self.memory.add(key, value, ttl)))

    async def delete_if_value(self, key: str, value: str) -> bool:
        """Delete ``key`` only while it still holds ``value``."""
        async def remote():
            return bool((await self._valkey()).eval(COMPARE_AND_DELETE, 1, key, value))

        return bool(await self._run(remote, lambda: self.memory.delete_if_value(key, value)))

    async def delete(self, key: str) -> bool:
        async def remote():
            return bool((await self._valkey()).delete(key))

        deleted = bool(await self._run(remote, lambda: self.memory.delete(key)))
        if deleted:
            self.stats.delete_count += 1
        return deleted

    async def clear_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern, in Valkey and in memory."""
        async def remote():
            valkey = await self._valkey()
            keys = list(valkey.scan_iter(match=pattern))
            return valkey.delete(*keys) if keys else 0

        # Entries written to memory during an outage must not outlive it
        deleted = self.memory.delete_matching(pattern) if self.client is not None else 0
        deleted += await self._run(remote, lambda: self.memory.delete_matching(pattern)) or 0
        self.stats.delete_count += deleted
        return deleted

    async def health_check(self) -> Dict[str, Any]:
        health: Dict[str, Any] = {
            "status": "degraded",
            "cache_available": False,
            "fallback_active": True,
            "circuit_breaker_open": self.is_circuit_open,
            "stats": self.stats.to_dict(),
        }
        if self.client is None:
            return health

        reachable = await self.client.health_check(force=True)
        serving = reachable and not self.is_circuit_open
        health.update(
            status="healthy" if serving else "degraded",
            cache_available=reachable,
            fallback_active=not serving,
            connection_info=self.client.get_connection_info(),
        )
        return health

    async def close(self) -> None:
        if self.client is not None:
            await self.client.disconnect()
        self.memory.clear()
        logger.info("CacheManager closed")
