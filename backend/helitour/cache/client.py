"""
Thin Valkey connection holder used by the CacheManager.

Connecting retries with exponential backoff. After the last attempt fails,
ValkeyConnectionError is raised and the manager falls back to its
in-memory store.
"""

import asyncio
import logging
import time
from typing import Optional, Any, Dict

import valkey
from valkey.connection import ConnectionPool
from valkey.exceptions import ConnectionError, TimeoutError

from .config import ValkeyConfig, ValkeyConnectionError

logger = logging.getLogger(__name__)

BACKOFF_START = 0.5
BACKOFF_CAP = 10.0


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after the given (1-based) failed attempt."""
    return min(BACKOFF_START * 2 ** (attempt - 1), BACKOFF_CAP)


class ValkeyClient:
    """Owns one connection pool and knows whether it is still usable."""

    def __init__(self, config: Optional[ValkeyConfig] = None):
        self.config = config or ValkeyConfig.from_env()
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[valkey.Valkey] = None
        self._healthy = False
        self._checked_at = 0.0

        logger.info(f"Valkey client configured: {self.config}")

    def _ping(self) -> None:
        if self._client is None:
            raise ValkeyConnectionError("Client not initialized")
        try:
            answered = self._client.ping()
        except (ConnectionError, TimeoutError, OSError) as e:
            raise ValkeyConnectionError(f"Ping failed: {e}") from e
        if not answered:
            raise ValkeyConnectionError("Ping returned False")

    async def connect(self) -> None:
        """Open the pool and ping the server, retrying with backoff."""
        if self.is_connected:
            return

        attempts = self.config.max_connection_attempts
        for attempt in range(1, attempts + 1):
            self._pool = ConnectionPool(**self.config.to_connection_pool_kwargs())
            self._client = valkey.Valkey(connection_pool=self._pool)
            try:
                self._ping()
            except ValkeyConnectionError as e:
                logger.warning(f"Valkey connection attempt {attempt}/{attempts} failed: {e}")
                if attempt == attempts:
                    raise ValkeyConnectionError(
                        f"Failed to connect to Valkey after {attempts} attempts: {e}"
                    ) from e
                await asyncio.sleep(backoff_delay(attempt))
            else:
                self._healthy = True
                logger.info(f"Connected to Valkey at {self.config.host}:{self.config.port}")
                return

    async def disconnect(self) -> None:
        pool, self._pool = self._pool, None
        self._client = None
        self._healthy = False
        if pool is None:
            return
        try:
            pool.disconnect()
        except (ConnectionError, OSError) as e:
            logger.warning(f"Error while closing Valkey pool: {e}")
        else:
            logger.info("Disconnected from Valkey")

    async def health_check(self, force: bool = False) -> bool:
        """Ping at most once per ``health_check_interval`` unless forced."""
        now = time.time()
        if not force and now - self._checked_at < self.config.health_check_interval:
            return self._healthy
        self._checked_at = now

        if not self.is_connected:
            return False
        try:
            self._ping()
        except ValkeyConnectionError as e:
            logger.warning(f"Valkey health check failed: {e}")
            self._healthy = False
        return self._healthy

    async def ensure_connection(self) -> None:
        if await self.health_check():
            return
        logger.info("Valkey connection unhealthy, reconnecting")
        self._healthy = False
        await self.connect()

    @property
    def is_connected(self) -> bool:
        return self._healthy and self._client is not None

    @property
    def client(self) -> valkey.Valkey:
        if not self.is_connected:
            raise ValkeyConnectionError("Client not connected. Call connect() first.")
        return self._client

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "config": str(self.config),
            "last_health_check": self._checked_at,
        }

    async def __aenter__(self) -> "ValkeyClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
