"""
Connection settings for the Valkey server backing listings and hold locks.
"""

import os
import logging
from dataclasses import dataclass, fields
from typing import Optional, Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from ..utils.config import BookingSettings

logger = logging.getLogger(__name__)


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# dataclass field -> environment variable
ENV_VARIABLES = {
    "host": "VALKEY_HOST",
    "port": "VALKEY_PORT",
    "password": "VALKEY_PASSWORD",
    "database": "VALKEY_DATABASE",
    "max_connections": "VALKEY_MAX_CONNECTIONS",
    "socket_timeout": "VALKEY_SOCKET_TIMEOUT",
    "socket_connect_timeout": "VALKEY_SOCKET_CONNECT_TIMEOUT",
    "retry_on_timeout": "VALKEY_RETRY_ON_TIMEOUT",
    "health_check_interval": "VALKEY_HEALTH_CHECK_INTERVAL",
    "max_connection_attempts": "VALKEY_MAX_CONNECTION_ATTEMPTS",
}


@dataclass
class ValkeyConfig:
    """Where the Valkey server lives and how patiently to talk to it."""

    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0

    # pool and socket behaviour
    max_connections: int = 10
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    retry_on_timeout: bool = True
    decode_responses: bool = True

    # client-side reconnection
    health_check_interval: int = 30
    max_connection_attempts: int = 3

    @classmethod
    def from_env(cls) -> "ValkeyConfig":
        """Read every ``VALKEY_*`` variable that is set; the rest keep their defaults."""
        types = {f.name: f.type for f in fields(cls)}
        values: Dict[str, Any] = {}
        for name, variable in ENV_VARIABLES.items():
            raw = os.getenv(variable)
            if not raw:
                continue
            kind = types[name]
            if kind in (bool, "bool"):
                values[name] = _flag(raw)
            elif kind in (int, "int"):
                values[name] = int(raw)
            elif kind in (float, "float"):
                values[name] = float(raw)
            else:
                values[name] = raw
        return cls(**values)

    @classmethod
    def from_settings(cls, settings: "BookingSettings") -> "ValkeyConfig":
        return cls(
            host=settings.valkey_host,
            port=settings.valkey_port,
            password=settings.valkey_password,
            database=settings.valkey_database,
        )

    def to_connection_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = dict(
            host=self.host,
            port=self.port,
            db=self.database,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_connect_timeout,
            retry_on_timeout=self.retry_on_timeout,
            decode_responses=self.decode_responses,
        )
        if self.password:
            kwargs["password"] = self.password
        return kwargs

    def to_connection_pool_kwargs(self) -> Dict[str, Any]:
        return {**self.to_connection_kwargs(), "max_connections": self.max_connections}

    def __str__(self) -> str:
        secret = "***" if self.password else "None"
        return (
            f"ValkeyConfig({self.host}:{self.port}/{self.database}, "
            f"password={secret}, pool={self.max_connections})"
        )


class ValkeyConnectionError(Exception):
    """Valkey could not be reached or stopped answering."""
