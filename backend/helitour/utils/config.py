"""
Environment configuration loader with validation for the helitour booking core.
"""

import logging
import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv
from rich.logging import RichHandler

from ..models.enums import CommitMode


class BookingSettings(BaseModel):
    """Configuration model for the booking core with validation."""

    # Database Configuration
    # None defers to DB_TYPE / DB_HOST / ... resolution in the database layer
    database_url: Optional[str] = Field(
        default=None, description="Database connection URL"
    )

    # Valkey Cache Configuration
    valkey_host: str = Field(default="localhost", description="Valkey server host")
    valkey_port: int = Field(
        default=6379, ge=1, le=65535, description="Valkey server port"
    )
    valkey_password: Optional[str] = Field(
        default=None, description="Valkey server password"
    )
    valkey_database: int = Field(
        default=0, ge=0, le=15, description="Valkey database number"
    )

    # Application Configuration
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Booking Policy
    booking_reference_prefix: str = Field(
        default="HT", min_length=1, max_length=8, description="Booking reference prefix"
    )
    commit_mode: CommitMode = Field(
        default=CommitMode.ATOMIC, description="Booking commit strategy"
    )
    ledger_max_retries: int = Field(
        default=10, ge=1, description="Compare-and-swap attempts per ledger write"
    )
    availability_cache_ttl: int = Field(
        default=30, ge=0, description="Flight listing cache TTL in seconds"
    )
    low_availability_ratio: float = Field(
        default=0.25, ge=0.0, le=1.0, description="Free-seat ratio at or below which availability is low"
    )
    hold_lock_timeout_seconds: float = Field(
        default=5.0, gt=0, description="How long a hold request waits for the flight lock"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("booking_reference_prefix")
    @classmethod
    def validate_reference_prefix(cls, v: str) -> str:
        """References are printed on tickets; keep the prefix plain uppercase."""
        if not v.isalnum():
            raise ValueError("Booking reference prefix must be alphanumeric")
        return v.upper()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


def load_config(env_file: Optional[str] = None) -> BookingSettings:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        BookingSettings: Validated configuration object

    Raises:
        ValueError: If configuration is invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    config_data: Dict[str, Any] = {
        "database_url": os.getenv("DATABASE_URL") or None,
        "valkey_host": os.getenv("VALKEY_HOST", "localhost"),
        "valkey_port": os.getenv("VALKEY_PORT", "6379"),
        "valkey_password": os.getenv("VALKEY_PASSWORD") or None,
        "valkey_database": os.getenv("VALKEY_DATABASE", "0"),
        "debug": _env_flag("DEBUG"),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "booking_reference_prefix": os.getenv("BOOKING_REFERENCE_PREFIX", "HT"),
        "commit_mode": os.getenv("COMMIT_MODE", CommitMode.ATOMIC.value).lower(),
        "ledger_max_retries": os.getenv("LEDGER_MAX_RETRIES", "10"),
        "availability_cache_ttl": os.getenv("AVAILABILITY_CACHE_TTL", "30"),
        "low_availability_ratio": os.getenv("LOW_AVAILABILITY_RATIO", "0.25"),
        "hold_lock_timeout_seconds": os.getenv("HOLD_LOCK_TIMEOUT_SECONDS", "5"),
    }

    try:
        return BookingSettings(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


def setup_logging(level: str = "INFO") -> None:
    """Route all log records through a rich console handler."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Global configuration instance
_config: Optional[BookingSettings] = None


def get_config() -> BookingSettings:
    """
    Get the global configuration instance, loading it if necessary.

    Returns:
        BookingSettings: The global configuration object
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
