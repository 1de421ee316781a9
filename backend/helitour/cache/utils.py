"""
Cache key naming and TTL helpers.

Writers and invalidators both build keys here, so a listing written under
one key is always matched by the pattern that clears it.
"""

import random
from datetime import date
from enum import Enum
from typing import Any, Optional, Union


class CacheKeyPrefix(str, Enum):
    FLIGHT_LISTING = "helitour:flights"
    HOLD_LOCK = "helitour:lock:hold"


class TTLPreset(int, Enum):
    """Seconds."""

    NEAR_REAL_TIME = 30     # public listings show naive availability
    HOLD_LOCK = 10          # longest a hold critical section may run


MAX_KEY_LENGTH = 250
FORBIDDEN_KEY_CHARS = frozenset("\n\r\t ")


def _prefix_text(prefix: Union[CacheKeyPrefix, str]) -> str:
    return prefix.value if isinstance(prefix, CacheKeyPrefix) else str(prefix)


class CacheKeyBuilder:

    @staticmethod
    def build_key(prefix: Union[CacheKeyPrefix, str], *parts: Any, **params: Any) -> str:
        """
        Join the prefix, positional parts and ``name=value`` params with colons.

        None values are dropped and params are sorted by name, so
        ``build_key(FLIGHT_LISTING, limit=20, date="2026-06-01")`` is
        ``"helitour:flights:date=2026-06-01:limit=20"``.
        """
        segments = [_prefix_text(prefix)]
        segments += [str(part) for part in parts if part is not None]
        segments += [f"{name}={value}" for name, value in sorted(params.items()) if value is not None]
        return ":".join(segments)

    @staticmethod
    def build_pattern(prefix: Union[CacheKeyPrefix, str], *parts: str) -> str:
        return ":".join([_prefix_text(prefix), *parts])


class TTLCalculator:

    @staticmethod
    def calculate_ttl_with_jitter(
        base_ttl: Union[int, TTLPreset],
        jitter_percent: float = 0.1,
        min_ttl: int = 1
    ) -> int:
        """Spread expiries by +/- ``jitter_percent`` so listings don't all expire together."""
        seconds = int(base_ttl)
        spread = int(seconds * jitter_percent)
        return max(seconds + random.randint(-spread, spread), min_ttl)


class CacheKeyManager:
    """Every key the booking core writes."""

    def __init__(self):
        self.key_builder = CacheKeyBuilder()

    def flight_listing_key(self, limit: int, on_date: Optional[date] = None, from_date: Optional[date] = None) -> str:
        # A date filter makes the lower bound irrelevant
        since = from_date.isoformat() if from_date and not on_date else None
        return self.key_builder.build_key(
            CacheKeyPrefix.FLIGHT_LISTING,
            limit=limit,
            date=on_date.isoformat() if on_date else None,
            since=since,
        )

    def flight_listing_pattern(self) -> str:
        return self.key_builder.build_pattern(CacheKeyPrefix.FLIGHT_LISTING, "*")

    def hold_lock_key(self, flight_id: Union[str, int]) -> str:
        return self.key_builder.build_key(CacheKeyPrefix.HOLD_LOCK, flight_id)

    def validate_key(self, key: str) -> bool:
        if not isinstance(key, str) or not key or len(key) > MAX_KEY_LENGTH:
            return False
        return FORBIDDEN_KEY_CHARS.isdisjoint(key)


key_manager = CacheKeyManager()
