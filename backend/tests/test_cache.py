"""
Tests for the cache layer: key naming, the CacheManager against a mock
Valkey client, and graceful degradation to the in-memory fallback.
"""

import pytest
from datetime import date
from unittest.mock import AsyncMock, patch

from helitour.cache import (
    CacheKeyBuilder,
    CacheKeyPrefix,
    CacheManager,
    TTLCalculator,
    TTLPreset,
    ValkeyClient,
    ValkeyConfig,
    ValkeyConnectionError,
    key_manager,
)


@pytest.fixture
def valkey_cache(mock_valkey_client):
    return CacheManager(client=mock_valkey_client, circuit_breaker_threshold=3)


class TestKeys:

    def test_listing_keys_are_stable(self):
        assert key_manager.flight_listing_key(20, from_date=date(2026, 6, 1)) == "helitour:flights:limit=20:since=2026-06-01"
        assert key_manager.flight_listing_key(100, on_date=date(2026, 6, 2), from_date=date(2026, 6, 1)) == (
            "helitour:flights:date=2026-06-02:limit=100"
        )

    def test_listing_pattern_matches_every_listing(self):
        assert key_manager.flight_listing_pattern() == "helitour:flights:*"

    def test_hold_lock_key(self):
        assert key_manager.hold_lock_key(42) == "helitour:lock:hold:42"

    def test_build_key_skips_none(self):
        assert CacheKeyBuilder.build_key(CacheKeyPrefix.HOLD_LOCK, None, "x", a=None, b=1) == "helitour:lock:hold:x:b=1"

    @pytest.mark.parametrize("key, valid", [
        ("helitour:flights:limit=20", True),
        ("", False),
        ("has space", False),
        ("x" * 251, False),
    ])
    def test_validate_key(self, key, valid):
        assert key_manager.validate_key(key) is valid

    def test_ttl_jitter_stays_in_range(self):
        for _ in range(50):
            ttl = TTLCalculator.calculate_ttl_with_jitter(TTLPreset.NEAR_REAL_TIME, 0.1)
            assert 27 <= ttl <= 33
        assert TTLCalculator.calculate_ttl_with_jitter(1, 0.5) == 1


class TestValkeyConfig:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VALKEY_HOST", "cache.internal")
        monkeypatch.setenv("VALKEY_PORT", "6380")
        monkeypatch.setenv("VALKEY_PASSWORD", "secret")

        config = ValkeyConfig.from_env()

        assert config.host == "cache.internal"
        assert config.port == 6380
        assert config.to_connection_kwargs()["password"] == "secret"
        assert "secret" not in str(config)

    def test_pool_kwargs(self):
        kwargs = ValkeyConfig(max_connections=4).to_connection_pool_kwargs()

        assert kwargs["max_connections"] == 4
        assert "password" not in kwargs


class TestCacheManager:

    @pytest.mark.asyncio
    async def test_set_and_get_json(self, valkey_cache, mock_valkey_client):
        await valkey_cache.set("helitour:flights:limit=20", [{"flight_id": 1}], ttl=30)

        assert await valkey_cache.get("helitour:flights:limit=20") == [{"flight_id": 1}]
        assert 27 <= mock_valkey_client.ttls["helitour:flights:limit=20"] <= 33
        assert valkey_cache.stats.hit_count == 1

    @pytest.mark.asyncio
    async def test_get_missing_returns_default(self, valkey_cache):
        assert await valkey_cache.get("nope", default="fallback") == "fallback"
        assert valkey_cache.stats.miss_count == 1

    @pytest.mark.asyncio
    async def test_set_if_absent(self, valkey_cache, mock_valkey_client):
        assert await valkey_cache.set_if_absent("lock", "owner-1", 10) is True
        assert await valkey_cache.set_if_absent("lock", "owner-2", 10) is False
        assert mock_valkey_client.data["lock"] == "owner-1"

    @pytest.mark.asyncio
    async def test_delete_if_value_checks_owner(self, valkey_cache, mock_valkey_client):
        await valkey_cache.set_if_absent("lock", "owner-1", 10)

        assert await valkey_cache.delete_if_value("lock", "owner-2") is False
        assert await valkey_cache.delete_if_value("lock", "owner-1") is True
        assert "lock" not in mock_valkey_client.data

    @pytest.mark.asyncio
    async def test_clear_pattern(self, valkey_cache, mock_valkey_client):
        await valkey_cache.set("helitour:flights:limit=20", [], ttl=30)
        await valkey_cache.set("helitour:flights:limit=100", [], ttl=30)
        await valkey_cache.set("helitour:lock:hold:1", "x")

        assert await valkey_cache.clear_pattern(key_manager.flight_listing_pattern()) == 2
        assert list(mock_valkey_client.data) == ["helitour:lock:hold:1"]

    @pytest.mark.asyncio
    async def test_falls_back_when_valkey_fails(self, valkey_cache, mock_valkey_client):
        mock_valkey_client.fail = True

        assert await valkey_cache.set("k", {"a": 1}) is True
        assert await valkey_cache.get("k") == {"a": 1}
        assert valkey_cache.stats.fallback_operations == 2
        assert valkey_cache.stats.error_count == 2

    @pytest.mark.asyncio
    async def test_clear_pattern_removes_fallback_entries(self, valkey_cache, mock_valkey_client):
        mock_valkey_client.fail = True
        await valkey_cache.set("helitour:flights:limit=20", [])
        mock_valkey_client.fail = False

        await valkey_cache.clear_pattern(key_manager.flight_listing_pattern())

        assert await valkey_cache.get("helitour:flights:limit=20") is None

    @pytest.mark.asyncio
    async def test_circuit_breaker_opens_and_closes(self, valkey_cache, mock_valkey_client):
        mock_valkey_client.fail = True
        for _ in range(3):
            await valkey_cache.get("k")
        assert valkey_cache.is_circuit_open
        assert valkey_cache.is_degraded

        # Valkey is back, but the open circuit keeps traffic on the fallback
        mock_valkey_client.fail = False
        await valkey_cache.get("k")
        assert mock_valkey_client.commands == []
        assert valkey_cache.stats.degraded_operations == 1

        valkey_cache.circuit_breaker_timeout = 0
        await valkey_cache.get("k")
        assert mock_valkey_client.commands == [("get", "k")]
        assert not valkey_cache.is_circuit_open

    @pytest.mark.asyncio
    async def test_health_check(self, valkey_cache, mock_valkey_client):
        health = await valkey_cache.health_check()
        assert health["status"] == "healthy"

        mock_valkey_client.fail = True
        health = await valkey_cache.health_check()
        assert health["status"] == "degraded"
        assert health["fallback_active"]


class TestFallbackOnly:

    @pytest.mark.asyncio
    async def test_memory_operations(self, cache):
        assert cache.is_degraded
        assert await cache.set_if_absent("lock", "a", 10)
        assert not await cache.set_if_absent("lock", "b", 10)
        assert await cache.delete_if_value("lock", "a")
        assert await cache.set_if_absent("lock", "b", 10)

    @pytest.mark.asyncio
    async def test_health_reports_degraded(self, cache):
        health = await cache.health_check()

        assert health["status"] == "degraded"
        assert health["fallback_active"]

    @pytest.mark.asyncio
    async def test_unreachable_valkey_drops_to_fallback(self):
        client = ValkeyClient(ValkeyConfig(max_connection_attempts=1))
        manager = CacheManager(client=client)

        with patch.object(client, "connect", new_callable=AsyncMock, side_effect=ValkeyConnectionError("refused")):
            await manager.initialize()

        assert manager.client is None
        assert await manager.set("k", 1)
        assert await manager.get("k") == 1

    @pytest.mark.asyncio
    async def test_unreachable_valkey_without_fallback(self):
        client = ValkeyClient(ValkeyConfig(max_connection_attempts=1))
        manager = CacheManager(client=client, enable_fallback=False)

        with patch.object(client, "connect", new_callable=AsyncMock, side_effect=ValkeyConnectionError("refused")):
            with pytest.raises(ValkeyConnectionError):
                await manager.initialize()
