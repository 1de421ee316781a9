"""
Shared fixtures for the helitour test suite.

Tests run against in-memory SQLite unless they need real concurrent
writers, in which case they use a file-backed database under tmp_path.
The cache runs on the CacheManager's in-memory fallback, or on
MockValkeyClient where Valkey command behaviour matters.
"""

import fnmatch
from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest

from helitour.cache.manager import CacheManager
from helitour.database.config import DatabaseConfig
from helitour.database.store import BookingStore
from helitour.models import BookingRequest, PassengerInput
from helitour.services.container import build_services
from helitour.utils.config import BookingSettings


class MockValkeyClient:
    """Mock Valkey client for testing."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.client = self
        self.fail = False
        self.commands = []

    def _check(self):
        if self.fail:
            from valkey.exceptions import ConnectionError
            raise ConnectionError("Mock connection refused")

    # ValkeyClient surface
    async def connect(self):
        self._check()

    async def disconnect(self):
        pass

    async def health_check(self, force=False):
        return not self.fail

    async def ensure_connection(self):
        self._check()

    def get_connection_info(self):
        return {"is_connected": not self.fail, "config": "MockValkeyClient"}

    # Valkey commands
    def ping(self):
        self._check()
        return True

    def get(self, key):
        """Mock GET operation."""
        self._check()
        self.commands.append(("get", key))
        return self.data.get(key)

    def set(self, key, value, nx=False, ex=None):
        """Mock SET operation."""
        self._check()
        self.commands.append(("set", key))
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex:
            self.ttls[key] = ex
        return True

    def setex(self, key, ttl, value):
        """Mock SETEX operation."""
        self._check()
        self.commands.append(("setex", key))
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        """Mock DELETE operation."""
        self._check()
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    def scan_iter(self, match="*"):
        self._check()
        return [key for key in list(self.data) if fnmatch.fnmatch(key, match)]

    def eval(self, script, num_keys, *args):
        """Mock EVAL operation for the owner-checked release script."""
        self._check()
        if "get" in script and "del" in script:
            key, expected_value = args[0], args[1]
            if self.data.get(key) == expected_value:
                self.data.pop(key, None)
                return 1
            return 0
        return 0


class FixedClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


START = datetime(2026, 6, 1, 9, 0, 0)
FLIGHT_DATE = date(2026, 6, 2)


def make_request(flight_id, weights, **overrides) -> BookingRequest:
    """Booking request with one named passenger per weight."""
    data = dict(
        flight_id=flight_id,
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        customer_phone="+44 20 7946 0000",
        passengers=[
            PassengerInput(name=f"Traveler {i}", weight_kg=Decimal(str(w)))
            for i, w in enumerate(weights, start=1)
        ],
    )
    data.update(overrides)
    return BookingRequest(**data)


def seed_flight(store, max_passengers=4, max_weight_kg="400", scheduled_date=FLIGHT_DATE, scheduled_time=time(10, 0)):
    route = store.create_route("Harbour Lights", "City Heliport", "Harbour", 15, Decimal("149.00"))
    return store.create_flight(
        route.route_id, scheduled_date, scheduled_time, max_passengers, Decimal(max_weight_kg)
    )


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def db_config():
    config = DatabaseConfig(database_url="sqlite:///:memory:")
    config.create_tables()
    yield config
    config.close()


@pytest.fixture
def file_db_config(tmp_path):
    config = DatabaseConfig(database_url=f"sqlite:///{tmp_path / 'helitour_test.db'}")
    config.create_tables()
    yield config
    config.close()


@pytest.fixture
def store(db_config):
    return BookingStore(db_config)


@pytest.fixture
def cache():
    """Cache manager running purely on its in-memory fallback."""
    return CacheManager(client=None)


@pytest.fixture
def mock_valkey_client():
    return MockValkeyClient()


@pytest.fixture
def settings():
    return BookingSettings(database_url="sqlite:///:memory:", hold_lock_timeout_seconds=0.5)


@pytest.fixture
def services(settings, db_config, cache, clock):
    return build_services(settings=settings, db_config=db_config, cache=cache, clock=clock)


@pytest.fixture
def flight(services):
    """Four seats, 400 kg, departing the day after the fixed clock."""
    return seed_flight(services.store)


@pytest.fixture
def file_services(tmp_path, file_db_config, cache, clock):
    settings = BookingSettings(database_url=file_db_config.database_url, hold_lock_timeout_seconds=0.5)
    return build_services(settings=settings, db_config=file_db_config, cache=cache, clock=clock)
