"""
Service wiring for the API and the CLI.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..cache.client import ValkeyClient
from ..cache.config import ValkeyConfig
from ..cache.manager import CacheManager
from ..database.config import DatabaseConfig
from ..database.store import BookingStore
from ..utils.config import BookingSettings, get_config
from .availability import AvailabilityCalculator
from .booking_commit import BookingCommitProtocol
from .booking_simulator import ConcurrentBookingSimulator
from .capacity_ledger import CapacityLedger
from .catalog import FlightCatalog
from .coordinator import CoordinatorService
from .hold_manager import HoldManager
from .lock_manager import DistributedLockManager

logger = logging.getLogger(__name__)


@dataclass
class BookingServices:
    """Every collaborator of the booking core, built once per process."""
    settings: BookingSettings
    db_config: DatabaseConfig
    store: BookingStore
    cache: CacheManager
    lock_manager: DistributedLockManager
    ledger: CapacityLedger
    availability: AvailabilityCalculator
    catalog: FlightCatalog
    holds: HoldManager
    commit: BookingCommitProtocol
    coordinator: CoordinatorService
    simulator: ConcurrentBookingSimulator

    async def start(self) -> None:
        """Create tables if needed and connect the cache."""
        self.db_config.create_tables()
        await self.cache.initialize()

    async def close(self) -> None:
        await self.cache.close()
        self.db_config.close()


def build_services(
    settings: Optional[BookingSettings] = None,
    db_config: Optional[DatabaseConfig] = None,
    cache: Optional[CacheManager] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> BookingServices:
    """
    Assemble the booking core.

    Args:
        settings: Application settings; loaded from the environment if omitted
        db_config: Database configuration; built from settings if omitted
        cache: Cache manager; a Valkey-backed one is built from settings if omitted
        clock: Source of "now" for hold expiry and availability
    """
    settings = settings or get_config()
    db_config = db_config or DatabaseConfig(database_url=settings.database_url, echo=settings.debug)
    if cache is None:
        cache = CacheManager(client=ValkeyClient(ValkeyConfig.from_settings(settings)))

    store = BookingStore(db_config)
    lock_manager = DistributedLockManager(cache)
    ledger = CapacityLedger(store, max_retries=settings.ledger_max_retries)
    availability = AvailabilityCalculator(store, clock=clock, low_ratio=settings.low_availability_ratio)
    catalog = FlightCatalog(
        store,
        cache=cache,
        clock=clock,
        cache_ttl=settings.availability_cache_ttl,
        low_ratio=settings.low_availability_ratio,
    )
    holds = HoldManager(
        store,
        lock_manager,
        cache=cache,
        clock=clock,
        lock_timeout_seconds=settings.hold_lock_timeout_seconds,
        low_ratio=settings.low_availability_ratio,
    )
    commit = BookingCommitProtocol(
        store,
        ledger,
        cache=cache,
        mode=settings.commit_mode,
        reference_prefix=settings.booking_reference_prefix,
    )
    coordinator = CoordinatorService(store, ledger, catalog, cache=cache)
    simulator = ConcurrentBookingSimulator(commit, ledger)

    logger.info(f"Booking services built ({settings.commit_mode.value} commits, {db_config.db_type} database)")

    return BookingServices(
        settings=settings,
        db_config=db_config,
        store=store,
        cache=cache,
        lock_manager=lock_manager,
        ledger=ledger,
        availability=availability,
        catalog=catalog,
        holds=holds,
        commit=commit,
        coordinator=coordinator,
        simulator=simulator,
    )
