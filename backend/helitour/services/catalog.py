"""
Flight catalog: the public listing of upcoming flights.

Listings show naive availability (`remaining_seats`, holds ignored) next to
the held and strictly available figures, and are cached cache-aside for a
short TTL. Hold and booking changes clear every cached listing.
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from ..cache.manager import CacheManager
from ..cache.utils import key_manager
from ..database.store import BookingStore
from ..models import AvailableFlightModel, FlightAvailabilityModel
from .availability import AvailabilityCalculator, availability_level, DEFAULT_LOW_AVAILABILITY_RATIO

logger = logging.getLogger(__name__)

DEFAULT_LISTING_LIMIT = 20


async def invalidate_flight_listings(cache: Optional[CacheManager]) -> None:
    """Drop every cached flight listing."""
    if cache is None:
        return
    deleted = await cache.clear_pattern(key_manager.flight_listing_pattern())
    if deleted:
        logger.debug(f"Invalidated {deleted} cached flight listings")


class FlightCatalog:
    """Read side for browsing flights."""

    def __init__(
        self,
        store: BookingStore,
        cache: Optional[CacheManager] = None,
        clock: Callable[[], datetime] = datetime.now,
        cache_ttl: int = 30,
        low_ratio: float = DEFAULT_LOW_AVAILABILITY_RATIO,
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.cache_ttl = cache_ttl
        self.low_ratio = low_ratio
        self.calculator = AvailabilityCalculator(store, clock=clock, low_ratio=low_ratio)

    async def list_available_flights(
        self,
        limit: int = DEFAULT_LISTING_LIMIT,
        on_date: Optional[date] = None,
    ) -> List[AvailableFlightModel]:
        """
        Upcoming bookable flights, earliest first.

        Args:
            limit: Maximum number of flights
            on_date: Only flights departing on this date
        """
        now = self.clock()
        from_date = now.date()
        cache_key = key_manager.flight_listing_key(limit, on_date=on_date, from_date=from_date)

        if self.cache is not None and self.cache_ttl > 0:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Flight listing cache hit: {cache_key}")
                return [AvailableFlightModel.model_validate(row) for row in cached]

        flights = self._build_listing(now, from_date, limit, on_date)

        if self.cache is not None and self.cache_ttl > 0:
            await self.cache.set(
                cache_key,
                [flight.model_dump(mode="json") for flight in flights],
                ttl=self.cache_ttl,
            )
        return flights

    def _build_listing(
        self,
        now: datetime,
        from_date: date,
        limit: int,
        on_date: Optional[date],
    ) -> List[AvailableFlightModel]:
        rows = self.store.list_flights(from_date=from_date, limit=limit, on_date=on_date)
        held = self.store.held_seats_by_flight([flight.flight_id for flight, _ in rows], now)

        listing = []
        for flight, route in rows:
            remaining_seats = flight.max_passengers - flight.current_passengers
            held_seats = held.get(flight.flight_id, 0)
            actual_available = max(0, remaining_seats - held_seats)
            listing.append(AvailableFlightModel(
                **flight.model_dump(),
                route_name=route.name,
                origin=route.origin,
                destination=route.destination,
                duration_minutes=route.duration_minutes,
                base_price=route.base_price,
                remaining_seats=remaining_seats,
                held_seats=held_seats,
                actual_available_seats=actual_available,
                remaining_weight_kg=flight.max_weight_kg - flight.current_weight_kg,
                availability_level=availability_level(flight, actual_available, self.low_ratio),
            ))
        return listing

    def flight_availability(self, flight_id: int, session_id: Optional[str] = None) -> FlightAvailabilityModel:
        """Strict, uncached availability for one flight."""
        return self.calculator.for_flight(flight_id, session_id=session_id)
