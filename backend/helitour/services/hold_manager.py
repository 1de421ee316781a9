"""
Hold manager: short-lived seat holds while a customer fills in the booking form.

Per (flight, session) a hold moves absent -> active -> expired | released |
superseded. Creating a hold is serialised per flight with a distributed lock
so two sessions cannot both claim the last free seats. Holds only gate other
holds and inform display; the commit path checks committed totals only.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..cache.manager import CacheManager
from ..database.store import BookingStore
from ..models import FlightHoldModel, HoldConfirmation
from .availability import compute_availability, DEFAULT_LOW_AVAILABILITY_RATIO
from .catalog import invalidate_flight_listings
from .errors import FlightNotFound, HoldUnavailable, InsufficientCapacity, InvalidBookingRequest
from .lock_manager import DistributedLockManager
from .validation import ensure_flight_open

logger = logging.getLogger(__name__)

HOLD_TTL = timedelta(minutes=15)


class HoldManager:
    """Creates, releases and sweeps seat holds."""

    def __init__(
        self,
        store: BookingStore,
        lock_manager: DistributedLockManager,
        cache: Optional[CacheManager] = None,
        clock: Callable[[], datetime] = datetime.now,
        lock_timeout_seconds: float = 5.0,
        low_ratio: float = DEFAULT_LOW_AVAILABILITY_RATIO,
    ):
        self.store = store
        self.lock_manager = lock_manager
        self.cache = cache
        self.clock = clock
        self.lock_timeout_seconds = lock_timeout_seconds
        self.low_ratio = low_ratio

        logger.info("HoldManager initialized")

    async def create_hold(self, flight_id: Optional[int], session_id: str, passenger_count: int) -> HoldConfirmation:
        """
        Hold `passenger_count` seats on a flight for one browsing session.

        Any earlier hold by the same session on the same flight is replaced,
        and does not count against the new request.

        Raises:
            InvalidBookingRequest: Missing flight or session id, or non-positive passenger count
            FlightNotFound: Unknown flight
            FlightNotBookable: Flight cancelled or completed
            InsufficientCapacity: Fewer seats free after other sessions' holds
            HoldUnavailable: The flight's hold lock could not be acquired in time
        """
        if not flight_id or not session_id or passenger_count is None or passenger_count < 1:
            raise InvalidBookingRequest("Missing required fields")

        async with self.lock_manager.flight_hold_lock(flight_id, timeout_seconds=self.lock_timeout_seconds) as lock:
            if not lock:
                logger.info(f"Failed to acquire hold lock for flight {flight_id}")
                raise HoldUnavailable(flight_id)

            now = self.clock()
            self.store.delete_expired_holds(now)

            with self.store.transaction() as session:
                flight = self.store.read_flight(flight_id, session=session)
                if flight is None:
                    raise FlightNotFound(flight_id)
                ensure_flight_open(flight)

                holds = self.store.read_active_holds(flight_id, now, session=session)
                availability = compute_availability(
                    flight, holds, now, exclude_session=session_id, low_ratio=self.low_ratio
                )
                if passenger_count > availability.actual_available_seats:
                    logger.info(
                        f"Hold for {passenger_count} seats on flight {flight_id} refused: "
                        f"{availability.actual_available_seats} available"
                    )
                    raise InsufficientCapacity(passenger_count, availability.actual_available_seats)

                hold = self.store.upsert_hold(
                    flight_id,
                    session_id,
                    passenger_count,
                    expires_at=now + HOLD_TTL,
                    created_at=now,
                    session=session,
                )

        await invalidate_flight_listings(self.cache)
        logger.info(f"Session {session_id} holds {passenger_count} seats on flight {flight_id} until {hold.expires_at}")

        return HoldConfirmation(
            hold=hold,
            expires_in_seconds=int(HOLD_TTL.total_seconds()),
            actual_available_seats=availability.actual_available_seats - passenger_count,
        )

    async def release_hold(self, session_id: str, flight_id: Optional[int] = None) -> int:
        """
        Release a session's hold on one flight, or on every flight.

        Releasing nothing is not an error.

        Returns:
            Number of holds removed
        """
        if not session_id:
            raise InvalidBookingRequest("Session ID required")

        released = self.store.delete_hold(session_id, flight_id=flight_id)
        if released:
            logger.info(f"Released {released} hold(s) for session {session_id}")
            await invalidate_flight_listings(self.cache)
        return released

    def sweep_expired(self) -> int:
        """Physically delete holds whose deadline has passed."""
        return self.store.delete_expired_holds(self.clock())

    def get_active_hold(self, flight_id: int, session_id: str) -> Optional[FlightHoldModel]:
        hold = self.store.read_hold(flight_id, session_id)
        if hold is None or not hold.is_active(self.clock()):
            return None
        return hold
