"""
Availability calculator.

Availability is always derived on read from the committed totals and the
holds that are active at `now`; nothing here is stored. Expired holds are
ignored whether or not they have been swept.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from ..database.store import BookingStore
from ..models import AvailabilityLevel, FlightAvailabilityModel, FlightHoldModel, FlightModel
from ..models.enums import BOOKABLE_FLIGHT_STATUSES
from .errors import FlightNotFound

logger = logging.getLogger(__name__)

DEFAULT_LOW_AVAILABILITY_RATIO = 0.25


def availability_level(flight: FlightModel, actual_available: int, low_ratio: float) -> AvailabilityLevel:
    if flight.status not in BOOKABLE_FLIGHT_STATUSES:
        return AvailabilityLevel.NONE
    if actual_available <= 0:
        return AvailabilityLevel.FULL
    if actual_available / flight.max_passengers <= low_ratio:
        return AvailabilityLevel.LOW
    return AvailabilityLevel.HIGH


def compute_availability(
    flight: FlightModel,
    holds: Iterable[FlightHoldModel],
    now: datetime,
    exclude_session: Optional[str] = None,
    low_ratio: float = DEFAULT_LOW_AVAILABILITY_RATIO,
) -> FlightAvailabilityModel:
    """
    Derive a flight's availability.

    Args:
        flight: Flight with its committed totals
        holds: Holds on this flight; inactive ones are filtered out here
        now: Instant at which holds are judged active
        exclude_session: Session whose own hold should not count against it
        low_ratio: Free-seat ratio at or below which availability is low
    """
    held_seats = sum(
        hold.passenger_count
        for hold in holds
        if hold.flight_id == flight.flight_id
        and hold.is_active(now)
        and hold.session_id != exclude_session
    )
    remaining_seats = flight.max_passengers - flight.current_passengers
    actual_available = max(0, remaining_seats - held_seats)

    return FlightAvailabilityModel(
        flight_id=flight.flight_id,
        max_passengers=flight.max_passengers,
        max_weight_kg=flight.max_weight_kg,
        current_passengers=flight.current_passengers,
        current_weight_kg=flight.current_weight_kg,
        remaining_seats=remaining_seats,
        held_seats=held_seats,
        actual_available_seats=actual_available,
        remaining_weight_kg=flight.max_weight_kg - flight.current_weight_kg,
        availability_level=availability_level(flight, actual_available, low_ratio),
    )


class AvailabilityCalculator:
    """Store-backed availability for a single flight."""

    def __init__(
        self,
        store: BookingStore,
        clock: Callable[[], datetime] = datetime.now,
        low_ratio: float = DEFAULT_LOW_AVAILABILITY_RATIO,
    ):
        self.store = store
        self.clock = clock
        self.low_ratio = low_ratio

    def for_flight(
        self,
        flight_id: int,
        session_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> FlightAvailabilityModel:
        """
        Raises:
            FlightNotFound: Unknown flight
        """
        now = self.clock()
        flight = self.store.read_flight(flight_id, session=session)
        if flight is None:
            raise FlightNotFound(flight_id)
        holds = self.store.read_active_holds(flight_id, now, session=session)
        return compute_availability(flight, holds, now, exclude_session=session_id, low_ratio=self.low_ratio)
