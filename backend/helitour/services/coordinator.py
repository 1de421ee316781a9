"""
Coordinator operations: day-of-flight management, check-in, cancellation
and reconciliation.

Walk-in and phone bookings are not special here; they go through the
regular commit protocol with `booking_type` set on the request.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from ..cache.manager import CacheManager
from ..database.store import BookingStore
from ..models import (
    AvailableFlightModel,
    BookingDetailModel,
    BookingModel,
    BookingStatus,
    CapacityDriftModel,
    FlightStatus,
    InconsistentBookingModel,
)
from ..models.enums import CANCELLABLE_FROM, CHECK_IN_ALLOWED_FROM
from .capacity_ledger import CapacityLedger
from .catalog import FlightCatalog, invalidate_flight_listings
from .errors import BookingNotFound, FlightNotFound, InvalidBookingTransition

logger = logging.getLogger(__name__)


class CoordinatorService:
    """Operations staff view of flights and bookings."""

    def __init__(
        self,
        store: BookingStore,
        ledger: CapacityLedger,
        catalog: FlightCatalog,
        cache: Optional[CacheManager] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.catalog = catalog
        self.cache = cache

    async def flights_for_date(self, on_date: date) -> List[AvailableFlightModel]:
        return await self.catalog.list_available_flights(limit=100, on_date=on_date)

    def flight_bookings(self, flight_id: int) -> List[BookingModel]:
        """Non-cancelled bookings on a flight, oldest first."""
        self.ledger.get_flight(flight_id)
        return self.store.list_flight_bookings(flight_id)

    def booking_by_reference(self, reference: str) -> BookingDetailModel:
        booking = self.store.find_booking_by_reference(reference)
        if booking is None:
            raise BookingNotFound(reference)
        return booking

    def check_in(self, booking_id: int) -> BookingModel:
        """
        Raises:
            BookingNotFound: Unknown booking
            InvalidBookingTransition: Booking already checked in, completed or cancelled
        """
        booking = self.store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)

        if not self.store.transition_booking_status(booking_id, CHECK_IN_ALLOWED_FROM, BookingStatus.CHECKED_IN):
            current = self.store.get_booking(booking_id)
            raise InvalidBookingTransition(booking_id, current.status.value, BookingStatus.CHECKED_IN.value)

        logger.info(f"Booking {booking.booking_reference} checked in")
        return self.store.get_booking(booking_id)

    async def cancel_booking(self, reference: str) -> BookingModel:
        """
        Cancel a booking and return its seats and weight to the flight.

        The status change and the ledger rollback share one transaction, and
        only the caller that wins the status change rolls capacity back.

        Raises:
            BookingNotFound: Unknown reference
            InvalidBookingTransition: Booking already cancelled or completed
        """
        booking = self.store.find_booking_by_reference(reference)
        if booking is None:
            raise BookingNotFound(reference)

        with self.store.transaction() as session:
            claimed = self.store.transition_booking_status(
                booking.booking_id, CANCELLABLE_FROM, BookingStatus.CANCELLED, session=session
            )
            if not claimed:
                current = self.store.get_booking(booking.booking_id, session=session)
                raise InvalidBookingTransition(
                    booking.booking_id, current.status.value, BookingStatus.CANCELLED.value
                )
            self.ledger.apply_rollback(
                booking.flight_id, booking.passenger_count, booking.total_weight_kg, session=session
            )

        await invalidate_flight_listings(self.cache)
        logger.info(f"Booking {reference} cancelled, {booking.passenger_count} seats returned to flight {booking.flight_id}")
        return self.store.get_booking(booking.booking_id)

    async def set_flight_status(self, flight_id: int, status: FlightStatus) -> None:
        if not self.store.update_flight_status(flight_id, status):
            raise FlightNotFound(flight_id)
        await invalidate_flight_listings(self.cache)
        logger.info(f"Flight {flight_id} marked {FlightStatus(status).value}")

    def find_inconsistent_bookings(self) -> List[InconsistentBookingModel]:
        """Bookings left without their passengers, e.g. by failed compensation."""
        return self.store.find_inconsistent_bookings()

    def find_capacity_drift(self) -> List[CapacityDriftModel]:
        """Flights whose committed totals disagree with their live bookings."""
        return self.store.find_capacity_drift()

    def reconcile(self) -> Dict[str, list]:
        inconsistent = self.find_inconsistent_bookings()
        drift = self.find_capacity_drift()
        if inconsistent or drift:
            logger.warning(
                f"Reconciliation found {len(inconsistent)} inconsistent bookings "
                f"and {len(drift)} flights with capacity drift"
            )
        return {"inconsistent_bookings": inconsistent, "capacity_drift": drift}
