"""
Booking commit protocol.

Turns a validated request into a committed booking:

1. Re-read the flight and re-run the validation policy against fresh totals.
2. Generate a booking reference.
3. Insert the booking row (pending / pending).
4. Insert the passengers.
5. Add the party to the flight's committed totals through the ledger.
6. Release the caller's hold, if a session id was given.

In atomic mode steps 3-5 share one transaction, so any failure leaves
nothing behind. In compensating mode each step commits on its own and a
later failure deletes the booking again; if that delete fails too the
booking is reported as orphaned and left for reconciliation.

The commit checks committed totals only. Another session's hold does not
block a commit, and submitting the same request twice books twice.
"""

import logging
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..cache.manager import CacheManager
from ..database.store import BookingStore
from ..models import (
    BookingConfirmation,
    BookingModel,
    BookingRequest,
    BookingStatus,
    BookingValidationRequest,
    CapacityCheck,
    CommitMode,
    PassengerInput,
)
from .capacity_ledger import CapacityLedger
from .catalog import invalidate_flight_listings
from .errors import (
    BookingReferenceConflict,
    CapacityExceeded,
    InternalCommitFailure,
    InvalidBookingRequest,
    OrphanedBookingError,
)
from .references import display_token, generate_booking_reference
from .validation import (
    ensure_capacity,
    ensure_flight_open,
    evaluate_capacity,
    require_flight,
    validate_booking_request,
    validate_passengers,
)

logger = logging.getLogger(__name__)


def is_reference_collision(error: IntegrityError) -> bool:
    """True when the violated constraint is the unique booking reference."""
    return "booking_reference" in str(error.orig)


class BookingCommitProtocol:
    """Validates and commits bookings against flight capacity."""

    def __init__(
        self,
        store: BookingStore,
        ledger: CapacityLedger,
        cache: Optional[CacheManager] = None,
        mode: CommitMode = CommitMode.ATOMIC,
        reference_prefix: str = "HT",
        reference_factory: Callable[[str], str] = generate_booking_reference,
    ):
        self.store = store
        self.ledger = ledger
        self.cache = cache
        self.mode = CommitMode(mode)
        self.reference_prefix = reference_prefix
        self.reference_factory = reference_factory

        logger.info(f"BookingCommitProtocol initialized in {self.mode.value} mode")

    async def create_booking(self, request: BookingRequest, session_id: Optional[str] = None) -> BookingConfirmation:
        """
        Commit a booking and refresh cached listings.

        Raises:
            InvalidBookingRequest: Missing contact fields or invalid passengers
            FlightNotFound: Unknown flight
            FlightNotBookable: Flight cancelled or completed
            PassengerLimitExceeded: Not enough seats left
            WeightLimitExceeded: Not enough weight allowance left
            CapacityExceeded: Capacity could not be claimed
            InternalCommitFailure: A storage step failed; nothing was consumed
            OrphanedBookingError: Compensation failed and a booking row remains
        """
        confirmation = self.commit(request, session_id=session_id)
        await invalidate_flight_listings(self.cache)
        return confirmation

    def precheck(self, request: BookingValidationRequest) -> CapacityCheck:
        """
        Tell a customer whether their party fits before they enter contact details.

        A failed capacity check is returned, not raised. Names are not
        required yet; weights must already be plausible.

        Raises:
            InvalidBookingRequest: No flight, no passengers, or a weight outside 20-200 kg
            FlightNotFound: Unknown flight
            FlightNotBookable: Flight cancelled or completed
        """
        require_flight(request.flight_id)
        if not request.passengers:
            raise InvalidBookingRequest("Missing required fields")
        validate_passengers([
            PassengerInput(name=p.name or f"Passenger {i}", weight_kg=p.weight_kg)
            for i, p in enumerate(request.passengers, start=1)
        ])

        flight = self.ledger.get_flight(request.flight_id)
        ensure_flight_open(flight)
        return evaluate_capacity(flight, len(request.passengers), request.total_weight_kg)

    def commit(self, request: BookingRequest, session_id: Optional[str] = None) -> BookingConfirmation:
        """Synchronous core of create_booking; safe to run from worker threads."""
        validate_booking_request(request)

        passenger_count = request.passenger_count
        total_weight = request.total_weight_kg

        flight = self.ledger.get_flight(request.flight_id)
        ensure_flight_open(flight)
        check = evaluate_capacity(flight, passenger_count, total_weight)
        if not check.can_book:
            logger.info(f"Booking on flight {flight.flight_id} rejected before write: {check.message}")
        ensure_capacity(check)

        reference = self.reference_factory(self.reference_prefix)
        qr_code = display_token(reference)

        if self.mode == CommitMode.ATOMIC:
            booking = self._commit_atomic(request, reference, qr_code, passenger_count, total_weight)
        else:
            booking = self._commit_compensating(request, reference, qr_code, passenger_count, total_weight)

        logger.info(
            f"Booking {booking.booking_reference} committed on flight {request.flight_id}: "
            f"{passenger_count} pax / {total_weight}kg"
        )

        if session_id:
            self._release_session_hold(session_id, request.flight_id)

        return BookingConfirmation(
            booking_id=booking.booking_id,
            booking_reference=booking.booking_reference,
            qr_code=qr_code,
            flight_id=request.flight_id,
            passenger_count=passenger_count,
            total_weight_kg=total_weight,
            status=BookingStatus.PENDING,
        )

    def _insert_booking(self, request: BookingRequest, reference: str, qr_code: str, session=None) -> BookingModel:
        try:
            return self.store.insert_booking(request, reference, qr_code, session=session)
        except IntegrityError as e:
            if not is_reference_collision(e):
                logger.error(f"Booking creation error: {e}")
                raise InternalCommitFailure("Failed to create booking") from e
            logger.error(f"Booking reference {reference} collided with an existing booking")
            raise BookingReferenceConflict(reference) from e
        except SQLAlchemyError as e:
            logger.error(f"Booking creation error: {e}")
            raise InternalCommitFailure("Failed to create booking") from e

    def _commit_atomic(
        self,
        request: BookingRequest,
        reference: str,
        qr_code: str,
        passenger_count: int,
        total_weight: Decimal,
    ) -> BookingModel:
        try:
            with self.store.transaction() as session:
                booking = self._insert_booking(request, reference, qr_code, session=session)
                try:
                    self.store.insert_passengers(booking.booking_id, request.passengers, session=session)
                except SQLAlchemyError as e:
                    logger.error(f"Passengers creation error for {reference}: {e}")
                    raise InternalCommitFailure("Failed to create passenger records") from e
                self.ledger.apply_commit(request.flight_id, passenger_count, total_weight, session=session)
        except SQLAlchemyError as e:
            # Ledger write or the final commit; the transaction has rolled back
            logger.error(f"Capacity update failed for {reference}: {e}")
            raise InternalCommitFailure("Failed to update flight capacity") from e
        return booking

    def _commit_compensating(
        self,
        request: BookingRequest,
        reference: str,
        qr_code: str,
        passenger_count: int,
        total_weight: Decimal,
    ) -> BookingModel:
        booking = self._insert_booking(request, reference, qr_code)

        try:
            self.store.insert_passengers(booking.booking_id, request.passengers)
        except SQLAlchemyError as e:
            logger.warning(f"Passengers creation error for {reference}, removing booking: {e}")
            self._compensate(booking)
            raise InternalCommitFailure("Failed to create passenger records") from e

        try:
            self.ledger.apply_commit(request.flight_id, passenger_count, total_weight)
        except CapacityExceeded:
            logger.warning(f"Capacity claimed by a concurrent booking, removing {reference}")
            self._compensate(booking)
            raise
        except SQLAlchemyError as e:
            logger.warning(f"Ledger update failed for {reference}, removing booking: {e}")
            self._compensate(booking)
            raise InternalCommitFailure("Failed to update flight capacity") from e

        return booking

    def _compensate(self, booking: BookingModel) -> None:
        """Delete a half-written booking and its passengers."""
        try:
            self.store.delete_booking(booking.booking_id)
        except SQLAlchemyError as e:
            logger.critical(
                f"Orphaned booking {booking.booking_reference} (id {booking.booking_id}) "
                f"on flight {booking.flight_id}: compensation failed: {e}"
            )
            raise OrphanedBookingError(booking.booking_id, booking.booking_reference) from e
        logger.info(f"Compensated booking {booking.booking_reference}")

    def _release_session_hold(self, session_id: str, flight_id: int) -> None:
        # The booking is already committed; a leftover hold just expires
        try:
            self.store.delete_hold(session_id, flight_id=flight_id)
        except SQLAlchemyError as e:
            logger.warning(f"Could not release hold for session {session_id} on flight {flight_id}: {e}")
