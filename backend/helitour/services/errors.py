"""
Exceptions raised by the booking core.

Every error derives from BookingError, which carries the HTTP status the API
layer answers with and a stable machine-readable code. Capacity errors carry
the numbers a client needs to adjust its request.
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base class for booking core errors."""

    status_code: int = 500
    code: str = "booking_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready error body."""
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        for key, value in self.details.items():
            body[key] = float(value) if isinstance(value, Decimal) else value
        return body


# Input errors

class InvalidBookingRequest(BookingError):
    """Missing or malformed booking, hold or passenger fields."""
    status_code = 400
    code = "invalid_request"


# Not found

class FlightNotFound(BookingError):
    status_code = 404
    code = "flight_not_found"

    def __init__(self, flight_id: int):
        super().__init__("Flight not found", flight_id=flight_id)
        self.flight_id = flight_id


class BookingNotFound(BookingError):
    status_code = 404
    code = "booking_not_found"

    def __init__(self, identifier: Any):
        super().__init__("Booking not found", booking=identifier)
        self.identifier = identifier


# State conflicts

class FlightNotBookable(BookingError):
    """The flight is cancelled or has already flown."""
    status_code = 409
    code = "flight_not_bookable"

    def __init__(self, flight_id: int, status: str):
        super().__init__(f"Flight is {status} and cannot be booked", flight_id=flight_id, status=status)
        self.flight_id = flight_id


class HoldUnavailable(BookingError):
    """Another request held the flight's hold lock for too long."""
    status_code = 409
    code = "hold_unavailable"

    def __init__(self, flight_id: int):
        super().__init__("Flight is busy, please retry", flight_id=flight_id)
        self.flight_id = flight_id


class InvalidBookingTransition(BookingError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, booking_id: int, current: str, target: str):
        super().__init__(
            f"Booking cannot move from {current} to {target}",
            booking_id=booking_id, current_status=current, target_status=target,
        )


# Capacity conflicts

class InsufficientCapacity(BookingError):
    """A hold asked for more seats than are free after other sessions' holds."""
    status_code = 400
    code = "insufficient_capacity"

    def __init__(self, requested: int, actual_available: int):
        super().__init__("Not enough seats available", actual_available=actual_available, requested=requested)
        self.requested = requested
        self.actual_available = actual_available


class CapacityExceeded(BookingError):
    """A commit would push committed totals past a flight limit."""
    status_code = 400
    code = "capacity_exceeded"

    def __init__(
        self,
        message: str = "Flight capacity exceeded. Please select another flight.",
        remaining_seats: Optional[int] = None,
        remaining_weight_kg: Optional[Decimal] = None,
    ):
        super().__init__(message, remaining_seats=remaining_seats, remaining_weight_kg=remaining_weight_kg)
        self.remaining_seats = remaining_seats
        self.remaining_weight_kg = remaining_weight_kg


class PassengerLimitExceeded(CapacityExceeded):
    code = "passenger_limit"

    def __init__(self, remaining_seats: int, remaining_weight_kg: Optional[Decimal] = None):
        super().__init__(
            f"Not enough seats available. {remaining_seats} seat(s) remaining.",
            remaining_seats=remaining_seats,
            remaining_weight_kg=remaining_weight_kg,
        )


class WeightLimitExceeded(CapacityExceeded):
    code = "weight_limit"

    def __init__(self, remaining_weight_kg: Decimal, remaining_seats: Optional[int] = None):
        super().__init__(
            f"Total weight exceeds flight capacity. {Decimal(remaining_weight_kg):.1f}kg available.",
            remaining_seats=remaining_seats,
            remaining_weight_kg=remaining_weight_kg,
        )


# Internal faults

class InternalCommitFailure(BookingError):
    """A storage step failed mid-commit; no capacity was consumed."""
    status_code = 500
    code = "internal_commit_failure"


class BookingReferenceConflict(InternalCommitFailure):
    code = "reference_conflict"

    def __init__(self, reference: str):
        super().__init__("Failed to create booking", booking_reference=reference)
        self.reference = reference


class OrphanedBookingError(InternalCommitFailure):
    """A compensating delete failed and a booking row was left behind."""
    code = "orphaned_booking"

    def __init__(self, booking_id: int, reference: str):
        super().__init__("Failed to create booking", booking_id=booking_id, booking_reference=reference)
        self.booking_id = booking_id
        self.reference = reference


class LedgerInconsistency(BookingError):
    """A rollback would drive committed totals negative."""
    status_code = 500
    code = "ledger_inconsistency"

    def __init__(self, flight_id: int, message: str):
        super().__init__(message, flight_id=flight_id)
        self.flight_id = flight_id
