"""
Enums for the helitour booking application.

This module contains all enumeration types shared by the database layer,
the services and the HTTP surface.
"""

from enum import Enum


class RouteStatus(str, Enum):
    """Whether a tour route is currently sold."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class FlightStatus(str, Enum):
    """Flight lifecycle: scheduled -> confirmed -> completed, or cancelled."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingType(str, Enum):
    """Channel a booking was taken through."""
    ONLINE = "online"
    PHONE = "phone"
    WALKIN = "walkin"


class PaymentStatus(str, Enum):
    """Payment state tracked on a booking (payments are handled elsewhere)."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REFUNDED = "refunded"


class BookingStatus(str, Enum):
    """Booking lifecycle: pending -> confirmed -> checked_in -> completed, or cancelled."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AvailabilityLevel(str, Enum):
    """Coarse display bucket derived from the seats left on a flight."""
    HIGH = "high"
    LOW = "low"
    FULL = "full"
    NONE = "none"      # Flight not open for booking


class CapacityReason(str, Enum):
    """Reason codes reported when a booking does not fit a flight."""
    PASSENGER_LIMIT = "passenger_limit"
    WEIGHT_LIMIT = "weight_limit"


class CommitMode(str, Enum):
    """How the booking commit protocol groups its writes."""
    ATOMIC = "atomic"              # One transaction for booking, passengers and ledger
    COMPENSATING = "compensating"  # One transaction per step, undo on failure


# Flights in these states accept holds and bookings
BOOKABLE_FLIGHT_STATUSES = frozenset({FlightStatus.SCHEDULED, FlightStatus.CONFIRMED})

# Bookings in these states can still be checked in
CHECK_IN_ALLOWED_FROM = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

# Bookings in these states still hold capacity and can be cancelled
CANCELLABLE_FROM = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN})
