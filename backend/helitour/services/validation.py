"""
Validation policy shared by the booking pre-check and the commit path.

All functions here are pure: they look only at their arguments, so the
pre-check endpoint and the commit protocol cannot disagree about what is
bookable. Passenger count is always checked before weight.
"""

from decimal import Decimal
from typing import List, Optional

from ..models import (
    BookingRequest,
    CapacityCheck,
    CapacityReason,
    FlightModel,
    PassengerInput,
)
from ..models.enums import BOOKABLE_FLIGHT_STATUSES
from .errors import (
    FlightNotBookable,
    InvalidBookingRequest,
    PassengerLimitExceeded,
    WeightLimitExceeded,
)

MIN_PASSENGER_WEIGHT_KG = Decimal("20")
MAX_PASSENGER_WEIGHT_KG = Decimal("200")


def validate_passengers(passengers: List[PassengerInput]) -> None:
    """
    Raises:
        InvalidBookingRequest: No passengers, a blank name, or a weight outside 20-200 kg
    """
    if not passengers:
        raise InvalidBookingRequest("At least one passenger is required")

    for index, passenger in enumerate(passengers, start=1):
        if not passenger.name or not passenger.name.strip():
            raise InvalidBookingRequest(f"Passenger {index} name is required", passenger=index)
        if not MIN_PASSENGER_WEIGHT_KG <= passenger.weight_kg <= MAX_PASSENGER_WEIGHT_KG:
            raise InvalidBookingRequest(
                f"Passenger {index} weight must be between "
                f"{MIN_PASSENGER_WEIGHT_KG} and {MAX_PASSENGER_WEIGHT_KG} kg",
                passenger=index,
            )


def validate_contact(request: BookingRequest) -> None:
    """
    Raises:
        InvalidBookingRequest: Customer name, email or phone missing
    """
    missing = [
        field_name
        for field_name in ("customer_name", "customer_email", "customer_phone")
        if not getattr(request, field_name).strip()
    ]
    if missing:
        raise InvalidBookingRequest("Missing required fields", missing=missing)


def require_flight(flight_id: Optional[int]) -> None:
    if flight_id is None:
        raise InvalidBookingRequest("Missing required fields", missing=["flight_id"])


def validate_booking_request(request: BookingRequest) -> None:
    require_flight(request.flight_id)
    validate_contact(request)
    validate_passengers(request.passengers)


def ensure_flight_open(flight: FlightModel) -> None:
    if flight.status not in BOOKABLE_FLIGHT_STATUSES:
        raise FlightNotBookable(flight.flight_id, flight.status.value)


def evaluate_capacity(flight: FlightModel, passenger_count: int, total_weight_kg: Decimal) -> CapacityCheck:
    """
    Check a party against the flight's committed totals. Holds are ignored.

    On failure the remaining figures describe the flight now; on success they
    describe the flight as it would be after the booking.
    """
    remaining_seats = flight.max_passengers - flight.current_passengers
    remaining_weight = flight.max_weight_kg - flight.current_weight_kg

    if passenger_count > remaining_seats:
        return CapacityCheck(
            can_book=False,
            reason=CapacityReason.PASSENGER_LIMIT,
            remaining_seats=remaining_seats,
            remaining_weight_kg=remaining_weight,
            requested_seats=passenger_count,
            requested_weight_kg=total_weight_kg,
            message=f"Not enough seats available. {remaining_seats} seat(s) remaining.",
        )

    if total_weight_kg > remaining_weight:
        return CapacityCheck(
            can_book=False,
            reason=CapacityReason.WEIGHT_LIMIT,
            remaining_seats=remaining_seats,
            remaining_weight_kg=remaining_weight,
            requested_seats=passenger_count,
            requested_weight_kg=total_weight_kg,
            message=f"Total weight exceeds flight capacity. {remaining_weight:.1f}kg available.",
        )

    return CapacityCheck(
        can_book=True,
        remaining_seats=remaining_seats - passenger_count,
        remaining_weight_kg=remaining_weight - total_weight_kg,
        requested_seats=passenger_count,
        requested_weight_kg=total_weight_kg,
        message="Booking can proceed",
    )


def ensure_capacity(check: CapacityCheck) -> None:
    """
    Raises:
        PassengerLimitExceeded: The party has more people than free seats
        WeightLimitExceeded: The party is heavier than the free weight allowance
    """
    if check.can_book:
        return
    if check.reason == CapacityReason.PASSENGER_LIMIT:
        raise PassengerLimitExceeded(check.remaining_seats, check.remaining_weight_kg)
    raise WeightLimitExceeded(check.remaining_weight_kg, check.remaining_seats)
