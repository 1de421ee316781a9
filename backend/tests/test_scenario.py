"""
End-to-end walk through the booking flow on a four-seat flight.

Two customers browse the same flight: the first holds three seats, the
second is refused two, the first books, and a late two-person booking is
turned away by the committed totals.
"""

import pytest
from decimal import Decimal

from helitour.models import AvailabilityLevel
from helitour.services import InsufficientCapacity, PassengerLimitExceeded

from conftest import make_request


@pytest.mark.asyncio
async def test_four_seat_flight_walkthrough(services, flight):
    listing = await services.catalog.list_available_flights()
    assert listing[0].remaining_seats == 4
    assert listing[0].availability_level == AvailabilityLevel.HIGH

    hold = await services.holds.create_hold(flight.flight_id, "customer-a", 3)
    assert hold.actual_available_seats == 1

    with pytest.raises(InsufficientCapacity) as exc_info:
        await services.holds.create_hold(flight.flight_id, "customer-b", 2)
    assert exc_info.value.actual_available == 1

    # Customer A's own hold does not count against them
    availability = services.catalog.flight_availability(flight.flight_id, session_id="customer-a")
    assert availability.actual_available_seats == 4

    confirmation = await services.commit.create_booking(
        make_request(flight.flight_id, [70, 80, 90]), session_id="customer-a",
    )
    assert confirmation.passenger_count == 3
    assert confirmation.total_weight_kg == Decimal("240")

    current = services.store.read_flight(flight.flight_id)
    assert (current.current_passengers, current.current_weight_kg) == (3, Decimal("240"))
    assert services.store.read_hold(flight.flight_id, "customer-a") is None

    listing = await services.catalog.list_available_flights()
    assert listing[0].remaining_seats == 1
    assert listing[0].held_seats == 0
    assert listing[0].availability_level == AvailabilityLevel.LOW

    with pytest.raises(PassengerLimitExceeded) as exc_info:
        await services.commit.create_booking(make_request(flight.flight_id, [60, 65]))
    assert exc_info.value.remaining_seats == 1
    assert services.store.read_flight(flight.flight_id).current_passengers == 3
