"""
Tests for the validation policy shared by pre-check and commit.
"""

import pytest
from datetime import date, time
from decimal import Decimal

from helitour.models import CapacityReason, FlightModel, FlightStatus, PassengerInput
from helitour.services import (
    FlightNotBookable,
    InvalidBookingRequest,
    PassengerLimitExceeded,
    WeightLimitExceeded,
)
from helitour.services.validation import (
    ensure_capacity,
    ensure_flight_open,
    evaluate_capacity,
    validate_booking_request,
    validate_contact,
    validate_passengers,
)

from conftest import make_request


def build_flight(current_passengers=0, current_weight_kg="0", status=FlightStatus.SCHEDULED):
    return FlightModel(
        flight_id=1,
        route_id=1,
        scheduled_date=date(2026, 6, 2),
        scheduled_time=time(10, 0),
        max_passengers=4,
        max_weight_kg=Decimal("400"),
        current_passengers=current_passengers,
        current_weight_kg=Decimal(current_weight_kg),
        status=status,
    )


class TestPassengerValidation:

    def test_valid_passengers(self):
        validate_passengers([
            PassengerInput(name="A", weight_kg=Decimal("20")),
            PassengerInput(name="B", weight_kg=Decimal("200")),
        ])

    def test_empty_party(self):
        with pytest.raises(InvalidBookingRequest, match="At least one passenger"):
            validate_passengers([])

    def test_blank_name(self):
        with pytest.raises(InvalidBookingRequest) as exc_info:
            validate_passengers([
                PassengerInput(name="A", weight_kg=Decimal("70")),
                PassengerInput(name="   ", weight_kg=Decimal("70")),
            ])
        assert exc_info.value.details["passenger"] == 2

    @pytest.mark.parametrize("weight", ["19.9", "200.1", "0", "-5"])
    def test_weight_out_of_range(self, weight):
        with pytest.raises(InvalidBookingRequest, match="between"):
            validate_passengers([PassengerInput(name="A", weight_kg=Decimal(weight))])


class TestContactValidation:

    def test_missing_fields_are_listed(self):
        request = make_request(1, [70], customer_email="", customer_phone="  ")

        with pytest.raises(InvalidBookingRequest, match="Missing required fields") as exc_info:
            validate_contact(request)

        assert exc_info.value.details["missing"] == ["customer_email", "customer_phone"]
        assert exc_info.value.status_code == 400

    def test_full_request_is_valid(self):
        validate_booking_request(make_request(1, [70, 80]))


class TestCapacityEvaluation:

    def test_fits(self):
        check = evaluate_capacity(build_flight(1, "70"), 2, Decimal("150"))

        assert check.can_book
        assert check.reason is None
        assert check.remaining_seats == 1
        assert check.remaining_weight_kg == Decimal("180")

    def test_exact_fit(self):
        check = evaluate_capacity(build_flight(2, "200"), 2, Decimal("200"))

        assert check.can_book
        assert check.remaining_seats == 0
        assert check.remaining_weight_kg == Decimal("0")

    def test_passenger_limit(self):
        check = evaluate_capacity(build_flight(3, "240"), 2, Decimal("100"))

        assert not check.can_book
        assert check.reason == CapacityReason.PASSENGER_LIMIT
        assert check.remaining_seats == 1
        assert check.message == "Not enough seats available. 1 seat(s) remaining."

    def test_weight_limit(self):
        check = evaluate_capacity(build_flight(1, "300"), 2, Decimal("150"))

        assert not check.can_book
        assert check.reason == CapacityReason.WEIGHT_LIMIT
        assert check.remaining_weight_kg == Decimal("100")
        assert check.message == "Total weight exceeds flight capacity. 100.0kg available."

    def test_both_limits_report_passengers(self):
        check = evaluate_capacity(build_flight(3, "390"), 3, Decimal("300"))

        assert check.reason == CapacityReason.PASSENGER_LIMIT

    def test_ensure_capacity_raises_matching_error(self):
        with pytest.raises(PassengerLimitExceeded):
            ensure_capacity(evaluate_capacity(build_flight(4, "300"), 1, Decimal("70")))
        with pytest.raises(WeightLimitExceeded):
            ensure_capacity(evaluate_capacity(build_flight(1, "380"), 1, Decimal("70")))
        ensure_capacity(evaluate_capacity(build_flight(), 1, Decimal("70")))


class TestFlightOpen:

    @pytest.mark.parametrize("status", [FlightStatus.SCHEDULED, FlightStatus.CONFIRMED])
    def test_open_statuses(self, status):
        ensure_flight_open(build_flight(status=status))

    @pytest.mark.parametrize("status", [FlightStatus.CANCELLED, FlightStatus.COMPLETED])
    def test_closed_statuses(self, status):
        with pytest.raises(FlightNotBookable) as exc_info:
            ensure_flight_open(build_flight(status=status))
        assert exc_info.value.status_code == 409
