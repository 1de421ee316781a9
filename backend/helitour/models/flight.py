"""
Flight-related Pydantic models for the helitour booking application.

This module contains models for tour routes, scheduled flights, the committed
capacity totals used by the ledger, and the derived availability views.
"""

from datetime import date, time
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import AvailabilityLevel, FlightStatus, RouteStatus


class RouteModel(BaseModel):
    """
    Tour route sold to customers.

    A route groups many scheduled flights over the same itinerary and
    carries the per-passenger base price.
    """
    model_config = ConfigDict(from_attributes=True)

    route_id: int
    name: str = Field(..., max_length=100, description="Route display name")
    origin: str = Field(..., max_length=100, description="Departure helipad")
    destination: str = Field(..., max_length=100, description="Tour destination")
    duration_minutes: int = Field(..., ge=1, description="Flight duration in minutes")
    base_price: Decimal = Field(..., ge=0, description="Price per passenger")
    description: Optional[str] = Field(None, description="Marketing description")
    status: RouteStatus = Field(default=RouteStatus.ACTIVE, description="Route status")


class FlightModel(BaseModel):
    """
    Scheduled departure with its committed capacity totals.

    `current_passengers` and `current_weight_kg` only ever move through the
    capacity ledger; `capacity_version` is bumped on every ledger write.
    """
    model_config = ConfigDict(from_attributes=True)

    flight_id: int
    route_id: int = Field(..., description="Route flown")
    scheduled_date: date = Field(..., description="Departure date")
    scheduled_time: time = Field(..., description="Departure time")
    max_passengers: int = Field(..., ge=1, description="Seat limit")
    max_weight_kg: Decimal = Field(..., gt=0, description="Total passenger weight limit")
    current_passengers: int = Field(default=0, ge=0, description="Committed passengers")
    current_weight_kg: Decimal = Field(default=Decimal("0"), ge=0, description="Committed weight")
    status: FlightStatus = Field(default=FlightStatus.SCHEDULED, description="Flight status")
    capacity_version: int = Field(default=0, ge=0, description="Ledger compare-and-swap version")

    @property
    def totals(self) -> "FlightTotals":
        """Committed totals as read, for compare-and-swap updates."""
        return FlightTotals(
            passengers=self.current_passengers,
            weight_kg=self.current_weight_kg,
            version=self.capacity_version,
        )


class FlightTotals(BaseModel):
    """Committed capacity totals of one flight at one ledger version."""
    model_config = ConfigDict(frozen=True)

    passengers: int = Field(..., ge=0)
    weight_kg: Decimal = Field(..., ge=0)
    version: int = Field(default=0, ge=0)


class FlightAvailabilityModel(BaseModel):
    """
    Derived availability for one flight, computed on read.

    `remaining_seats` ignores holds (optimistic, for browsing) while
    `actual_available_seats` subtracts active holds (pessimistic, for holds).
    Weight is never held, so `remaining_weight_kg` only reflects commits.
    """
    flight_id: int
    max_passengers: int
    max_weight_kg: Decimal
    current_passengers: int
    current_weight_kg: Decimal
    remaining_seats: int = Field(..., description="Seats left ignoring holds")
    held_seats: int = Field(..., ge=0, description="Seats under active holds")
    actual_available_seats: int = Field(..., ge=0, description="Seats left after holds")
    remaining_weight_kg: Decimal = Field(..., description="Weight left after commits")
    availability_level: AvailabilityLevel


class AvailableFlightModel(FlightModel):
    """Row of the public flight listing: flight, route and availability flattened."""

    route_name: str
    origin: str
    destination: str
    duration_minutes: int
    base_price: Decimal
    remaining_seats: int
    held_seats: int
    actual_available_seats: int
    remaining_weight_kg: Decimal
    availability_level: AvailabilityLevel


class CapacityDriftModel(BaseModel):
    """Flight whose committed totals disagree with the sum of its live bookings."""
    flight_id: int
    current_passengers: int
    booked_passengers: int
    current_weight_kg: Decimal
    booked_weight_kg: Decimal
