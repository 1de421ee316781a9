"""
Request bodies for the HTTP surface.

Identifiers are optional here so that a missing field reaches the booking
core and comes back as its own 400 error instead of a schema error.
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from ..models import BookingRequest, FlightStatus


class HoldCreateRequest(BaseModel):
    flight_id: Optional[int] = None
    session_id: str = ""
    passenger_count: Optional[int] = None


class HoldReleaseRequest(BaseModel):
    session_id: str = ""
    flight_id: Optional[int] = None


class BookingCreateRequest(BookingRequest):
    """
    Booking form submission.

    `total_weight_kg` is accepted for compatibility with existing clients
    and ignored; the weight is always recomputed from the passengers.
    """
    session_id: Optional[str] = Field(None, description="Browsing session whose hold is released on success")
    total_weight_kg_hint: Optional[Decimal] = Field(None, alias="total_weight_kg")

    def to_booking_request(self) -> BookingRequest:
        return BookingRequest.model_validate(
            self.model_dump(exclude={"session_id", "total_weight_kg_hint"})
        )


class FlightStatusRequest(BaseModel):
    status: FlightStatus
