"""
Booking and passenger Pydantic models for the helitour booking application.

Request models are deliberately loose: field presence and passenger weight
bounds are enforced by the validation policy so that the pre-check endpoint
and the commit path report the same errors.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from .enums import BookingStatus, BookingType, CapacityReason, PaymentStatus


class PassengerInput(BaseModel):
    """One traveler as entered on the booking form."""
    name: str = Field(default="", description="Passenger full name")
    weight_kg: Decimal = Field(..., description="Passenger weight in kilograms")


def total_weight(passengers: List[PassengerInput]) -> Decimal:
    """Sum of passenger weights."""
    return sum((p.weight_kg for p in passengers), Decimal("0"))


class BookingValidationRequest(BaseModel):
    """Pre-check request: will these passengers fit on this flight right now?"""
    flight_id: Optional[int] = None
    passengers: List[PassengerInput] = Field(default_factory=list)

    @property
    def total_weight_kg(self) -> Decimal:
        return total_weight(self.passengers)


class BookingRequest(BaseModel):
    """
    Booking commit request.

    Contact fields default to empty strings so that missing values surface
    as validation-policy errors rather than schema errors.
    """
    flight_id: Optional[int] = None
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    passengers: List[PassengerInput] = Field(default_factory=list)
    booking_type: BookingType = Field(default=BookingType.ONLINE, description="Sales channel")
    notes: Optional[str] = None

    @property
    def passenger_count(self) -> int:
        return len(self.passengers)

    @property
    def total_weight_kg(self) -> Decimal:
        return total_weight(self.passengers)


class CapacityCheck(BaseModel):
    """
    Outcome of checking a party against a flight's committed totals.

    On success the remaining figures are what would be left after the
    booking; on failure they are what is left now.
    """
    can_book: bool
    reason: Optional[CapacityReason] = None
    remaining_seats: int
    remaining_weight_kg: Decimal
    requested_seats: int
    requested_weight_kg: Decimal
    message: str


class PassengerModel(BaseModel):
    """Stored passenger record."""
    model_config = ConfigDict(from_attributes=True)

    passenger_id: int
    booking_id: int
    name: str = Field(..., max_length=100)
    weight_kg: Decimal
    seat_number: Optional[int] = Field(None, ge=1, description="Assigned seat, if any")


class BookingModel(BaseModel):
    """Stored booking record."""
    model_config = ConfigDict(from_attributes=True)

    booking_id: int
    flight_id: int
    booking_reference: str
    customer_name: str
    customer_email: str
    customer_phone: str
    passenger_count: int = Field(..., ge=1)
    total_weight_kg: Decimal
    booking_type: BookingType
    payment_status: PaymentStatus
    status: BookingStatus
    qr_code: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingDetailModel(BookingModel):
    """Booking joined with its flight schedule, route and passengers."""
    scheduled_date: date
    scheduled_time: time
    route_name: str
    origin: str
    destination: str
    duration_minutes: int
    base_price: Decimal
    passengers: List[PassengerModel] = Field(default_factory=list)


class BookingConfirmation(BaseModel):
    """What the caller gets back from a successful commit."""
    booking_id: int
    booking_reference: str
    qr_code: str
    flight_id: int
    passenger_count: int
    total_weight_kg: Decimal
    status: BookingStatus = BookingStatus.PENDING


class InconsistentBookingModel(BaseModel):
    """Booking whose stored passenger_count disagrees with its passenger rows."""
    booking_id: int
    booking_reference: str
    flight_id: int
    passenger_count: int
    linked_passengers: int
