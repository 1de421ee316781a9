"""
Flight hold models for the helitour booking application.

A hold is a short-lived claim on seats made while a customer fills in the
booking form. It is logically dead once `expires_at` has passed, whether or
not the row has been swept yet.
"""

from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class FlightHoldModel(BaseModel):
    """Stored seat hold for one (flight, session) pair."""
    model_config = ConfigDict(from_attributes=True)

    hold_id: int
    flight_id: int = Field(..., description="Held flight")
    session_id: str = Field(..., description="Opaque browsing session identifier")
    passenger_count: int = Field(..., ge=1, description="Seats held")
    expires_at: datetime = Field(..., description="Hold expiration time")
    created_at: datetime = Field(default_factory=datetime.now, description="Hold creation time")

    def is_active(self, now: datetime) -> bool:
        """A hold counts against availability only strictly before its deadline."""
        return self.expires_at > now


class HoldConfirmation(BaseModel):
    """Result of a successful hold request."""
    hold: FlightHoldModel
    expires_in_seconds: int = Field(..., ge=0)
    actual_available_seats: int = Field(..., ge=0, description="Seats left for other sessions")
