"""Booking pre-check, commit and coordinator booking routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...models import BookingValidationRequest
from ...services.container import BookingServices
from ..dependencies import get_services
from ..schemas import BookingCreateRequest

router = APIRouter(prefix="/bookings", tags=["bookings"])

ServicesDep = Annotated[BookingServices, Depends(get_services)]


@router.post("/validate")
def validate_booking(body: BookingValidationRequest, services: ServicesDep):
    """Answers 200 whether or not the party fits; `can_book` carries the verdict."""
    check = services.commit.precheck(body)
    return {"success": True, **check.model_dump(mode="json")}


@router.post("/create")
async def create_booking(body: BookingCreateRequest, services: ServicesDep):
    confirmation = await services.commit.create_booking(body.to_booking_request(), session_id=body.session_id)
    return {
        "success": True,
        "booking": {
            "id": confirmation.booking_id,
            "booking_reference": confirmation.booking_reference,
            "qr_code": confirmation.qr_code,
        },
    }


@router.get("/by-reference/{reference}")
def booking_by_reference(reference: str, services: ServicesDep):
    booking = services.coordinator.booking_by_reference(reference)
    return {"booking": booking.model_dump(mode="json")}


@router.post("/by-reference/{reference}/cancel")
async def cancel_booking(reference: str, services: ServicesDep):
    booking = await services.coordinator.cancel_booking(reference)
    return {"success": True, "booking": booking.model_dump(mode="json")}


@router.post("/{booking_id}/check-in")
def check_in(booking_id: int, services: ServicesDep):
    booking = services.coordinator.check_in(booking_id)
    return {"success": True, "booking": booking.model_dump(mode="json")}
