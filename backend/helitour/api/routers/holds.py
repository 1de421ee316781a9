"""Seat hold routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...services.container import BookingServices
from ..dependencies import get_services
from ..schemas import HoldCreateRequest, HoldReleaseRequest

router = APIRouter(prefix="/holds", tags=["holds"])

ServicesDep = Annotated[BookingServices, Depends(get_services)]


@router.post("/create")
async def create_hold(body: HoldCreateRequest, services: ServicesDep):
    confirmation = await services.holds.create_hold(body.flight_id, body.session_id, body.passenger_count)
    return {
        "success": True,
        "hold": confirmation.hold.model_dump(mode="json"),
        "expires_in_seconds": confirmation.expires_in_seconds,
        "actual_available_seats": confirmation.actual_available_seats,
    }


@router.post("/release")
async def release_hold(body: HoldReleaseRequest, services: ServicesDep):
    released = await services.holds.release_hold(body.session_id, flight_id=body.flight_id)
    return {"success": True, "released": released}
