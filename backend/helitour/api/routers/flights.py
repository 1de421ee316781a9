"""Flight listing, availability and coordinator flight routes."""

from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from ...services.container import BookingServices
from ..dependencies import get_services
from ..schemas import FlightStatusRequest

router = APIRouter(prefix="/flights", tags=["flights"])

ServicesDep = Annotated[BookingServices, Depends(get_services)]


@router.get("")
async def list_flights(
    services: ServicesDep,
    on_date: Annotated[Optional[date], Query(alias="date")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
):
    """Upcoming bookable flights with naive and strict availability."""
    if on_date is not None:
        flights = await services.coordinator.flights_for_date(on_date)
    else:
        flights = await services.catalog.list_available_flights(limit=limit)
    return {"flights": [flight.model_dump(mode="json") for flight in flights]}


@router.get("/{flight_id}/availability")
def flight_availability(
    flight_id: int,
    services: ServicesDep,
    session_id: Optional[str] = None,
):
    availability = services.catalog.flight_availability(flight_id, session_id=session_id)
    return {"availability": availability.model_dump(mode="json")}


@router.get("/{flight_id}/bookings")
def flight_bookings(flight_id: int, services: ServicesDep):
    bookings = services.coordinator.flight_bookings(flight_id)
    return {"bookings": [booking.model_dump(mode="json") for booking in bookings]}


@router.post("/{flight_id}/status")
async def set_flight_status(flight_id: int, body: FlightStatusRequest, services: ServicesDep):
    await services.coordinator.set_flight_status(flight_id, body.status)
    return {"success": True, "flight_id": flight_id, "status": body.status.value}
