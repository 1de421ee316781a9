"""FastAPI dependency providers."""

from fastapi import Request

from ..services.container import BookingServices


def get_services(request: Request) -> BookingServices:
    """The booking core built by the application factory."""
    return request.app.state.services
