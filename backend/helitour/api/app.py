"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..services.container import BookingServices, build_services
from ..services.errors import BookingError
from .routers import bookings, flights, holds

logger = logging.getLogger(__name__)


def create_app(services: Optional[BookingServices] = None) -> FastAPI:
    """
    Build the booking API.

    Args:
        services: Pre-built booking core; built from the environment if omitted
    """
    services = services or build_services()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        await services.start()
        yield
        await services.close()

    app = FastAPI(
        title="Helitour Booking API",
        version="0.1.0",
        debug=services.settings.debug,
        lifespan=_lifespan,
    )
    app.state.services = services

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/api/health", tags=["health"])
    async def health():
        cache_health = await app.state.services.cache.health_check()
        return {
            "status": "ok",
            "database": app.state.services.db_config.test_connection(),
            "cache": cache_health["status"],
        }

    _prefix = "/api"
    app.include_router(flights.router, prefix=_prefix)
    app.include_router(holds.router, prefix=_prefix)
    app.include_router(bookings.router, prefix=_prefix)

    return app
