"""
Database package for the helitour booking core.

This package provides SQLAlchemy models, database configuration and the
BookingStore persistence collaborator.
"""

from .models import (
    Base,
    Route,
    Flight,
    FlightHold,
    Booking,
    Passenger,
    create_all_tables,
    drop_all_tables
)

from .config import DatabaseConfig, url_from_environment

from .store import BookingStore

__all__ = [
    # Models
    'Base',
    'Route',
    'Flight',
    'FlightHold',
    'Booking',
    'Passenger',
    'create_all_tables',
    'drop_all_tables',

    # Configuration
    'DatabaseConfig',
    'url_from_environment',

    # Store
    'BookingStore',
]
