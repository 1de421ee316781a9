"""
Helitour Pydantic models package.

This package contains all Pydantic v2 models used throughout the booking
application for data validation, serialization, and type safety.
"""

# Enums
from .enums import (
    RouteStatus,
    FlightStatus,
    BookingType,
    PaymentStatus,
    BookingStatus,
    AvailabilityLevel,
    CapacityReason,
    CommitMode,
)

# Flights and availability
from .flight import (
    RouteModel,
    FlightModel,
    FlightTotals,
    FlightAvailabilityModel,
    AvailableFlightModel,
    CapacityDriftModel,
)

# Holds
from .hold import (
    FlightHoldModel,
    HoldConfirmation,
)

# Bookings and passengers
from .booking import (
    PassengerInput,
    BookingValidationRequest,
    BookingRequest,
    CapacityCheck,
    PassengerModel,
    BookingModel,
    BookingDetailModel,
    BookingConfirmation,
    InconsistentBookingModel,
)

# Simulation models
from .simulation import (
    PartySimulationModel,
    ConcurrentBookingSimulationModel,
)

__all__ = [
    # Enums
    "RouteStatus",
    "FlightStatus",
    "BookingType",
    "PaymentStatus",
    "BookingStatus",
    "AvailabilityLevel",
    "CapacityReason",
    "CommitMode",

    # Flight models
    "RouteModel",
    "FlightModel",
    "FlightTotals",
    "FlightAvailabilityModel",
    "AvailableFlightModel",
    "CapacityDriftModel",

    # Hold models
    "FlightHoldModel",
    "HoldConfirmation",

    # Booking models
    "PassengerInput",
    "BookingValidationRequest",
    "BookingRequest",
    "CapacityCheck",
    "PassengerModel",
    "BookingModel",
    "BookingDetailModel",
    "BookingConfirmation",
    "InconsistentBookingModel",

    # Simulation models
    "PartySimulationModel",
    "ConcurrentBookingSimulationModel",
]
