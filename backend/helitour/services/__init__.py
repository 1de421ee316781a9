"""
Booking core services.

Capacity ledger, hold manager, availability calculator, validation policy
and booking commit protocol, plus the coordinator and catalog read sides.
"""

from .errors import (
    BookingError,
    InvalidBookingRequest,
    FlightNotFound,
    BookingNotFound,
    FlightNotBookable,
    HoldUnavailable,
    InvalidBookingTransition,
    InsufficientCapacity,
    CapacityExceeded,
    PassengerLimitExceeded,
    WeightLimitExceeded,
    InternalCommitFailure,
    BookingReferenceConflict,
    OrphanedBookingError,
    LedgerInconsistency,
)
from .availability import AvailabilityCalculator, compute_availability
from .capacity_ledger import CapacityLedger
from .lock_manager import DistributedLockManager, LockInfo
from .catalog import FlightCatalog
from .hold_manager import HoldManager, HOLD_TTL
from .booking_commit import BookingCommitProtocol
from .coordinator import CoordinatorService
from .booking_simulator import ConcurrentBookingSimulator, BookingScenario
from .container import BookingServices, build_services

__all__ = [
    # Errors
    "BookingError",
    "InvalidBookingRequest",
    "FlightNotFound",
    "BookingNotFound",
    "FlightNotBookable",
    "HoldUnavailable",
    "InvalidBookingTransition",
    "InsufficientCapacity",
    "CapacityExceeded",
    "PassengerLimitExceeded",
    "WeightLimitExceeded",
    "InternalCommitFailure",
    "BookingReferenceConflict",
    "OrphanedBookingError",
    "LedgerInconsistency",

    # Core
    "AvailabilityCalculator",
    "compute_availability",
    "CapacityLedger",
    "DistributedLockManager",
    "LockInfo",
    "FlightCatalog",
    "HoldManager",
    "HOLD_TTL",
    "BookingCommitProtocol",
    "CoordinatorService",
    "ConcurrentBookingSimulator",
    "BookingScenario",
    "BookingServices",
    "build_services",
]
