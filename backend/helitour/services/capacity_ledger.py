"""
Capacity ledger for committed flight totals.

The ledger is the only writer of `current_passengers` and
`current_weight_kg`. Each write is a compare-and-swap on the flight's
`capacity_version`: read the row, validate the new totals against the
limits, then update only if nobody else wrote in between. A lost race means
another commit landed, so the ledger re-reads and re-validates against the
new totals. Retries are bounded; running out is reported as
CapacityExceeded rather than retried forever.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..database.store import BookingStore
from ..models import FlightModel
from .errors import CapacityExceeded, FlightNotFound, LedgerInconsistency
from .validation import ensure_capacity, evaluate_capacity

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 10


class CapacityLedger:
    """Compare-and-swap writer for committed flight capacity."""

    def __init__(self, store: BookingStore, max_retries: int = DEFAULT_MAX_RETRIES):
        self.store = store
        self.max_retries = max_retries

    def get_flight(self, flight_id: int, session: Optional[Session] = None) -> FlightModel:
        """
        Raises:
            FlightNotFound: Unknown flight
        """
        flight = self.store.read_flight(flight_id, session=session)
        if flight is None:
            raise FlightNotFound(flight_id)
        return flight

    def apply_commit(
        self,
        flight_id: int,
        passenger_delta: int,
        weight_delta: Decimal,
        session: Optional[Session] = None,
    ) -> FlightModel:
        """
        Add a booking's passengers and weight to the flight's committed totals.

        Returns:
            The flight as written

        Raises:
            FlightNotFound: Unknown flight
            PassengerLimitExceeded: Not enough seats left at the time of the write
            WeightLimitExceeded: Not enough weight allowance left at the time of the write
            CapacityExceeded: Lost the race more than `max_retries` times
        """
        for attempt in range(1, self.max_retries + 1):
            flight = self.get_flight(flight_id, session=session)
            check = evaluate_capacity(flight, passenger_delta, weight_delta)
            if not check.can_book:
                logger.info(
                    f"Ledger rejected +{passenger_delta} pax/+{weight_delta}kg on flight {flight_id}: "
                    f"{check.reason.value}"
                )
            ensure_capacity(check)

            new_passengers = flight.current_passengers + passenger_delta
            new_weight = flight.current_weight_kg + weight_delta
            if self.store.conditional_update_flight_totals(
                flight_id, flight.totals, new_passengers, new_weight, session=session
            ):
                logger.debug(
                    f"Flight {flight_id} committed totals now {new_passengers} pax / {new_weight}kg "
                    f"(version {flight.capacity_version + 1})"
                )
                return flight.model_copy(update={
                    "current_passengers": new_passengers,
                    "current_weight_kg": new_weight,
                    "capacity_version": flight.capacity_version + 1,
                })

            logger.info(f"Lost capacity race on flight {flight_id} (attempt {attempt}/{self.max_retries})")

        logger.warning(f"Gave up committing capacity on flight {flight_id} after {self.max_retries} attempts")
        raise CapacityExceeded()

    def apply_rollback(
        self,
        flight_id: int,
        passenger_delta: int,
        weight_delta: Decimal,
        session: Optional[Session] = None,
    ) -> FlightModel:
        """
        Return a booking's passengers and weight to the flight.

        Raises:
            FlightNotFound: Unknown flight
            LedgerInconsistency: The rollback would drive totals negative, or
                the row kept changing for `max_retries` attempts
        """
        for attempt in range(1, self.max_retries + 1):
            flight = self.get_flight(flight_id, session=session)
            new_passengers = flight.current_passengers - passenger_delta
            new_weight = flight.current_weight_kg - weight_delta
            if new_passengers < 0 or new_weight < 0:
                logger.error(
                    f"Rollback of {passenger_delta} pax/{weight_delta}kg would make flight {flight_id} "
                    f"negative ({flight.current_passengers} pax / {flight.current_weight_kg}kg)"
                )
                raise LedgerInconsistency(flight_id, "Rollback exceeds committed totals")

            if self.store.conditional_update_flight_totals(
                flight_id, flight.totals, new_passengers, new_weight, session=session
            ):
                logger.debug(f"Flight {flight_id} rolled back to {new_passengers} pax / {new_weight}kg")
                return flight.model_copy(update={
                    "current_passengers": new_passengers,
                    "current_weight_kg": new_weight,
                    "capacity_version": flight.capacity_version + 1,
                })

            logger.info(f"Lost rollback race on flight {flight_id} (attempt {attempt}/{self.max_retries})")

        logger.error(f"Could not roll back capacity on flight {flight_id} after {self.max_retries} attempts")
        raise LedgerInconsistency(flight_id, "Rollback did not converge")
