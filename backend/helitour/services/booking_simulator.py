"""
Concurrent booking simulator.

Fires many booking parties at one flight at once to show that racing
commits never push a flight past its seat or weight limit. Each party runs
the synchronous commit in a worker thread, so the database sees genuinely
concurrent writers; use a file-backed database for meaningful results.
"""

import asyncio
import logging
import random
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass

from ..models import (
    BookingRequest,
    BookingType,
    ConcurrentBookingSimulationModel,
    PartySimulationModel,
    PassengerInput,
)
from .booking_commit import BookingCommitProtocol
from .capacity_ledger import CapacityLedger
from .catalog import invalidate_flight_listings
from .errors import BookingError, CapacityExceeded

logger = logging.getLogger(__name__)

_CAPACITY_CODES = frozenset({"capacity_exceeded", "passenger_limit", "weight_limit"})


@dataclass
class BookingScenario:
    """Configuration for a booking simulation scenario."""
    scenario_name: str
    parties: int
    party_size: Tuple[int, int]        # Min, max passengers per party
    passenger_weight_kg: Tuple[int, int]  # Min, max weight per passenger
    think_time_ms: Tuple[int, int]     # Min, max delay before committing


class ConcurrentBookingSimulator:
    """
    Multi-party booking simulator for overbooking demonstrations.

    Scenarios range from a stampede of single travelers on the last seats to
    heavy groups that run into the weight limit before the seat limit.
    """

    def __init__(self, commit_protocol: BookingCommitProtocol, ledger: CapacityLedger, seed: Optional[int] = None):
        """
        Args:
            commit_protocol: Protocol used for every simulated booking
            ledger: Ledger used to read the flight's totals afterwards
            seed: Optional seed for reproducible party sizes and weights
        """
        self.commit_protocol = commit_protocol
        self.ledger = ledger
        self.random = random.Random(seed)

        self.scenarios = {
            "last_seats_rush": BookingScenario(
                scenario_name="Last Seats Rush - Solo Travelers",
                parties=12,
                party_size=(1, 1),
                passenger_weight_kg=(55, 95),
                think_time_ms=(0, 20),
            ),
            "group_contention": BookingScenario(
                scenario_name="Group Contention - Families",
                parties=8,
                party_size=(2, 4),
                passenger_weight_kg=(40, 90),
                think_time_ms=(0, 50),
            ),
            "heavy_party": BookingScenario(
                scenario_name="Heavy Party - Weight Bound",
                parties=6,
                party_size=(2, 3),
                passenger_weight_kg=(110, 140),
                think_time_ms=(0, 50),
            ),
        }

        logger.info("ConcurrentBookingSimulator initialized with predefined scenarios")

    async def run_simulation(
        self,
        flight_id: int,
        scenario_name: str = "last_seats_rush",
        custom_scenario: Optional[BookingScenario] = None
    ) -> ConcurrentBookingSimulationModel:
        """
        Run a concurrent booking simulation against one flight.

        Raises:
            ValueError: Unknown scenario name
            FlightNotFound: Unknown flight
        """
        scenario = custom_scenario or self.scenarios.get(scenario_name)
        if not scenario:
            raise ValueError(f"Unknown scenario: {scenario_name}")

        flight = self.ledger.get_flight(flight_id)
        simulation_id = str(uuid.uuid4())
        start_time = time.time()

        logger.info(f"Starting simulation '{scenario.scenario_name}' for flight {flight_id} "
                    f"with {scenario.parties} concurrent parties")

        party_tasks = [
            self._simulate_party(flight_id, f"sim_party_{simulation_id[:8]}_{i}", scenario)
            for i in range(scenario.parties)
        ]
        parties = await asyncio.gather(*party_tasks)
        await invalidate_flight_listings(self.commit_protocol.cache)

        final = self.ledger.get_flight(flight_id)
        successes = sum(1 for p in parties if p.success)
        rejections = sum(1 for p in parties if p.error_code and p.error_code in _CAPACITY_CODES)
        failures = len(parties) - successes - rejections

        simulation = ConcurrentBookingSimulationModel(
            simulation_id=simulation_id,
            flight_id=flight_id,
            scenario_name=scenario.scenario_name,
            num_parties=scenario.parties,
            successful_bookings=successes,
            capacity_rejections=rejections,
            internal_failures=failures,
            committed_passengers=final.current_passengers,
            committed_weight_kg=final.current_weight_kg,
            overbooked=(
                final.current_passengers > flight.max_passengers
                or final.current_weight_kg > flight.max_weight_kg
            ),
            average_response_time_ms=(
                sum(p.total_response_time_ms for p in parties) / len(parties) if parties else 0.0
            ),
            simulation_duration_ms=int((time.time() - start_time) * 1000),
            parties=parties,
            completed_at=datetime.now(),
        )

        if simulation.overbooked:
            logger.critical(f"Simulation {simulation_id} overbooked flight {flight_id}")
        logger.info(f"Simulation completed: {successes} booked, {rejections} rejected for capacity, "
                    f"{failures} failed; flight at {final.current_passengers}/{flight.max_passengers} pax")
        return simulation

    async def _simulate_party(self, flight_id: int, party_id: str, scenario: BookingScenario) -> PartySimulationModel:
        start_time = time.time()
        size = self.random.randint(*scenario.party_size)
        passengers = [
            PassengerInput(
                name=f"{party_id} traveler {n + 1}",
                weight_kg=Decimal(self.random.randint(*scenario.passenger_weight_kg)),
            )
            for n in range(size)
        ]
        request = BookingRequest(
            flight_id=flight_id,
            customer_name=party_id,
            customer_email=f"{party_id}@example.com",
            customer_phone="+1-555-0100",
            passengers=passengers,
            booking_type=BookingType.ONLINE,
        )
        party = PartySimulationModel(
            party_id=party_id,
            passenger_count=size,
            total_weight_kg=request.total_weight_kg,
            attempt_start=datetime.now(),
        )

        think_time = self.random.uniform(scenario.think_time_ms[0] / 1000, scenario.think_time_ms[1] / 1000)
        await asyncio.sleep(think_time)

        try:
            confirmation = await asyncio.to_thread(self.commit_protocol.commit, request)
            party.success = True
            party.booking_reference = confirmation.booking_reference
        except BookingError as e:
            party.error_code = e.code
            if not isinstance(e, CapacityExceeded):
                logger.warning(f"Party {party_id} failed: {e.message}")
        finally:
            party.attempt_end = datetime.now()
            party.total_response_time_ms = int((time.time() - start_time) * 1000)

        return party

    def get_available_scenarios(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "scenario_name": s.scenario_name,
                "parties": s.parties,
                "party_size": s.party_size,
                "passenger_weight_kg": s.passenger_weight_kg,
            }
            for name, s in self.scenarios.items()
        }
