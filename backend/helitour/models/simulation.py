"""
Simulation models for the helitour booking application.

This module contains models for concurrent booking simulations used to
demonstrate that racing commits never overbook a flight.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class PartySimulationModel(BaseModel):
    """
    One simulated booking party within a concurrent simulation.

    Records what the party asked for and how its commit attempt ended.
    """
    model_config = ConfigDict(from_attributes=True)

    party_id: str = Field(..., description="Simulated party identifier")
    passenger_count: int = Field(..., ge=1, description="Seats requested")
    total_weight_kg: Decimal = Field(..., ge=0, description="Weight requested")
    attempt_start: datetime = Field(default_factory=datetime.now, description="Attempt start time")
    attempt_end: Optional[datetime] = Field(None, description="Attempt completion time")
    success: bool = Field(default=False, description="Whether the booking committed")
    booking_reference: Optional[str] = Field(None, description="Reference when committed")
    error_code: Optional[str] = Field(None, description="Error code when rejected")
    total_response_time_ms: int = Field(default=0, ge=0, description="Total response time")


class ConcurrentBookingSimulationModel(BaseModel):
    """
    Results from a concurrent booking simulation.

    `overbooked` must always be False: it is the invariant being shown.
    """
    model_config = ConfigDict(from_attributes=True)

    simulation_id: str = Field(..., description="Unique simulation identifier")
    flight_id: int = Field(..., description="Target flight for simulation")
    scenario_name: str = Field(..., description="Scenario that was run")
    num_parties: int = Field(..., ge=1, description="Number of concurrent parties")
    successful_bookings: int = Field(default=0, ge=0)
    capacity_rejections: int = Field(default=0, ge=0)
    internal_failures: int = Field(default=0, ge=0)
    committed_passengers: int = Field(default=0, ge=0, description="Flight passengers after the run")
    committed_weight_kg: Decimal = Field(default=Decimal("0"), ge=0, description="Flight weight after the run")
    overbooked: bool = Field(default=False, description="Whether any limit was exceeded")
    average_response_time_ms: float = Field(default=0.0, ge=0.0)
    simulation_duration_ms: int = Field(default=0, ge=0)
    parties: List[PartySimulationModel] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.now, description="Simulation start time")
    completed_at: Optional[datetime] = Field(None, description="Simulation completion time")
