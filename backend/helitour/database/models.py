"""
SQLAlchemy database models for the helitour booking core.

This module defines the tables behind the capacity-hold and booking-commit
protocol:
- Route: Tour itineraries with base pricing
- Flight: Scheduled departures carrying committed capacity totals
- FlightHold: Short-lived seat holds keyed by (flight, session)
- Booking: Committed bookings with a unique public reference
- Passenger: Travelers belonging to a booking
"""

from sqlalchemy import (
    Column, Integer, String, Date, Time, DateTime, ForeignKey, Text, Index, Numeric,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime

# Create the declarative base for all models
Base = declarative_base()


class Route(Base):
    """
    Route model representing a sellable tour itinerary.

    Many scheduled flights share one route; the listing joins them for
    display names and pricing.
    """
    __tablename__ = 'route'

    # Primary key
    route_id = Column(Integer, primary_key=True, autoincrement=True)

    # Route details
    name = Column(String(100), nullable=False, index=True)
    origin = Column(String(100), nullable=False)
    destination = Column(String(100), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)  # Price per passenger
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='active')

    # Relationships
    flights = relationship("Flight", back_populates="route", lazy="select")

    def __repr__(self):
        return f"<Route(id={self.route_id}, name='{self.name}', status='{self.status}')>"


class Flight(Base):
    """
    Flight model representing a scheduled departure.

    `current_passengers` and `current_weight_kg` are the committed totals.
    They are written only by the capacity ledger, which bumps
    `capacity_version` on every write so concurrent writers can detect each
    other.
    """
    __tablename__ = 'flight'
    __table_args__ = (
        CheckConstraint('current_passengers >= 0', name='ck_flight_passengers_nonneg'),
        CheckConstraint('current_passengers <= max_passengers', name='ck_flight_passengers_max'),
        CheckConstraint('current_weight_kg >= 0', name='ck_flight_weight_nonneg'),
        CheckConstraint('current_weight_kg <= max_weight_kg', name='ck_flight_weight_max'),
    )

    # Primary key
    flight_id = Column(Integer, primary_key=True, autoincrement=True)

    # Schedule
    route_id = Column(Integer, ForeignKey('route.route_id'), nullable=False, index=True)
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)

    # Capacity limits and committed totals
    max_passengers = Column(Integer, nullable=False)
    max_weight_kg = Column(Numeric(8, 2), nullable=False)
    current_passengers = Column(Integer, nullable=False, default=0)
    current_weight_kg = Column(Numeric(8, 2), nullable=False, default=0)
    capacity_version = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default='scheduled', index=True)

    # Relationships
    route = relationship("Route", back_populates="flights", lazy="select")
    holds = relationship("FlightHold", back_populates="flight", lazy="select")
    bookings = relationship("Booking", back_populates="flight", lazy="select")

    def __repr__(self):
        return (
            f"<Flight(id={self.flight_id}, date={self.scheduled_date}, "
            f"passengers={self.current_passengers}/{self.max_passengers}, "
            f"version={self.capacity_version})>"
        )


class FlightHold(Base):
    """
    FlightHold model representing a provisional claim on seats.

    At most one row exists per (flight, session). A hold only counts while
    `expires_at` is in the future; expired rows are swept opportunistically.
    """
    __tablename__ = 'flight_hold'
    __table_args__ = (
        UniqueConstraint('flight_id', 'session_id', name='uq_flight_hold_session'),
    )

    # Primary key
    hold_id = Column(Integer, primary_key=True, autoincrement=True)

    flight_id = Column(Integer, ForeignKey('flight.flight_id', ondelete='CASCADE'), nullable=False, index=True)
    session_id = Column(String(128), nullable=False, index=True)
    passenger_count = Column(Integer, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    flight = relationship("Flight", back_populates="holds", lazy="select")

    def __repr__(self):
        return f"<FlightHold(id={self.hold_id}, flight_id={self.flight_id}, session='{self.session_id}', seats={self.passenger_count})>"


class Booking(Base):
    """
    Booking model representing a committed booking.

    The booking reference is unique; a collision fails the insert rather
    than silently sharing a reference between two customers.
    """
    __tablename__ = 'booking'

    # Primary key
    booking_id = Column(Integer, primary_key=True, autoincrement=True)

    flight_id = Column(Integer, ForeignKey('flight.flight_id'), nullable=False, index=True)
    booking_reference = Column(String(32), unique=True, nullable=False, index=True)

    # Contact details
    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)

    # Party
    passenger_count = Column(Integer, nullable=False)
    total_weight_kg = Column(Numeric(8, 2), nullable=False)

    booking_type = Column(String(20), nullable=False, default='online')
    payment_status = Column(String(20), nullable=False, default='pending')
    status = Column(String(20), nullable=False, default='pending', index=True)
    qr_code = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    # Relationships
    flight = relationship("Flight", back_populates="bookings", lazy="select")
    passengers = relationship(
        "Passenger",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="select",
        order_by="Passenger.passenger_id",
    )

    def __repr__(self):
        return f"<Booking(id={self.booking_id}, ref='{self.booking_reference}', flight_id={self.flight_id}, status='{self.status}')>"


class Passenger(Base):
    """
    Passenger model representing one traveler on a booking.

    Passengers are only ever created together with their booking and are
    removed with it.
    """
    __tablename__ = 'passenger'
    __table_args__ = (
        CheckConstraint('weight_kg >= 20 AND weight_kg <= 200', name='ck_passenger_weight_range'),
    )

    # Primary key
    passenger_id = Column(Integer, primary_key=True, autoincrement=True)

    booking_id = Column(Integer, ForeignKey('booking.booking_id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    weight_kg = Column(Numeric(5, 2), nullable=False)
    seat_number = Column(Integer, nullable=True)

    # Relationships
    booking = relationship("Booking", back_populates="passengers", lazy="select")

    def __repr__(self):
        return f"<Passenger(id={self.passenger_id}, booking_id={self.booking_id}, name='{self.name}')>"


# Composite indexes for the hot read paths
Index('idx_flight_date_time', Flight.scheduled_date, Flight.scheduled_time)
Index('idx_hold_flight_expiry', FlightHold.flight_id, FlightHold.expires_at)
Index('idx_booking_flight_created', Booking.flight_id, Booking.created_at)


def create_all_tables(engine):
    """
    Create all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.create_all(bind=engine)


def drop_all_tables(engine):
    """
    Drop all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.drop_all(bind=engine)


# Export all models and utilities
__all__ = [
    'Base',
    'Route',
    'Flight',
    'FlightHold',
    'Booking',
    'Passenger',
    'create_all_tables',
    'drop_all_tables'
]
