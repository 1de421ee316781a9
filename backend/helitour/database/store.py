"""
Persistence collaborator for the booking core.

BookingStore is the only code that talks to the ORM. Every method accepts an
optional `session`: when given, the work joins that session's transaction and
nothing is committed here; when omitted, the method runs in its own
`get_session_context()` and commits on exit. `transaction()` hands out a
session for callers that need several steps to commit or fail together.

Rows leave the store as Pydantic models so that callers never hold
session-bound ORM objects.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from .config import DatabaseConfig
from .models import Booking, Flight, FlightHold, Passenger, Route
from ..models import (
    BookingDetailModel,
    BookingModel,
    BookingRequest,
    BookingStatus,
    CapacityDriftModel,
    FlightHoldModel,
    FlightModel,
    FlightStatus,
    FlightTotals,
    InconsistentBookingModel,
    PassengerInput,
    PassengerModel,
    RouteModel,
    RouteStatus,
)

logger = logging.getLogger(__name__)


class BookingStore:
    """SQLAlchemy-backed store for routes, flights, holds, bookings and passengers."""

    def __init__(self, db_config: DatabaseConfig):
        self.db_config = db_config

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session whose work commits on clean exit and rolls back on any exception."""
        with self.db_config.get_session_context() as session:
            yield session

    @contextmanager
    def _session(self, session: Optional[Session]) -> Iterator[Session]:
        if session is not None:
            yield session
        else:
            with self.db_config.get_session_context() as own:
                yield own

    # ------------------------------------------------------------------
    # Routes and flights
    # ------------------------------------------------------------------

    def create_route(
        self,
        name: str,
        origin: str,
        destination: str,
        duration_minutes: int,
        base_price: Decimal,
        description: Optional[str] = None,
        status: RouteStatus = RouteStatus.ACTIVE,
        session: Optional[Session] = None,
    ) -> RouteModel:
        with self._session(session) as s:
            route = Route(
                name=name,
                origin=origin,
                destination=destination,
                duration_minutes=duration_minutes,
                base_price=base_price,
                description=description,
                status=RouteStatus(status).value,
            )
            s.add(route)
            s.flush()
            return RouteModel.model_validate(route)

    def create_flight(
        self,
        route_id: int,
        scheduled_date: date,
        scheduled_time: time,
        max_passengers: int,
        max_weight_kg: Decimal,
        status: FlightStatus = FlightStatus.SCHEDULED,
        session: Optional[Session] = None,
    ) -> FlightModel:
        with self._session(session) as s:
            flight = Flight(
                route_id=route_id,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                max_passengers=max_passengers,
                max_weight_kg=max_weight_kg,
                current_passengers=0,
                current_weight_kg=Decimal("0"),
                capacity_version=0,
                status=FlightStatus(status).value,
            )
            s.add(flight)
            s.flush()
            return FlightModel.model_validate(flight)

    def read_flight(self, flight_id: int, session: Optional[Session] = None) -> Optional[FlightModel]:
        """
        Read a flight's current row.

        Identity-map contents are overwritten so that a session which has
        already seen the row still observes totals written by bulk updates.
        """
        with self._session(session) as s:
            stmt = (
                select(Flight)
                .where(Flight.flight_id == flight_id)
                .execution_options(populate_existing=True)
            )
            flight = s.execute(stmt).scalar_one_or_none()
            return FlightModel.model_validate(flight) if flight is not None else None

    def read_route(self, route_id: int, session: Optional[Session] = None) -> Optional[RouteModel]:
        with self._session(session) as s:
            route = s.get(Route, route_id)
            return RouteModel.model_validate(route) if route is not None else None

    def update_flight_status(self, flight_id: int, status: FlightStatus, session: Optional[Session] = None) -> bool:
        with self._session(session) as s:
            result = s.execute(
                update(Flight)
                .where(Flight.flight_id == flight_id)
                .values(status=FlightStatus(status).value)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def conditional_update_flight_totals(
        self,
        flight_id: int,
        expected: FlightTotals,
        new_passengers: int,
        new_weight_kg: Decimal,
        session: Optional[Session] = None,
    ) -> bool:
        """
        Compare-and-swap the committed totals of one flight.

        The write lands only if the row is still at `expected.version`; the
        version is bumped in the same statement. Totals are absolute values,
        never increments, so a lost race cannot leave a partial effect.

        Returns:
            True if the row was updated, False if another writer got there first
        """
        with self._session(session) as s:
            result = s.execute(
                update(Flight)
                .where(
                    Flight.flight_id == flight_id,
                    Flight.capacity_version == expected.version,
                )
                .values(
                    current_passengers=new_passengers,
                    current_weight_kg=new_weight_kg,
                    capacity_version=expected.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def list_flights(
        self,
        from_date: date,
        limit: int = 20,
        on_date: Optional[date] = None,
        statuses: Iterable[FlightStatus] = (FlightStatus.SCHEDULED, FlightStatus.CONFIRMED),
        session: Optional[Session] = None,
    ) -> List[Tuple[FlightModel, RouteModel]]:
        """Upcoming flights with their routes, earliest departure first."""
        with self._session(session) as s:
            stmt = (
                select(Flight, Route)
                .join(Route, Flight.route_id == Route.route_id)
                .where(Flight.status.in_([FlightStatus(st).value for st in statuses]))
                .order_by(Flight.scheduled_date, Flight.scheduled_time, Flight.flight_id)
                .limit(limit)
            )
            if on_date is not None:
                stmt = stmt.where(Flight.scheduled_date == on_date)
            else:
                stmt = stmt.where(Flight.scheduled_date >= from_date)

            return [
                (FlightModel.model_validate(flight), RouteModel.model_validate(route))
                for flight, route in s.execute(stmt).all()
            ]

    # ------------------------------------------------------------------
    # Holds
    # ------------------------------------------------------------------

    def read_active_holds(self, flight_id: int, now: datetime, session: Optional[Session] = None) -> List[FlightHoldModel]:
        with self._session(session) as s:
            stmt = (
                select(FlightHold)
                .where(FlightHold.flight_id == flight_id, FlightHold.expires_at > now)
                .order_by(FlightHold.created_at)
            )
            return [FlightHoldModel.model_validate(h) for h in s.execute(stmt).scalars()]

    def held_seats_by_flight(self, flight_ids: List[int], now: datetime, session: Optional[Session] = None) -> Dict[int, int]:
        """Active held seats per flight, for listing many flights in one query."""
        if not flight_ids:
            return {}
        with self._session(session) as s:
            stmt = (
                select(FlightHold.flight_id, func.sum(FlightHold.passenger_count))
                .where(FlightHold.flight_id.in_(flight_ids), FlightHold.expires_at > now)
                .group_by(FlightHold.flight_id)
            )
            return {flight_id: int(total or 0) for flight_id, total in s.execute(stmt).all()}

    def read_hold(self, flight_id: int, session_id: str, session: Optional[Session] = None) -> Optional[FlightHoldModel]:
        with self._session(session) as s:
            stmt = select(FlightHold).where(
                FlightHold.flight_id == flight_id, FlightHold.session_id == session_id
            )
            hold = s.execute(stmt).scalar_one_or_none()
            return FlightHoldModel.model_validate(hold) if hold is not None else None

    def upsert_hold(
        self,
        flight_id: int,
        session_id: str,
        passenger_count: int,
        expires_at: datetime,
        created_at: datetime,
        session: Optional[Session] = None,
    ) -> FlightHoldModel:
        """Replace any hold for (flight, session) with a new one, in one transaction."""
        with self._session(session) as s:
            s.execute(
                delete(FlightHold)
                .where(FlightHold.flight_id == flight_id, FlightHold.session_id == session_id)
                .execution_options(synchronize_session=False)
            )
            hold = FlightHold(
                flight_id=flight_id,
                session_id=session_id,
                passenger_count=passenger_count,
                expires_at=expires_at,
                created_at=created_at,
            )
            s.add(hold)
            s.flush()
            return FlightHoldModel.model_validate(hold)

    def delete_hold(self, session_id: str, flight_id: Optional[int] = None, session: Optional[Session] = None) -> int:
        with self._session(session) as s:
            stmt = delete(FlightHold).where(FlightHold.session_id == session_id)
            if flight_id is not None:
                stmt = stmt.where(FlightHold.flight_id == flight_id)
            result = s.execute(stmt.execution_options(synchronize_session=False))
            return result.rowcount

    def delete_expired_holds(self, now: datetime, session: Optional[Session] = None) -> int:
        with self._session(session) as s:
            result = s.execute(
                delete(FlightHold)
                .where(FlightHold.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                logger.debug(f"Swept {result.rowcount} expired holds")
            return result.rowcount

    # ------------------------------------------------------------------
    # Bookings and passengers
    # ------------------------------------------------------------------

    def insert_booking(
        self,
        request: BookingRequest,
        booking_reference: str,
        qr_code: str,
        session: Optional[Session] = None,
    ) -> BookingModel:
        """
        Insert a pending booking row for `request`.

        Raises:
            IntegrityError: If the booking reference is already taken
        """
        with self._session(session) as s:
            booking = Booking(
                flight_id=request.flight_id,
                booking_reference=booking_reference,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                passenger_count=request.passenger_count,
                total_weight_kg=request.total_weight_kg,
                booking_type=request.booking_type.value,
                payment_status='pending',
                status=BookingStatus.PENDING.value,
                qr_code=qr_code,
                notes=request.notes,
            )
            s.add(booking)
            s.flush()
            return BookingModel.model_validate(booking)

    def insert_passengers(
        self,
        booking_id: int,
        passengers: List[PassengerInput],
        session: Optional[Session] = None,
    ) -> List[PassengerModel]:
        with self._session(session) as s:
            rows = [
                Passenger(booking_id=booking_id, name=p.name.strip(), weight_kg=p.weight_kg)
                for p in passengers
            ]
            s.add_all(rows)
            s.flush()
            return [PassengerModel.model_validate(row) for row in rows]

    def delete_booking(self, booking_id: int, session: Optional[Session] = None) -> bool:
        """Delete a booking and its passengers. Returns False if it was already gone."""
        with self._session(session) as s:
            s.execute(
                delete(Passenger)
                .where(Passenger.booking_id == booking_id)
                .execution_options(synchronize_session=False)
            )
            result = s.execute(
                delete(Booking)
                .where(Booking.booking_id == booking_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def get_booking(self, booking_id: int, session: Optional[Session] = None) -> Optional[BookingModel]:
        with self._session(session) as s:
            stmt = (
                select(Booking)
                .where(Booking.booking_id == booking_id)
                .execution_options(populate_existing=True)
            )
            booking = s.execute(stmt).scalar_one_or_none()
            return BookingModel.model_validate(booking) if booking is not None else None

    def find_booking_by_reference(self, reference: str, session: Optional[Session] = None) -> Optional[BookingDetailModel]:
        with self._session(session) as s:
            stmt = (
                select(Booking, Flight, Route)
                .join(Flight, Booking.flight_id == Flight.flight_id)
                .join(Route, Flight.route_id == Route.route_id)
                .where(Booking.booking_reference == reference)
                .options(selectinload(Booking.passengers))
            )
            row = s.execute(stmt).first()
            if row is None:
                return None
            booking, flight, route = row
            data = BookingModel.model_validate(booking).model_dump()
            return BookingDetailModel(
                **data,
                scheduled_date=flight.scheduled_date,
                scheduled_time=flight.scheduled_time,
                route_name=route.name,
                origin=route.origin,
                destination=route.destination,
                duration_minutes=route.duration_minutes,
                base_price=route.base_price,
                passengers=[PassengerModel.model_validate(p) for p in booking.passengers],
            )

    def list_flight_bookings(self, flight_id: int, session: Optional[Session] = None) -> List[BookingModel]:
        """Non-cancelled bookings for a flight, oldest first."""
        with self._session(session) as s:
            stmt = (
                select(Booking)
                .where(
                    Booking.flight_id == flight_id,
                    Booking.status != BookingStatus.CANCELLED.value,
                )
                .order_by(Booking.created_at, Booking.booking_id)
            )
            return [BookingModel.model_validate(b) for b in s.execute(stmt).scalars()]

    def list_passengers(self, booking_id: int, session: Optional[Session] = None) -> List[PassengerModel]:
        with self._session(session) as s:
            stmt = (
                select(Passenger)
                .where(Passenger.booking_id == booking_id)
                .order_by(Passenger.passenger_id)
            )
            return [PassengerModel.model_validate(p) for p in s.execute(stmt).scalars()]

    def transition_booking_status(
        self,
        booking_id: int,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        session: Optional[Session] = None,
    ) -> bool:
        """
        Move a booking to `to_status` only if it is currently in `from_statuses`.

        Concurrent callers racing on the same booking see exactly one True.
        """
        with self._session(session) as s:
            result = s.execute(
                update(Booking)
                .where(
                    Booking.booking_id == booking_id,
                    Booking.status.in_([BookingStatus(st).value for st in from_statuses]),
                )
                .values(status=BookingStatus(to_status).value, updated_at=datetime.now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def find_inconsistent_bookings(self, session: Optional[Session] = None) -> List[InconsistentBookingModel]:
        """Live bookings whose passenger rows do not match their passenger_count."""
        with self._session(session) as s:
            linked = func.count(Passenger.passenger_id)
            stmt = (
                select(
                    Booking.booking_id,
                    Booking.booking_reference,
                    Booking.flight_id,
                    Booking.passenger_count,
                    linked.label("linked_passengers"),
                )
                .outerjoin(Passenger, Passenger.booking_id == Booking.booking_id)
                .where(Booking.status != BookingStatus.CANCELLED.value)
                .group_by(
                    Booking.booking_id,
                    Booking.booking_reference,
                    Booking.flight_id,
                    Booking.passenger_count,
                )
                .having(linked != Booking.passenger_count)
                .order_by(Booking.booking_id)
            )
            return [
                InconsistentBookingModel(
                    booking_id=row.booking_id,
                    booking_reference=row.booking_reference,
                    flight_id=row.flight_id,
                    passenger_count=row.passenger_count,
                    linked_passengers=row.linked_passengers,
                )
                for row in s.execute(stmt).all()
            ]

    def find_capacity_drift(self, session: Optional[Session] = None) -> List[CapacityDriftModel]:
        """Flights whose committed totals differ from the sum of their live bookings."""
        with self._session(session) as s:
            booked = (
                select(
                    Booking.flight_id.label("flight_id"),
                    func.coalesce(func.sum(Booking.passenger_count), 0).label("passengers"),
                    func.coalesce(func.sum(Booking.total_weight_kg), 0).label("weight"),
                )
                .where(Booking.status != BookingStatus.CANCELLED.value)
                .group_by(Booking.flight_id)
                .subquery()
            )
            stmt = (
                select(Flight, booked.c.passengers, booked.c.weight)
                .outerjoin(booked, booked.c.flight_id == Flight.flight_id)
                .order_by(Flight.flight_id)
            )
            drift = []
            for flight, passengers, weight in s.execute(stmt).all():
                booked_passengers = int(passengers or 0)
                booked_weight = Decimal(str(weight or 0)).quantize(Decimal("0.01"))
                current_weight = Decimal(flight.current_weight_kg).quantize(Decimal("0.01"))
                if booked_passengers != flight.current_passengers or booked_weight != current_weight:
                    drift.append(CapacityDriftModel(
                        flight_id=flight.flight_id,
                        current_passengers=flight.current_passengers,
                        booked_passengers=booked_passengers,
                        current_weight_kg=current_weight,
                        booked_weight_kg=booked_weight,
                    ))
            return drift


__all__ = ['BookingStore']
