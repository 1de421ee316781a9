"""
Helitour command line.

Database setup, demo data, flight listings, housekeeping and the
overbooking simulation, plus `serve` to run the HTTP API.
"""

import asyncio
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import AvailabilityLevel
from .services.container import BookingServices, build_services
from .services.errors import BookingError
from .utils.config import get_config, setup_logging

app = typer.Typer(help="Helicopter tour capacity and booking tools")
console = Console()

DEMO_ROUTES = [
    ("Harbour Lights", "City Heliport", "Harbour", 15, Decimal("149.00")),
    ("Canyon Explorer", "City Heliport", "Red Canyon", 45, Decimal("389.00")),
    ("Glacier Landing", "Valley Helipad", "North Glacier", 90, Decimal("729.00")),
]
DEMO_DEPARTURES = [time(9, 0), time(11, 30), time(14, 0), time(16, 30)]

LEVEL_COLORS = {
    AvailabilityLevel.HIGH: "green",
    AvailabilityLevel.LOW: "yellow",
    AvailabilityLevel.FULL: "red",
    AvailabilityLevel.NONE: "dim",
}


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    setup_logging(log_level or get_config().log_level)


def _run(coro_factory):
    """Start the booking core, run one coroutine against it, and shut down."""
    async def runner():
        services = build_services()
        await services.start()
        try:
            return await coro_factory(services)
        finally:
            await services.close()

    return asyncio.run(runner())


@app.command("init-db")
def init_db():
    """Create the database tables."""
    async def work(services: BookingServices):
        return services.db_config.get_connection_info()

    info = _run(work)
    console.print(f"[green]✓[/green] Tables ready on {info['database_type']} ({info['database_url']})")


@app.command()
def seed(
    days: int = typer.Option(3, min=1, help="Days of flights to create, starting today"),
    max_passengers: int = typer.Option(6, min=1, help="Seats per flight"),
    max_weight_kg: float = typer.Option(540.0, min=1, help="Passenger weight limit per flight"),
):
    """Create demo routes and a few days of scheduled flights."""
    async def work(services: BookingServices):
        store = services.store
        flights = 0
        with store.transaction() as session:
            for name, origin, destination, minutes, price in DEMO_ROUTES:
                route = store.create_route(name, origin, destination, minutes, price, session=session)
                for offset in range(days):
                    for departure in DEMO_DEPARTURES:
                        store.create_flight(
                            route.route_id,
                            date.today() + timedelta(days=offset),
                            departure,
                            max_passengers,
                            Decimal(str(max_weight_kg)),
                            session=session,
                        )
                        flights += 1
        return flights

    created = _run(work)
    console.print(f"[green]✓[/green] Seeded {len(DEMO_ROUTES)} routes and {created} flights")


@app.command()
def flights(
    on_date: Optional[datetime] = typer.Option(None, "--date", formats=["%Y-%m-%d"], help="Only this day"),
    limit: int = typer.Option(20, min=1, max=100),
):
    """List upcoming flights with their availability."""
    async def work(services: BookingServices):
        if on_date is not None:
            return await services.coordinator.flights_for_date(on_date.date())
        return await services.catalog.list_available_flights(limit=limit)

    listing = _run(work)
    if not listing:
        console.print("[yellow]No upcoming flights[/yellow]")
        return

    table = Table(title="Upcoming Flights", box=box.ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Route")
    table.add_column("Departure")
    table.add_column("Booked", justify="right")
    table.add_column("Held", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Weight left", justify="right")
    table.add_column("Status")

    for flight in listing:
        color = LEVEL_COLORS[flight.availability_level]
        table.add_row(
            str(flight.flight_id),
            flight.route_name,
            f"{flight.scheduled_date} {flight.scheduled_time:%H:%M}",
            f"{flight.current_passengers}/{flight.max_passengers}",
            str(flight.held_seats),
            f"[{color}]{flight.actual_available_seats}[/{color}]",
            f"{flight.remaining_weight_kg:.1f} kg",
            flight.status.value,
        )
    console.print(table)


@app.command("sweep-holds")
def sweep_holds():
    """Delete seat holds whose deadline has passed."""
    async def work(services: BookingServices):
        return services.holds.sweep_expired()

    removed = _run(work)
    console.print(f"[green]✓[/green] Removed {removed} expired hold(s)")


@app.command()
def reconcile():
    """Report orphaned bookings and flights whose totals drifted from their bookings."""
    async def work(services: BookingServices):
        return services.coordinator.reconcile()

    report = _run(work)
    inconsistent = report["inconsistent_bookings"]
    drift = report["capacity_drift"]

    if not inconsistent and not drift:
        console.print("[green]✓ No inconsistencies found[/green]")
        return

    if inconsistent:
        table = Table(title="Bookings Without Passengers", box=box.ROUNDED)
        table.add_column("Booking ID", justify="right")
        table.add_column("Reference")
        table.add_column("Flight", justify="right")
        table.add_column("Expected pax", justify="right")
        table.add_column("Stored pax", justify="right")
        for row in inconsistent:
            table.add_row(
                str(row.booking_id),
                row.booking_reference,
                str(row.flight_id),
                str(row.passenger_count),
                str(row.linked_passengers),
            )
        console.print(table)

    if drift:
        table = Table(title="Capacity Drift", box=box.ROUNDED)
        table.add_column("Flight", justify="right")
        table.add_column("Ledger pax", justify="right")
        table.add_column("Booked pax", justify="right")
        table.add_column("Ledger kg", justify="right")
        table.add_column("Booked kg", justify="right")
        for row in drift:
            table.add_row(
                str(row.flight_id),
                str(row.current_passengers),
                str(row.booked_passengers),
                f"{row.current_weight_kg:.1f}",
                f"{row.booked_weight_kg:.1f}",
            )
        console.print(table)

    raise typer.Exit(code=1)


@app.command()
def simulate(
    flight_id: int = typer.Argument(..., help="Flight to book against"),
    scenario: str = typer.Option("last_seats_rush", "--scenario", "-s", help="Simulation scenario"),
    seed: Optional[int] = typer.Option(None, help="Random seed for party sizes and weights"),
):
    """Fire concurrent booking parties at one flight and check it never overbooks."""
    async def work(services: BookingServices):
        if seed is not None:
            services.simulator.random.seed(seed)
        return await services.simulator.run_simulation(flight_id, scenario_name=scenario)

    try:
        result = _run(work)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=2)
    except BookingError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=2)

    color = "red" if result.overbooked else "green"
    console.print(Panel(
        f"[bold]{result.scenario_name}[/bold]\n"
        f"Parties: {result.num_parties}  |  Booked: {result.successful_bookings}  |  "
        f"Rejected: {result.capacity_rejections}  |  Failed: {result.internal_failures}\n"
        f"Committed: {result.committed_passengers} pax / {result.committed_weight_kg} kg\n"
        f"Overbooked: [{color}]{result.overbooked}[/{color}]",
        title=f"Simulation {result.simulation_id[:8]}",
        box=box.DOUBLE,
    ))
    if result.overbooked:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
):
    """Run the booking API with uvicorn."""
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    app()
