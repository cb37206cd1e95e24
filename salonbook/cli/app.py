"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.table import Table

from ..adapters.memory_repository import MemoryRepository
from ..adapters.supabase_repository import SupabaseRepository
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SalonbookError
from ..domain.models import DayContext, DragTarget, TeamMember, parse_clock_time
from ..services.day_view import build_day_view
from ..services.scheduling_engine import (
    AppointmentRequest,
    OperationResult,
    OperationStatus,
    SchedulingEngine,
)

app = typer.Typer(
    name="salonbook",
    help="Day-view appointment scheduling for salons",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DateOption = Annotated[Optional[str], typer.Option("--date", help="Calendar day (YYYY-MM-DD). Defaults to today.")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the local JSON data file instead of Supabase.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Day-view appointment scheduling for salons.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _parse_day(value: Optional[str], tz: str):
    if not value:
        return pendulum.today(tz).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _build_repository(config: AppConfig, mock: bool):
    if mock or config.supabase is None:
        return MemoryRepository(data_file=config.data_file, timezone=config.timezone)

    return SupabaseRepository(
        url=config.supabase.url,
        api_key=config.supabase.api_key,
        timezone=config.timezone,
        timeout=config.supabase.timeout_seconds,
    )


async def _open_engine(config: AppConfig, day, mock: bool) -> Tuple[SchedulingEngine, object]:
    """Load the shop, staff, services and appointments for ``day``."""
    repository = _build_repository(config, mock)

    shop = await repository.get_shop(config.shop_id)
    team_members = await repository.list_team_members(config.shop_id)
    services = await repository.list_services(config.shop_id)

    context = DayContext(
        shop=shop,
        day=day,
        team_members=tuple(team_members),
        services=tuple(services),
        timezone=config.timezone,
    )
    engine = SchedulingEngine(
        repository,
        context,
        time_grid=config.calendar.build_time_grid(shop.opening_time, shop.closing_time),
        resolver=config.calendar.build_resolver(),
        default_blocked_minutes=config.calendar.default_blocked_minutes,
        min_blocked_minutes=config.calendar.min_blocked_minutes,
    )
    await engine.load()
    return engine, repository


def _find_member(engine: SchedulingEngine, identifier: str) -> TeamMember:
    """Resolve a team member by id or (case-insensitive) name."""
    for member in engine.context.team_members:
        if member.id == identifier or member.name.lower() == identifier.lower():
            return member

    console.print(f"[bold red]Error:[/bold red] Unknown team member: {identifier!r}")
    raise typer.Exit(1)


def _report(result: OperationResult, success: str) -> None:
    if result.status == OperationStatus.COMMITTED:
        console.print(f"[green]✓ {success}[/green]")
        return

    conflict = result.conflict
    if conflict is not None:
        console.print(
            f"[bold red]Slot occupied:[/bold red] {conflict.client_name or conflict.type.value} "
            f"{conflict.start.format('HH:mm')}-{conflict.end.format('HH:mm')}"
        )
    else:
        console.print(f"[bold red]{result.status.value.capitalize()}:[/bold red] {result.error}")
    raise typer.Exit(1)


def _save(repository) -> None:
    if isinstance(repository, MemoryRepository):
        repository.save()


@app.command()
def grid(
    config_file: ConfigOption = None,
    date: DateOption = None,
    mock: MockOption = False,
    interval: Annotated[int, typer.Option("--interval", help="Minutes between time options")] = 15,
):
    """
    Show the time grid derived from the shop's opening hours.
    """
    try:
        config = _load_config(config_file)
        day = _parse_day(date, config.timezone)
        engine, _ = asyncio.run(_open_engine(config, day, mock))
    except (FileNotFoundError, ValueError, SalonbookError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    time_grid = engine.time_grid
    points = time_grid.time_points(day, config.timezone)
    console.print(f"\n[bold cyan]{engine.context.shop.name or engine.context.shop.id}[/bold cyan] – {day.to_date_string()}")
    console.print(f"Slots ({time_grid.slot_duration_minutes} min): " + " ".join(p.format("HH:mm") for p in points[:-1]))
    console.print(f"Closing boundary: {points[-1].format('HH:mm')}")
    console.print(f"Time options ({interval} min): " + " ".join(time_grid.time_options(interval)))
    console.print()


@app.command()
def day(
    config_file: ConfigOption = None,
    date: DateOption = None,
    mock: MockOption = False,
):
    """
    Show the day calendar: one column per team member working that day.
    """
    try:
        config = _load_config(config_file)
        selected = _parse_day(date, config.timezone)
        engine, _ = asyncio.run(_open_engine(config, selected, mock))
    except (FileNotFoundError, ValueError, SalonbookError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    snapshot = engine.snapshot()
    if not snapshot.roster:
        console.print(f"[yellow]Nobody works on {selected.format('dddd, DD.MM.YYYY')}.[/yellow]")
        return

    table = Table(
        title=f"{engine.context.shop.name} – {selected.format('dddd, DD.MM.YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="bold yellow")
    for member in snapshot.roster:
        table.add_column(member.name or member.id)

    for row in build_day_view(snapshot):
        values = []
        for cell in row.cells:
            apt = cell.appointment
            if apt is None:
                values.append("[dim]·[/dim]" if cell.in_past else "")
            elif cell.starts_here:
                label = "Blocked" if apt.is_blocked else (apt.client_name or apt.client_id or "")
                text = f"{label} {apt.start.format('HH:mm')}-{apt.end.format('HH:mm')}"
                if cell.geometry and cell.geometry.buffer_minutes:
                    text += f" (+{cell.geometry.buffer_minutes} buffer)"
                values.append(f"[dim]{text}[/dim]" if apt.is_blocked else text)
            else:
                values.append("│")
        table.add_row(row.label, *values)

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    member: Annotated[str, typer.Argument(help="Team member id or name")],
    start: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    service: Annotated[Optional[str], typer.Option("--service", "-s", help="Service id")] = None,
    client: Annotated[Optional[str], typer.Option("--client", help="Client id")] = None,
    client_name: Annotated[str, typer.Option("--client-name", help="Client display name")] = "",
    blocked: Annotated[bool, typer.Option("--blocked", help="Block time instead of booking a service")] = False,
    end: Annotated[Optional[str], typer.Option("--end", help="End time for blocked time (HH:MM)")] = None,
    reason: Annotated[Optional[str], typer.Option("--reason", help="Note or reason for blocking")] = None,
    config_file: ConfigOption = None,
    date: DateOption = None,
    mock: MockOption = False,
):
    """
    Book an appointment or block time.

    Examples:

        salonbook book anna 14:00 --service svc-cut --client cl-1 --date 2030-03-04

        salonbook book anna 12:00 --blocked --end 12:45 --reason Lunch
    """
    async def run() -> OperationResult:
        engine, repository = await _open_engine(config, selected, mock)
        team_member = _find_member(engine, member)
        result = await engine.create_appointment(
            AppointmentRequest(
                team_member_id=team_member.id,
                start_time=start,
                date=selected,
                type="blocked" if blocked else "appointment",
                client_id=client,
                service_id=service,
                end_time=end,
                client_name=client_name,
                reason=reason,
            )
        )
        if result.status == OperationStatus.COMMITTED:
            _save(repository)
        return result

    try:
        config = _load_config(config_file)
        selected = _parse_day(date, config.timezone)
        result = asyncio.run(run())
    except (FileNotFoundError, ValueError, SalonbookError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    what = "Time block" if blocked else "Appointment"
    apt = result.appointment
    _report(result, f"{what} created: {apt.start.format('HH:mm')}-{apt.end.format('HH:mm')} ({apt.id})" if apt else what)


@app.command()
def move(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    member: Annotated[str, typer.Argument(help="Target team member id or name")],
    slot: Annotated[str, typer.Argument(help="Target slot time (HH:MM)")],
    offset: Annotated[float, typer.Option("--offset", help="Minutes from the slot top, may be negative")] = 0.0,
    config_file: ConfigOption = None,
    date: DateOption = None,
    mock: MockOption = False,
):
    """
    Move an appointment, snapping to the 5-minute grid.
    """
    slot_clock = parse_clock_time(slot)
    if slot_clock is None:
        console.print(f"[bold red]Error:[/bold red] Invalid slot time {slot!r}, use HH:MM")
        raise typer.Exit(1)

    async def run() -> OperationResult:
        engine, repository = await _open_engine(config, selected, mock)
        team_member = _find_member(engine, member)
        target = DragTarget(
            team_member_id=team_member.id,
            slot_time=engine.context.at(slot_clock.hour, slot_clock.minute),
            raw_offset_minutes=offset,
        )
        result = await engine.move_appointment(appointment_id, target)
        if result.status == OperationStatus.COMMITTED:
            _save(repository)
        return result

    try:
        config = _load_config(config_file)
        selected = _parse_day(date, config.timezone)
        result = asyncio.run(run())
    except (FileNotFoundError, ValueError, SalonbookError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    apt = result.appointment
    _report(result, f"Moved to {apt.start.format('HH:mm')}-{apt.end.format('HH:mm')}" if apt else "Moved")


@app.command()
def delete(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
    date: DateOption = None,
    mock: MockOption = False,
):
    """
    Delete an appointment or unblock time.
    """
    async def run() -> OperationResult:
        engine, repository = await _open_engine(config, selected, mock)
        result = await engine.delete_appointment(appointment_id)
        if result.status == OperationStatus.COMMITTED:
            _save(repository)
        return result

    try:
        config = _load_config(config_file)
        selected = _parse_day(date, config.timezone)
        result = asyncio.run(run())
    except (FileNotFoundError, ValueError, SalonbookError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    unblocked = result.appointment is not None and result.appointment.is_blocked
    _report(result, "Time unblocked" if unblocked else "Appointment deleted")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
