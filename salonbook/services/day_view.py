"""
Read-only day view derived from the scheduling engine's state.

Renderers (the CLI table, a web front end) draw from a ``DaySnapshot``
and never touch the engine's live state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Tuple

from pendulum import DateTime

from ..domain.models import Appointment, AppointmentType, DayContext, DragSession, TeamMember

if TYPE_CHECKING:
    from .scheduling_engine import DragState, SyncState


def appointment_at(
    appointments: Iterable[Appointment],
    team_member_id: str,
    slot_time: DateTime,
    slot_duration_minutes: int,
) -> Appointment | None:
    """
    Find the appointment belonging to a cell.

    An appointment starting within ``[slot_time, slot_time + width)`` is
    preferred; otherwise one that began earlier and is still running at
    ``slot_time`` is returned.
    """
    slot_end = slot_time.add(minutes=slot_duration_minutes)
    slot_tz = slot_time.timezone
    candidates = sorted(
        (
            apt for apt in appointments
            if apt.team_member_id == team_member_id
            and apt.start.in_timezone(slot_tz).date() == slot_time.date()
        ),
        key=lambda apt: apt.start,
    )

    for apt in candidates:
        if slot_time <= apt.start < slot_end:
            return apt

    for apt in candidates:
        if apt.start < slot_time < apt.end:
            return apt

    return None


@dataclass(frozen=True)
class DaySnapshot:
    """Immutable copy of everything needed to draw the day."""
    context: DayContext
    slot_times: Tuple[DateTime, ...]
    boundary: DateTime
    slot_duration_minutes: int
    roster: Tuple[TeamMember, ...]
    appointments: Tuple[Appointment, ...]
    sync_states: Dict[str, "SyncState"] = field(default_factory=dict)
    state: "DragState | None" = None
    session: DragSession | None = None
    now: DateTime | None = None


@dataclass(frozen=True)
class BlockGeometry:
    """Placement of an appointment block inside its starting cell, in minutes."""
    offset_minutes: int
    total_minutes: int
    service_minutes: int
    buffer_minutes: int


@dataclass(frozen=True)
class Cell:
    team_member_id: str
    slot_time: DateTime
    appointment: Appointment | None = None
    starts_here: bool = False
    in_past: bool = False
    dragging: bool = False
    geometry: BlockGeometry | None = None


@dataclass(frozen=True)
class DayRow:
    slot_time: DateTime
    cells: Tuple[Cell, ...]

    @property
    def label(self) -> str:
        return self.slot_time.format("HH:mm")


def block_geometry(appointment: Appointment, slot_time: DateTime, context: DayContext) -> BlockGeometry:
    """
    Split an appointment into its service and buffer parts.

    Buffer time only applies to regular appointments whose service is
    known; blocked time is drawn as one piece.
    """
    total = appointment.duration_minutes()
    offset = int((appointment.start - slot_time).total_seconds() // 60)

    buffer_minutes = 0
    if appointment.type == AppointmentType.APPOINTMENT:
        service = context.find_service(appointment.service_id)
        if service is not None:
            buffer_minutes = min(service.buffer_time, total)

    return BlockGeometry(
        offset_minutes=max(offset, 0),
        total_minutes=total,
        service_minutes=total - buffer_minutes,
        buffer_minutes=buffer_minutes,
    )


def build_day_view(snapshot: DaySnapshot) -> List[DayRow]:
    """Lay the snapshot out as rows of cells, one cell per rostered member."""
    dragged_id = snapshot.session.appointment_id if snapshot.session else None
    rows: List[DayRow] = []

    for slot_time in snapshot.slot_times:
        cells = []
        for member in snapshot.roster:
            appointment = appointment_at(
                snapshot.appointments,
                member.id,
                slot_time,
                snapshot.slot_duration_minutes,
            )
            starts_here = appointment is not None and appointment.start >= slot_time
            cells.append(
                Cell(
                    team_member_id=member.id,
                    slot_time=slot_time,
                    appointment=appointment,
                    starts_here=starts_here,
                    in_past=snapshot.now is not None and slot_time < snapshot.now,
                    dragging=appointment is not None and appointment.id == dragged_id,
                    geometry=(
                        block_geometry(appointment, slot_time, snapshot.context)
                        if starts_here else None
                    ),
                )
            )
        rows.append(DayRow(slot_time=slot_time, cells=tuple(cells)))

    return rows
