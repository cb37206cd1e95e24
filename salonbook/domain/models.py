"""
Domain models for shops, staff, services and appointments on a day grid.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import time
from enum import Enum
from typing import List, Optional

import pendulum
from pendulum import Date, DateTime

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def parse_clock_time(value: str | None) -> time | None:
    """
    Parse a time-of-day string in ``HH:MM`` or ``HH:MM:SS`` form.

    Returns None for missing or unparsable input.
    """
    if not value:
        return None

    parts = str(value).strip().split(":")
    if len(parts) < 2:
        return None

    try:
        hour = int(parts[0])
        minute = int(parts[1])
    except ValueError:
        return None

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None

    return time(hour=hour, minute=minute)


def whole_seconds(moment: DateTime) -> int:
    """Epoch seconds, floored, so sub-second jitter never changes a comparison."""
    return math.floor(moment.timestamp())


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Boundaries are exclusive and compared in whole seconds, so a range
        starting exactly when the other ends does not overlap.
        """
        return (
            whole_seconds(self.start) < whole_seconds(other.end)
            and whole_seconds(self.end) > whole_seconds(other.start)
        )


@dataclass(frozen=True)
class Shop:
    """A shop and its daily operating hours."""
    id: str
    name: str = ""
    opening_time: time | None = None
    closing_time: time | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Shop":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            opening_time=parse_clock_time(row.get("opening_time")),
            closing_time=parse_clock_time(row.get("closing_time")),
        )


def parse_working_days(value) -> frozenset:
    """
    Normalise stored working days to a set of weekday names.

    Storage delivers either a list or a comma separated string.
    """
    if not value:
        return frozenset()

    if isinstance(value, str):
        days = [day.strip() for day in value.split(",")]
    else:
        days = [str(day).strip() for day in value]

    return frozenset(day for day in days if day)


@dataclass(frozen=True)
class TeamMember:
    """A bookable staff member."""
    id: str
    name: str = ""
    working_days: frozenset = field(default_factory=frozenset)

    def works_on(self, day: Date) -> bool:
        """Check if the member works on the weekday of ``day``."""
        return WEEKDAY_NAMES[day.weekday()] in self.working_days

    @classmethod
    def from_row(cls, row: dict) -> "TeamMember":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            working_days=parse_working_days(row.get("working_days")),
        )


@dataclass(frozen=True)
class Service:
    """A bookable service; buffer time is occupied but not part of the treatment."""
    id: str
    name: str = ""
    duration: int = 60
    buffer_time: int = 0
    price: float | None = None

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Service duration must be positive, got {self.duration}")
        if self.buffer_time < 0:
            raise ValueError(f"Buffer time must not be negative, got {self.buffer_time}")

    @property
    def occupied_minutes(self) -> int:
        return self.duration + self.buffer_time

    @classmethod
    def from_row(cls, row: dict) -> "Service":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            duration=int(row.get("duration") or 60),
            buffer_time=int(row.get("buffer_time") or 0),
            price=row.get("price"),
        )


class AppointmentType(str, Enum):
    APPOINTMENT = "appointment"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Appointment:
    """
    A reservation of a team member's time.

    ``start``/``end`` span the full occupied interval including any buffer
    time of the booked service.
    """
    id: str
    team_member_id: str
    start: DateTime
    end: DateTime
    type: AppointmentType = AppointmentType.APPOINTMENT
    service_id: str | None = None
    client_id: str | None = None
    client_name: str = ""
    shop_id: str | None = None
    reason: str | None = None
    price: float | None = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(
                f"Appointment {self.id}: start {self.start} must be before end {self.end}"
            )

    @property
    def is_blocked(self) -> bool:
        return self.type == AppointmentType.BLOCKED

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def position(self) -> "Position":
        return Position(team_member_id=self.team_member_id, start=self.start, end=self.end)

    def moved_to(self, position: "Position") -> "Appointment":
        """Return a copy placed at ``position``; start, end and member change together."""
        return replace(
            self,
            team_member_id=position.team_member_id,
            start=position.start,
            end=position.end,
        )


@dataclass(frozen=True)
class Position:
    """Where an appointment sits: the three fields a move always writes together."""
    team_member_id: str
    start: DateTime
    end: DateTime

    def same_cell(self, other: "Position") -> bool:
        """Same day, hour, minute and team member."""
        return (
            self.team_member_id == other.team_member_id
            and self.start.date() == other.start.date()
            and self.start.hour == other.start.hour
            and self.start.minute == other.start.minute
        )


@dataclass(frozen=True)
class SlotPlacement:
    """A pointer position snapped to a concrete team member and start time."""
    team_member_id: str
    slot_time: DateTime
    offset_minutes: int

    @property
    def start(self) -> DateTime:
        return self.slot_time.add(minutes=self.offset_minutes)

    @property
    def key(self) -> str:
        """Identity of the snapped cell, used to drop repeated pointer events."""
        return f"{self.team_member_id}-{self.slot_time.format('HH:mm')}-{self.offset_minutes}"


@dataclass(frozen=True)
class DragTarget:
    """
    A pointer position over the grid.

    ``raw_offset_minutes`` is measured from the top of ``slot_time``'s cell
    to the top of the dragged block and may be negative.
    """
    team_member_id: str
    slot_time: DateTime
    raw_offset_minutes: float = 0.0


@dataclass
class DragSession:
    """
    State of one in-progress drag.

    ``original`` is captured once at drag start and is the only revert
    target; ``current`` follows confirmed speculative writes.
    """
    appointment_id: str
    original: Position
    current: Position
    last_committed_key: Optional[str] = None
    pending_target: Optional[DragTarget] = None
    speculative_writes: int = 0


@dataclass(frozen=True)
class DayContext:
    """Everything the engine needs to know about the selected day."""
    shop: Shop
    day: Date
    team_members: tuple = ()
    services: tuple = ()
    timezone: str = "UTC"

    def active_roster(self) -> List[TeamMember]:
        """Team members working on the selected day."""
        return [member for member in self.team_members if member.works_on(self.day)]

    def is_on_roster(self, team_member_id: str) -> bool:
        return any(member.id == team_member_id for member in self.active_roster())

    def find_service(self, service_id: str | None) -> Service | None:
        for service in self.services:
            if service.id == service_id:
                return service
        return None

    def day_start(self) -> DateTime:
        return pendulum.datetime(self.day.year, self.day.month, self.day.day, tz=self.timezone)

    def day_end(self) -> DateTime:
        return self.day_start().end_of("day")

    def at(self, hour: int, minute: int = 0) -> DateTime:
        """A wall-clock moment on the selected day."""
        return self.day_start().set(hour=hour, minute=minute)
