"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .models import (
    Appointment,
    AppointmentType,
    DayContext,
    DragSession,
    DragTarget,
    Position,
    Service,
    Shop,
    SlotPlacement,
    TeamMember,
    TimeRange,
)
from .overlap import OverlapDetector
from .slot_resolver import SlotResolver
from .time_grid import TimeGrid

__all__ = [
    "Appointment",
    "AppointmentType",
    "DayContext",
    "DragSession",
    "DragTarget",
    "Position",
    "Service",
    "Shop",
    "SlotPlacement",
    "TeamMember",
    "TimeRange",
    "OverlapDetector",
    "SlotResolver",
    "TimeGrid",
]
