"""
Domain-specific exception hierarchy for the scheduling engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Appointment


class SalonbookError(Exception):
    """Base class for all application-level errors."""


class SchedulingError(SalonbookError):
    """Raised when a scheduling operation is not allowed."""


class ValidationError(SchedulingError):
    """Raised when required input is missing or malformed."""


class PreconditionError(SchedulingError):
    """Raised when a team member is not on the roster for the selected day."""


class PastTimeError(SchedulingError):
    """Raised when a candidate start time lies before the current time."""


class SlotOccupiedError(SchedulingError):
    """Raised when a candidate interval overlaps an existing booking."""

    def __init__(self, message: str, conflict: "Appointment | None" = None):
        super().__init__(message)
        self.conflict = conflict


class AppointmentNotFoundError(SchedulingError):
    """Raised when an appointment id is unknown to the engine."""


class DragInProgressError(SchedulingError):
    """Raised when a second drag is started while one is still active."""


class NoActiveDragError(SchedulingError):
    """Raised when a drag operation is issued without an active session."""


class RepositoryError(SalonbookError):
    """Raised when appointment data cannot be read from or written to storage."""
