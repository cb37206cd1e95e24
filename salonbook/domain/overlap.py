"""
Overlap detection between a candidate placement and existing bookings.
"""

from typing import Iterable

from .models import Appointment, Position, TimeRange


class OverlapDetector:
    """
    Decides whether a candidate interval collides with a team member's bookings.

    Boundaries are exclusive, so back-to-back bookings are legal, and both
    sides are floored to whole seconds before comparing (see
    ``TimeRange.overlaps``). Blocked time and regular appointments are
    treated alike. Creation, explicit moves and drag updates all call into
    this one class so they agree on every boundary case.
    """

    def find_conflict(
        self,
        candidate: Position,
        existing: Iterable[Appointment],
        exclude_id: str | None = None,
    ) -> Appointment | None:
        """
        Return the first appointment the candidate collides with.

        Appointments are matched to the candidate's calendar day in the
        candidate's timezone, whatever zone they were loaded in.

        Args:
            candidate: Proposed team member and occupied interval
            existing: Appointments to check against
            exclude_id: Appointment to ignore, typically the one being moved

        Returns:
            The conflicting appointment, or None if the candidate is free
        """
        candidate_range = TimeRange(candidate.start, candidate.end)
        candidate_tz = candidate.start.timezone
        candidate_day = candidate.start.date()

        for appointment in existing:
            if exclude_id is not None and appointment.id == exclude_id:
                continue
            if appointment.team_member_id != candidate.team_member_id:
                continue
            if appointment.start.in_timezone(candidate_tz).date() != candidate_day:
                continue

            if candidate_range.overlaps(appointment.time_range):
                return appointment

        return None

    def overlaps(
        self,
        candidate: Position,
        existing: Iterable[Appointment],
        exclude_id: str | None = None,
    ) -> bool:
        """Check if the candidate collides with any existing appointment."""
        return self.find_conflict(candidate, existing, exclude_id) is not None
