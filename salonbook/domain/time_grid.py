"""
Fixed-width time grid for a shop's day.

Pure domain logic: turns opening and closing times into the ordered slot
start times the calendar is drawn on.
"""

from datetime import time
from typing import List

import pendulum
from pendulum import Date, DateTime

DEFAULT_OPENING = time(8, 0)
DEFAULT_CLOSING = time(20, 0)


class TimeGrid:
    """
    Ordered time slots between a shop's opening and closing hour.

    The grid is hour aligned: it starts on the opening hour and ends on the
    closing hour, rounded up when closing has minutes (20:30 -> 21:00) so
    the last open half hour still has a cell.
    """

    def __init__(
        self,
        opening_time: time | None,
        closing_time: time | None,
        slot_duration_minutes: int = 30,
        default_opening: time = DEFAULT_OPENING,
        default_closing: time = DEFAULT_CLOSING,
    ):
        if slot_duration_minutes <= 0:
            raise ValueError(f"Slot duration must be positive, got {slot_duration_minutes}")

        self.slot_duration_minutes = slot_duration_minutes

        opening = opening_time or default_opening
        closing = closing_time or default_closing

        start_hour = opening.hour
        end_hour = closing.hour
        if closing.minute > 0:
            end_hour += 1

        self.start_hour = max(0, min(23, start_hour))
        self.end_hour = max(self.start_hour + 1, min(24, end_hour))

    @property
    def total_minutes(self) -> int:
        return (self.end_hour - self.start_hour) * 60

    def _day_anchor(self, day: Date | DateTime, tz: str) -> DateTime:
        if isinstance(day, DateTime):
            return day.start_of("day")
        return pendulum.datetime(day.year, day.month, day.day, tz=tz)

    def start(self, day: Date | DateTime, tz: str = "UTC") -> DateTime:
        """First slot start on ``day``."""
        return self._day_anchor(day, tz).set(hour=self.start_hour)

    def boundary(self, day: Date | DateTime, tz: str = "UTC") -> DateTime:
        """End of the last slot: the closing rollover instant."""
        return self.start(day, tz).add(minutes=self.total_minutes)

    def slot_times(self, day: Date | DateTime, tz: str = "UTC") -> List[DateTime]:
        """
        Slot start times for ``day`` in ascending order.

        A trailing partial slot is not generated when the slot width does
        not divide the grid.
        """
        first = self.start(day, tz)
        count = self.total_minutes // self.slot_duration_minutes
        return [
            first.add(minutes=index * self.slot_duration_minutes)
            for index in range(count)
        ]

    def time_points(self, day: Date | DateTime, tz: str = "UTC") -> List[DateTime]:
        """Slot starts followed by the closing boundary."""
        return self.slot_times(day, tz) + [self.boundary(day, tz)]

    def slot_for(self, moment: DateTime) -> DateTime | None:
        """Start of the slot containing ``moment``, or None outside the grid."""
        first = self.start(moment)
        if moment < first or moment >= self.boundary(moment):
            return None

        elapsed = int((moment - first).total_seconds() // 60)
        index = elapsed // self.slot_duration_minutes
        return first.add(minutes=index * self.slot_duration_minutes)

    def previous_slot(self, slot_time: DateTime) -> DateTime:
        return slot_time.subtract(minutes=self.slot_duration_minutes)

    def time_options(self, interval_minutes: int = 15) -> List[str]:
        """
        ``HH:MM`` labels every ``interval_minutes`` across the grid.

        The closing boundary (``HH:00`` of the end hour) is always included
        so it can be picked as an end time.
        """
        labels: List[str] = []
        for hour in range(self.start_hour, self.end_hour):
            for minute in range(0, 60, interval_minutes):
                labels.append(f"{hour:02d}:{minute:02d}")
        labels.append(f"{self.end_hour:02d}:00")
        return labels

    def end_time_options(self, start_label: str, interval_minutes: int = 15) -> List[str]:
        """Options strictly after ``start_label`` (for the blocked-time end picker)."""
        return [label for label in self.time_options(interval_minutes) if label > start_label]
