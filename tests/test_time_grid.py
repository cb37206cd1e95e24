"""
Tests for the TimeGrid.
"""

import pendulum
import pytest
from datetime import time

from salonbook.domain.time_grid import TimeGrid

TZ = "Europe/Berlin"
DAY = pendulum.date(2030, 3, 4)


def _labels(moments):
    return [moment.format("HH:mm") for moment in moments]


class TestTimeGrid:
    """Tests for slot generation from opening hours."""

    def test_half_hour_closing_adds_final_hour(self):
        grid = TimeGrid(time(9, 0), time(20, 30))

        points = _labels(grid.time_points(DAY, TZ))

        assert points[0] == "09:00"
        assert points[-3:] == ["20:00", "20:30", "21:00"]
        assert len(grid.slot_times(DAY, TZ)) == 24

    def test_missing_hours_use_defaults(self):
        grid = TimeGrid(None, None)
        slots = _labels(grid.slot_times(DAY, TZ))

        assert slots[0] == "08:00"
        assert slots[-1] == "19:30"
        assert grid.boundary(DAY, TZ) == pendulum.datetime(2030, 3, 4, 20, tz=TZ)

    def test_custom_defaults(self):
        grid = TimeGrid(None, time(18, 0), default_opening=time(10, 0))

        assert grid.start_hour == 10
        assert grid.end_hour == 18

    def test_late_closing_is_clamped_to_midnight(self):
        grid = TimeGrid(time(22, 0), time(23, 30))

        assert grid.end_hour == 24
        assert grid.boundary(DAY, TZ) == pendulum.datetime(2030, 3, 5, 0, tz=TZ)
        assert _labels(grid.slot_times(DAY, TZ)) == ["22:00", "22:30", "23:00", "23:30"]

    def test_closing_before_opening_keeps_one_hour(self):
        grid = TimeGrid(time(14, 0), time(9, 0))

        assert grid.start_hour == 14
        assert grid.end_hour == 15

    def test_no_trailing_partial_slot(self):
        grid = TimeGrid(time(9, 0), time(10, 0), slot_duration_minutes=40)

        assert _labels(grid.slot_times(DAY, TZ)) == ["09:00"]

    def test_invalid_slot_duration(self):
        with pytest.raises(ValueError):
            TimeGrid(time(9, 0), time(17, 0), slot_duration_minutes=0)

    def test_slot_for(self):
        grid = TimeGrid(time(9, 0), time(20, 30))

        assert grid.slot_for(pendulum.datetime(2030, 3, 4, 10, 17, tz=TZ)) == pendulum.datetime(2030, 3, 4, 10, tz=TZ)
        assert grid.slot_for(pendulum.datetime(2030, 3, 4, 20, 59, tz=TZ)) == pendulum.datetime(2030, 3, 4, 20, 30, tz=TZ)
        assert grid.slot_for(pendulum.datetime(2030, 3, 4, 8, 59, tz=TZ)) is None
        assert grid.slot_for(pendulum.datetime(2030, 3, 4, 21, 0, tz=TZ)) is None

    def test_previous_slot(self):
        grid = TimeGrid(time(9, 0), time(17, 0))

        slot = pendulum.datetime(2030, 3, 4, 10, tz=TZ)
        assert grid.previous_slot(slot) == pendulum.datetime(2030, 3, 4, 9, 30, tz=TZ)


class TestTimeOptions:

    def test_options_include_closing_boundary(self):
        grid = TimeGrid(time(9, 0), time(20, 30))

        options = grid.time_options(15)

        assert options[0] == "09:00"
        assert options[1] == "09:15"
        assert "20:45" in options
        assert options[-1] == "21:00"
        assert len(options) == 12 * 4 + 1

    def test_midnight_boundary_label(self):
        grid = TimeGrid(time(23, 0), time(23, 30))

        assert grid.time_options(30) == ["23:00", "23:30", "24:00"]

    def test_end_options_follow_start(self):
        grid = TimeGrid(time(9, 0), time(11, 0))

        assert grid.end_time_options("10:15") == ["10:30", "10:45", "11:00"]
