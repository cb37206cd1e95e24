"""
Tests for snapping pointer positions to slot placements.
"""

import pendulum
import pytest

from salonbook.domain.models import DragTarget
from salonbook.domain.slot_resolver import SlotResolver

TZ = "Europe/Berlin"


def _at(hour: int, minute: int = 0):
    return pendulum.datetime(2030, 3, 4, hour, minute, tz=TZ)


class TestSlotResolver:
    """Tests for the 5-minute snap."""

    def test_top_of_cell(self):
        placement = SlotResolver().resolve("tm-1", _at(10), 0)

        assert placement.slot_time == _at(10)
        assert placement.offset_minutes == 0
        assert placement.start == _at(10)

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (2.4, 0),
            (2.5, 5),
            (7.49, 5),
            (12.4, 10),
            (12.5, 15),
            (27.6, 30),
        ],
    )
    def test_rounds_half_up(self, raw, expected):
        placement = SlotResolver().resolve("tm-1", _at(10), raw)

        assert placement.offset_minutes == expected

    def test_overshoot_is_clamped_to_slot_end(self):
        resolver = SlotResolver()

        assert resolver.resolve("tm-1", _at(10), 45).start == _at(10, 30)
        assert resolver.resolve("tm-1", _at(10), 500).start == _at(10, 30)

    def test_negative_offset_spills_into_previous_slot(self):
        placement = SlotResolver().resolve("tm-1", _at(10), -5)

        assert placement.slot_time == _at(9, 30)
        assert placement.offset_minutes == 25
        assert placement.start == _at(9, 55)

    def test_negative_offset_on_boundary_stays_in_cell(self):
        placement = SlotResolver().resolve("tm-1", _at(10), -1)

        assert placement.slot_time == _at(10)
        assert placement.offset_minutes == 0

    def test_far_negative_offset_clamps_to_previous_slot_top(self):
        placement = SlotResolver().resolve("tm-1", _at(10), -40)

        assert placement.slot_time == _at(9, 30)
        assert placement.offset_minutes == 0

    def test_same_input_same_key(self):
        resolver = SlotResolver()
        target = DragTarget("tm-1", _at(14), 11.0)

        first = resolver.resolve_target(target)
        second = resolver.resolve_target(target)

        assert first == second
        assert first.key == "tm-1-14:00-10"

    def test_offset_from_pointer(self):
        resolver = SlotResolver(slot_duration_minutes=30, slot_height_px=60)

        assert resolver.pixels_per_minute == 2
        assert resolver.offset_from_pointer(50, grab_offset_y=10) == 20
        assert resolver.offset_from_pointer(4, grab_offset_y=14) == -5

    def test_custom_snap_interval(self):
        resolver = SlotResolver(slot_duration_minutes=60, snap_minutes=15)

        assert resolver.resolve("tm-1", _at(10), 22).offset_minutes == 15
        assert resolver.resolve("tm-1", _at(10), 23).offset_minutes == 30

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            SlotResolver(snap_minutes=0)
        with pytest.raises(ValueError):
            SlotResolver(slot_height_px=0)
