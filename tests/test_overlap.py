"""
Tests for overlap detection.
"""

import pendulum

from salonbook.domain.models import Appointment, AppointmentType, Position
from salonbook.domain.overlap import OverlapDetector

TZ = "Europe/Berlin"


def _at(hour: int, minute: int = 0, day: int = 4):
    return pendulum.datetime(2030, 3, day, hour, minute, tz=TZ)


def _appointment(apt_id, member, start, end, kind=AppointmentType.APPOINTMENT):
    return Appointment(id=apt_id, team_member_id=member, start=start, end=end, type=kind)


EXISTING = [
    _appointment("a1", "tm-anna", _at(14), _at(15, 10)),
    _appointment("b1", "tm-anna", _at(17), _at(18), AppointmentType.BLOCKED),
    _appointment("a2", "tm-ben", _at(9), _at(12)),
]


class TestOverlapDetector:
    """Tests for the exclusive-boundary overlap check."""

    def test_adjacent_intervals_are_free(self):
        detector = OverlapDetector()

        after = Position("tm-anna", _at(15, 10), _at(16, 20))
        before = Position("tm-anna", _at(13), _at(14))

        assert detector.find_conflict(after, EXISTING) is None
        assert detector.find_conflict(before, EXISTING) is None

    def test_one_minute_overlap_conflicts(self):
        candidate = Position("tm-anna", _at(15, 9), _at(16, 19))

        conflict = OverlapDetector().find_conflict(candidate, EXISTING)

        assert conflict is not None
        assert conflict.id == "a1"

    def test_contained_interval_conflicts(self):
        candidate = Position("tm-anna", _at(14, 15), _at(14, 45))

        assert OverlapDetector().overlaps(candidate, EXISTING)

    def test_other_member_is_ignored(self):
        candidate = Position("tm-ben", _at(14), _at(15))

        assert not OverlapDetector().overlaps(candidate, EXISTING)

    def test_other_day_is_ignored(self):
        candidate = Position("tm-anna", _at(14, day=5), _at(15, day=5))

        assert not OverlapDetector().overlaps(candidate, EXISTING)

    def test_excluded_appointment_is_skipped(self):
        candidate = Position("tm-anna", _at(14, 30), _at(15, 40))

        assert OverlapDetector().find_conflict(candidate, EXISTING, exclude_id="a1") is None
        assert OverlapDetector().find_conflict(candidate, EXISTING, exclude_id="b1").id == "a1"

    def test_sub_second_jitter_does_not_create_overlap(self):
        jittery = [_appointment("j1", "tm-anna", _at(10), _at(11).add(microseconds=600000))]
        candidate = Position("tm-anna", _at(11), _at(12))

        assert OverlapDetector().find_conflict(candidate, jittery) is None

    def test_blocked_time_conflicts_both_ways(self):
        detector = OverlapDetector()
        candidate = Position("tm-anna", _at(17, 30), _at(18, 30))

        assert detector.find_conflict(candidate, EXISTING).id == "b1"

        block_over_appointment = Position("tm-anna", _at(14, 30), _at(15))
        assert detector.find_conflict(block_over_appointment, EXISTING).id == "a1"

    def test_appointments_in_another_timezone_are_matched_by_local_day(self):
        # 23:15Z on the 4th is 00:15 on the 5th in Berlin.
        utc_block = _appointment(
            "b2",
            "tm-anna",
            pendulum.datetime(2030, 3, 4, 23, 15, tz="UTC"),
            pendulum.datetime(2030, 3, 5, 0, 15, tz="UTC"),
            AppointmentType.BLOCKED,
        )
        candidate = Position("tm-anna", _at(0, 30, day=5), _at(1, day=5))

        assert OverlapDetector().find_conflict(candidate, [utc_block]).id == "b2"
        assert not OverlapDetector().overlaps(Position("tm-anna", _at(1, 15, day=5), _at(2, day=5)), [utc_block])
