"""
Maps pointer positions inside grid cells to snapped start times.

Runs on every pointer move while dragging, so it is a pure function of its
inputs: the same position always resolves to the same placement and the
placement key can be used to drop repeated events.
"""

import math

from pendulum import DateTime

from .models import DragTarget, SlotPlacement

SNAP_EPSILON = 0.001


class SlotResolver:
    """
    Snaps a raw offset within a slot cell to a 5-minute grid.

    Dragging down may overshoot into the next cell; the offset is then
    clamped to the end of the current slot. Dragging up (negative offset,
    when the block was grabbed below its top edge) spills into the
    previous slot.
    """

    def __init__(
        self,
        slot_duration_minutes: int = 30,
        snap_minutes: int = 5,
        slot_height_px: float = 60.0,
    ):
        if slot_duration_minutes <= 0 or snap_minutes <= 0:
            raise ValueError("Slot duration and snap interval must be positive")
        if slot_height_px <= 0:
            raise ValueError("Slot height must be positive")

        self.slot_duration_minutes = slot_duration_minutes
        self.snap_minutes = snap_minutes
        self.slot_height_px = slot_height_px

    @property
    def pixels_per_minute(self) -> float:
        return self.slot_height_px / self.slot_duration_minutes

    def offset_from_pointer(self, pointer_y: float, grab_offset_y: float = 0.0) -> float:
        """
        Convert a pointer position inside a cell to raw minutes.

        Args:
            pointer_y: Pointer Y relative to the top of the cell, in pixels
            grab_offset_y: Where inside the dragged block the user grabbed it,
                measured from the block's top edge

        Returns:
            Minutes from the cell top to the block's top edge (may be negative)
        """
        return (pointer_y - grab_offset_y) / self.pixels_per_minute

    def _snap(self, minutes: float) -> int:
        # Round half up; the epsilon keeps x.5 boundaries from flickering.
        return int(math.floor((minutes + SNAP_EPSILON) / self.snap_minutes + 0.5) * self.snap_minutes)

    def _clamp(self, minutes: int) -> int:
        return max(0, min(self.slot_duration_minutes, minutes))

    def resolve(
        self,
        team_member_id: str,
        slot_time: DateTime,
        raw_offset_minutes: float,
    ) -> SlotPlacement:
        """
        Resolve a raw offset inside ``slot_time``'s cell to a placement.

        Args:
            team_member_id: Column the pointer is over
            slot_time: Start of the cell the pointer is over
            raw_offset_minutes: Minutes from the cell top to the block top

        Returns:
            The snapped placement, anchored to ``slot_time`` or to the
            previous slot when dragging above the cell
        """
        slot = self.slot_duration_minutes

        if raw_offset_minutes >= 0:
            bounded = max(0.0, min(2 * slot, raw_offset_minutes))
            offset = self._clamp(self._snap(bounded))
            return SlotPlacement(team_member_id, slot_time, offset)

        offset_in_previous = self._clamp(self._snap(slot + raw_offset_minutes))

        if offset_in_previous == slot:
            # Exactly on the boundary: stay at the top of this cell.
            return SlotPlacement(team_member_id, slot_time, 0)

        previous_slot = slot_time.subtract(minutes=slot)
        return SlotPlacement(team_member_id, previous_slot, offset_in_previous)

    def resolve_target(self, target: DragTarget) -> SlotPlacement:
        return self.resolve(target.team_member_id, target.slot_time, target.raw_offset_minutes)
