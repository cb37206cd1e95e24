"""
Appointment scheduling and drag-to-reschedule engine.

The engine owns the day's in-memory appointment set and every decision
about creating, moving and deleting appointments. It coordinates the
domain-level ``SlotResolver`` and ``OverlapDetector`` with the storage
adapter, and it owns the drag session that the calendar drives with
pointer events. Each operation returns an ``OperationResult``; presenting
it (notices, refetches) is the caller's business.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, List, Set

import pendulum
from pendulum import Date, DateTime

from ..adapters.repository import AppointmentRepository
from ..domain.exceptions import (
    AppointmentNotFoundError,
    DragInProgressError,
    NoActiveDragError,
    PastTimeError,
    PreconditionError,
    RepositoryError,
    SchedulingError,
    SlotOccupiedError,
    ValidationError,
)
from ..domain.models import (
    Appointment,
    AppointmentType,
    DayContext,
    DragSession,
    DragTarget,
    Position,
    TeamMember,
)
from ..domain.overlap import OverlapDetector
from ..domain.slot_resolver import SlotResolver
from ..domain.time_grid import TimeGrid
from .day_view import DaySnapshot, appointment_at

logger = logging.getLogger(__name__)

START_TIME_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")
END_TIME_PATTERN = re.compile(r"^(([0-1][0-9]|2[0-3]):[0-5][0-9]|24:00)$")


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    AUTO_UPDATING = "auto_updating"
    COMMITTING = "committing"
    REVERTING = "reverting"


class SyncState(str, Enum):
    """Reconciliation state of a locally held appointment."""
    SPECULATIVE = "speculative"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


class OperationStatus(str, Enum):
    STARTED = "started"
    COMMITTED = "committed"
    UNCHANGED = "unchanged"
    DEFERRED = "deferred"
    REJECTED = "rejected"
    REVERTED = "reverted"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an engine operation."""
    status: OperationStatus
    appointment: Appointment | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status in (
            OperationStatus.STARTED,
            OperationStatus.COMMITTED,
            OperationStatus.UNCHANGED,
            OperationStatus.DEFERRED,
        )

    @property
    def conflict(self) -> Appointment | None:
        """The appointment that blocked the operation, if any."""
        if isinstance(self.error, SlotOccupiedError):
            return self.error.conflict
        return None


@dataclass(frozen=True)
class AppointmentRequest:
    """
    Form input for creating or editing an appointment.

    Times are ``HH:MM`` strings as entered; ``date`` defaults to the
    engine's day.
    """
    team_member_id: str | None
    start_time: str | None
    date: Date | date | str | None = None
    type: AppointmentType | str = AppointmentType.APPOINTMENT
    client_id: str | None = None
    service_id: str | None = None
    end_time: str | None = None
    client_name: str = ""
    reason: str | None = None


class SchedulingEngine:
    """
    Validates and applies appointment changes for one shop and day.

    Drag lifecycle: ``begin_drag`` captures the original position,
    ``auto_update_during_drag`` speculatively persists each new snapped
    position (one write in flight at a time), and ``end_drag`` either
    commits the drop or restores the original position. ``cancel_drag``
    abandons a drag synchronously. Only one drag may be active at a time.

    All store writes pass through a single lock so speculative writes,
    drops and reverts reach storage in the order they were issued.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        context: DayContext,
        time_grid: TimeGrid | None = None,
        resolver: SlotResolver | None = None,
        detector: OverlapDetector | None = None,
        clock: Callable[[], DateTime] | None = None,
        default_blocked_minutes: int = 60,
        min_blocked_minutes: int = 5,
    ):
        self._repository = repository
        self._context = context
        self._grid = time_grid or TimeGrid(context.shop.opening_time, context.shop.closing_time)
        self._resolver = resolver or SlotResolver(slot_duration_minutes=self._grid.slot_duration_minutes)
        self._detector = detector or OverlapDetector()
        self._clock = clock or (lambda: pendulum.now(context.timezone))
        self.default_blocked_minutes = default_blocked_minutes
        self.min_blocked_minutes = min_blocked_minutes

        self._appointments: Dict[str, Appointment] = {}
        self._sync: Dict[str, SyncState] = {}
        self._pending_deletes: Set[str] = set()
        self._pending_restores: Dict[str, Appointment] = {}
        self._session: DragSession | None = None
        self._state = DragState.IDLE
        self._auto_update_in_flight = False
        self._write_lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def context(self) -> DayContext:
        return self._context

    @property
    def time_grid(self) -> TimeGrid:
        return self._grid

    @property
    def resolver(self) -> SlotResolver:
        return self._resolver

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def session(self) -> DragSession | None:
        """A copy of the active drag session."""
        if self._session is None:
            return None
        return replace(self._session)

    @property
    def auto_update_in_flight(self) -> bool:
        return self._auto_update_in_flight

    @property
    def appointments(self) -> List[Appointment]:
        return sorted(self._appointments.values(), key=lambda apt: (apt.start, apt.id))

    @property
    def roster(self) -> List[TeamMember]:
        return self._context.active_roster()

    def get(self, appointment_id: str) -> Appointment | None:
        return self._appointments.get(appointment_id)

    def sync_state(self, appointment_id: str) -> SyncState | None:
        return self._sync.get(appointment_id)

    def appointment_at(self, team_member_id: str, slot_time: DateTime) -> Appointment | None:
        """
        The appointment to render in a cell.

        Appointments starting inside the slot win over ones that started
        earlier and merely run into it, so back-to-back bookings each show
        in their own starting cell.
        """
        return appointment_at(
            self._appointments.values(),
            team_member_id,
            slot_time,
            self._grid.slot_duration_minutes,
        )

    def is_slot_in_past(self, slot_time: DateTime) -> bool:
        return slot_time < self._clock()

    def snapshot(self) -> DaySnapshot:
        """Immutable view of the engine for renderers."""
        return DaySnapshot(
            context=self._context,
            slot_times=tuple(self._grid.slot_times(self._context.day, self._context.timezone)),
            boundary=self._grid.boundary(self._context.day, self._context.timezone),
            slot_duration_minutes=self._grid.slot_duration_minutes,
            roster=tuple(self.roster),
            appointments=tuple(self.appointments),
            sync_states=dict(self._sync),
            state=self._state,
            session=self.session,
            now=self._clock(),
        )

    # ------------------------------------------------------------------
    # Synchronisation with storage
    # ------------------------------------------------------------------

    async def load(self) -> List[Appointment]:
        """
        Fetch the day's appointments and reconcile them with local state.

        Restores parked by a cancelled drag (no event loop, failed write) are
        written first, so the fetch sees the original positions.

        Raises:
            RepositoryError: If the store cannot be read
        """
        for original in list(self._pending_restores.values()):
            await self._restore(original)

        fetched = await self._repository.list_appointments(
            self._context.shop.id,
            self._context.day_start().in_timezone("UTC"),
            self._context.day_end().in_timezone("UTC"),
        )
        self.apply_snapshot(fetched)
        logger.info("Loaded %d appointments for %s", len(fetched), self._context.day)
        return self.appointments

    async def refresh(self) -> List[Appointment]:
        """Silent background refresh; a failed read keeps the current set."""
        try:
            return await self.load()
        except RepositoryError as exc:
            logger.warning("Silent refresh failed: %s", exc)
            return self.appointments

    def apply_snapshot(self, fetched: List[Appointment]) -> None:
        """
        Reconcile fetched appointments with the local set.

        Local values win for the appointment under an active drag and for
        any appointment with an unconfirmed speculative write; pending
        deletions are not resurrected.
        """
        protected = {
            appointment_id
            for appointment_id, state in self._sync.items()
            if state == SyncState.SPECULATIVE
        }
        if self._session is not None:
            protected.add(self._session.appointment_id)

        merged: Dict[str, Appointment] = {}
        sync: Dict[str, SyncState] = {}

        for appointment in fetched:
            if appointment.id in self._pending_deletes:
                continue
            local = self._appointments.get(appointment.id)
            if appointment.id in protected and local is not None:
                merged[appointment.id] = local
                sync[appointment.id] = self._sync.get(appointment.id, SyncState.SPECULATIVE)
            else:
                merged[appointment.id] = appointment
                sync[appointment.id] = SyncState.CONFIRMED

        for appointment_id in protected:
            local = self._appointments.get(appointment_id)
            if appointment_id not in merged and local is not None:
                merged[appointment_id] = local
                sync[appointment_id] = self._sync.get(appointment_id, SyncState.SPECULATIVE)

        self._appointments = merged
        self._sync = sync

    # ------------------------------------------------------------------
    # Create / edit / delete
    # ------------------------------------------------------------------

    async def create_appointment(self, request: AppointmentRequest) -> OperationResult:
        """
        Validate and insert a new appointment or blocked time.

        Args:
            request: Form input

        Returns:
            COMMITTED with the stored appointment, REJECTED with a
            ValidationError, PreconditionError, PastTimeError or
            SlotOccupiedError, or FAILED with a RepositoryError
        """
        try:
            appointment = self._build_appointment(request, str(uuid.uuid4()))
            self._check_free(appointment.position(), exclude_id=None)
        except SchedulingError as exc:
            logger.info("Create rejected: %s", exc)
            return OperationResult(OperationStatus.REJECTED, error=exc)

        return await self._persist(appointment, previous=None)

    async def update_appointment(self, appointment_id: str, request: AppointmentRequest) -> OperationResult:
        """Apply an explicit edit from the appointment dialog."""
        try:
            existing = self._require(appointment_id)
            self._ensure_not_dragging(appointment_id)
            appointment = self._build_appointment(request, existing.id, existing=existing)
            self._check_free(appointment.position(), exclude_id=existing.id)
        except SchedulingError as exc:
            logger.info("Update of %s rejected: %s", appointment_id, exc)
            return OperationResult(OperationStatus.REJECTED, appointment=self.get(appointment_id), error=exc)

        return await self._persist(appointment, previous=existing)

    async def delete_appointment(self, appointment_id: str) -> OperationResult:
        """
        Remove an appointment; for blocked time this unblocks the slot.

        A drag on the same appointment is abandoned without a revert write.
        """
        if self._session is not None and self._session.appointment_id == appointment_id:
            self._detach_session()
            self._state = DragState.IDLE

        existing = self._appointments.pop(appointment_id, None)
        previous_sync = self._sync.pop(appointment_id, None)
        self._pending_deletes.add(appointment_id)

        try:
            async with self._write_lock:
                await self._repository.delete_appointment(appointment_id)
                self._pending_restores.pop(appointment_id, None)
        except RepositoryError as exc:
            logger.error("Delete of %s failed: %s", appointment_id, exc)
            if existing is not None:
                self._appointments[appointment_id] = existing
                self._sync[appointment_id] = previous_sync or SyncState.CONFIRMED
            return OperationResult(OperationStatus.FAILED, appointment=existing, error=exc)
        finally:
            self._pending_deletes.discard(appointment_id)

        logger.info("Deleted appointment %s", appointment_id)
        return OperationResult(OperationStatus.COMMITTED, appointment=existing)

    # ------------------------------------------------------------------
    # Moving
    # ------------------------------------------------------------------

    async def move_appointment(self, appointment_id: str, target: DragTarget) -> OperationResult:
        """
        Move an appointment to a new cell, keeping its duration.

        When a drag session exists for this appointment the move is the drop
        of that drag, so the pre-drag position is the revert target.

        Returns:
            COMMITTED with the moved appointment; REVERTED with a
            SlotOccupiedError and the appointment left where it was;
            REJECTED for past starts, roster or lifecycle errors; FAILED
            with a RepositoryError after rolling back
        """
        if self._session is not None and self._session.appointment_id == appointment_id:
            return await self.end_drag(target)

        try:
            if self._state != DragState.IDLE:
                raise DragInProgressError("Another appointment is being dragged")
            existing = self._require(appointment_id)
            candidate = self._candidate(existing, target)
        except SchedulingError as exc:
            logger.info("Move of %s rejected: %s", appointment_id, exc)
            return OperationResult(OperationStatus.REJECTED, appointment=self.get(appointment_id), error=exc)

        try:
            self._check_free(candidate, exclude_id=existing.id)
        except SlotOccupiedError as exc:
            logger.info("Move of %s blocked by %s", appointment_id, exc.conflict.id if exc.conflict else None)
            return OperationResult(OperationStatus.REVERTED, appointment=existing, error=exc)

        return await self._persist(existing.moved_to(candidate), previous=existing)

    def begin_drag(self, appointment_id: str) -> OperationResult:
        """
        Start dragging an appointment and capture its original position.

        Rejected while another drag is active or when the appointment has
        already started.
        """
        try:
            if self._state != DragState.IDLE:
                raise DragInProgressError("Another appointment is being dragged")
            appointment = self._require(appointment_id)
            if appointment.start < self._clock():
                raise PastTimeError("You cannot drag appointments that are in the past")
        except SchedulingError as exc:
            logger.info("Drag of %s refused: %s", appointment_id, exc)
            return OperationResult(OperationStatus.REJECTED, appointment=self.get(appointment_id), error=exc)

        position = appointment.position()
        self._session = DragSession(
            appointment_id=appointment_id,
            original=position,
            current=position,
        )
        self._state = DragState.DRAGGING
        logger.debug("Drag started for %s at %s", appointment_id, position)
        return OperationResult(OperationStatus.STARTED, appointment=appointment)

    async def auto_update_during_drag(self, target: DragTarget) -> OperationResult:
        """
        Speculatively persist the appointment at the pointer's snapped cell.

        Called on every pointer move while dragging. Repeated positions are
        dropped by placement key; while a write is in flight the newest
        target is parked and processed once that write settles. Past or
        conflicting cells are skipped without writing so the drop can decide.
        """
        session = self._session
        if session is None:
            return OperationResult(OperationStatus.REJECTED, error=NoActiveDragError("No drag in progress"))

        placement = self._resolver.resolve_target(target)
        if placement.key == session.last_committed_key:
            return OperationResult(OperationStatus.UNCHANGED, appointment=self.get(session.appointment_id))

        if self._auto_update_in_flight:
            session.pending_target = target
            return OperationResult(OperationStatus.DEFERRED, appointment=self.get(session.appointment_id))

        current = self._appointments.get(session.appointment_id)
        if current is None:
            return OperationResult(
                OperationStatus.REJECTED,
                error=AppointmentNotFoundError(f"Unknown appointment: {session.appointment_id}"),
            )

        try:
            candidate = self._candidate(current, target)
            if candidate.same_cell(current.position()):
                return OperationResult(OperationStatus.UNCHANGED, appointment=current)
            self._check_free(candidate, exclude_id=current.id)
        except SchedulingError as exc:
            return OperationResult(OperationStatus.REJECTED, appointment=current, error=exc)

        self._auto_update_in_flight = True
        self._state = DragState.AUTO_UPDATING
        session.last_committed_key = placement.key
        session.speculative_writes += 1

        moved = current.moved_to(candidate)
        self._set_local(moved, SyncState.SPECULATIVE)
        logger.debug("Auto-update %s -> %s", current.id, placement.key)

        try:
            stored = await self._write(moved)
        except RepositoryError as exc:
            if self._session is not session:
                return OperationResult(OperationStatus.DISCARDED, error=exc)
            logger.warning("Auto-update of %s failed, rolling back: %s", current.id, exc)
            self._set_local(current, SyncState.CONFIRMED)
            session.last_committed_key = None
            session.pending_target = None
            self._release_auto_update()
            return OperationResult(OperationStatus.FAILED, appointment=current, error=exc)

        if self._session is not session:
            logger.debug("Discarding late auto-update for %s", current.id)
            return OperationResult(OperationStatus.DISCARDED, appointment=stored)

        self._set_local(stored, SyncState.CONFIRMED)
        session.current = stored.position()
        self._release_auto_update()
        result = OperationResult(OperationStatus.COMMITTED, appointment=stored)

        pending = session.pending_target
        session.pending_target = None
        if pending is not None:
            await self.auto_update_during_drag(pending)

        return result

    async def end_drag(self, target: DragTarget) -> OperationResult:
        """
        Drop the dragged appointment.

        A drop on an occupied cell or in the past restores the position
        captured at drag start, in storage and in memory, never an
        intermediate auto-updated one. The session is cleared whatever the
        outcome.
        """
        session = self._session
        if session is None:
            return OperationResult(OperationStatus.REJECTED, error=NoActiveDragError("No drag in progress"))

        self._detach_session()
        self._state = DragState.COMMITTING

        try:
            current = self._appointments.get(session.appointment_id)
            if current is None:
                return OperationResult(
                    OperationStatus.REJECTED,
                    error=AppointmentNotFoundError(f"Unknown appointment: {session.appointment_id}"),
                )

            original = current.moved_to(session.original)

            try:
                candidate = self._candidate(original, target)
                self._check_free(candidate, exclude_id=current.id)
            except SchedulingError as exc:
                logger.info("Drop of %s rejected, reverting: %s", current.id, exc)
                self._state = DragState.REVERTING
                status = OperationStatus.REVERTED if isinstance(exc, SlotOccupiedError) else OperationStatus.REJECTED
                return await self._revert(session, current, exc, status)

            moved = current.moved_to(candidate)
            self._set_local(moved, SyncState.SPECULATIVE)

            try:
                stored = await self._write(moved)
            except RepositoryError as exc:
                logger.error("Drop of %s failed, reverting: %s", current.id, exc)
                self._state = DragState.REVERTING
                return await self._revert(session, current, exc, OperationStatus.FAILED)

            self._set_local(stored, SyncState.CONFIRMED)
            logger.info("Moved %s to %s", stored.id, stored.start.to_datetime_string())
            return OperationResult(OperationStatus.COMMITTED, appointment=stored)
        finally:
            self._state = DragState.IDLE

    def cancel_drag(self) -> OperationResult:
        """
        Abandon the drag synchronously.

        The in-memory position returns to the original at once; if
        speculative writes went out, a revert write is scheduled behind them
        (outside an event loop it is written by the next ``load``).
        Late auto-update responses for this session are discarded.
        """
        session = self._session
        if session is None:
            return OperationResult(OperationStatus.REJECTED, error=NoActiveDragError("No drag in progress"))

        self._detach_session()
        self._state = DragState.IDLE

        current = self._appointments.get(session.appointment_id)
        if current is None:
            return OperationResult(OperationStatus.REVERTED)

        original = current.moved_to(session.original)
        if session.speculative_writes == 0:
            self._set_local(original, SyncState.REVERTED)
            return OperationResult(OperationStatus.REVERTED, appointment=original)

        self._set_local(original, SyncState.SPECULATIVE)
        self._schedule_restore(original)
        return OperationResult(OperationStatus.REVERTED, appointment=original)

    async def drain(self) -> None:
        """Wait for scheduled background writes (cancel reverts) to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, appointment_id: str) -> Appointment:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Unknown appointment: {appointment_id}")
        return appointment

    def _ensure_not_dragging(self, appointment_id: str) -> None:
        if self._session is not None and self._session.appointment_id == appointment_id:
            raise DragInProgressError("The appointment is being dragged")

    def _check_roster(self, team_member_id: str) -> None:
        if not self._context.is_on_roster(team_member_id):
            raise PreconditionError(
                f"Team member {team_member_id} does not work on {self._context.day}"
            )

    def _check_not_past(self, start: DateTime) -> None:
        if start < self._clock():
            raise PastTimeError(f"{start.format('HH:mm')} is in the past")

    def _check_free(self, candidate: Position, exclude_id: str | None) -> None:
        conflict = self._detector.find_conflict(candidate, self._appointments.values(), exclude_id)
        if conflict is not None:
            raise SlotOccupiedError(
                f"This time slot overlaps with an existing appointment from "
                f"{conflict.start.format('HH:mm')} to {conflict.end.format('HH:mm')}",
                conflict=conflict,
            )

    def _candidate(self, appointment: Appointment, target: DragTarget) -> Position:
        """Snapped position for ``target`` keeping the appointment's duration."""
        placement = self._resolver.resolve_target(target)
        self._check_roster(placement.team_member_id)
        self._check_not_past(placement.start)

        duration_seconds = int((appointment.end - appointment.start).total_seconds())
        return Position(
            team_member_id=placement.team_member_id,
            start=placement.start,
            end=placement.start.add(seconds=duration_seconds),
        )

    def _parse_day(self, value) -> Date:
        if value is None:
            return self._context.day
        if isinstance(value, datetime):
            return pendulum.instance(value).date()
        if isinstance(value, date):
            return pendulum.date(value.year, value.month, value.day)
        try:
            return pendulum.from_format(str(value).strip(), "YYYY-MM-DD").date()
        except ValueError as exc:
            raise ValidationError(f"Please select a valid date: {value!r}") from exc

    def _at(self, label: str) -> DateTime:
        hour, minute = (int(part) for part in label.split(":"))
        if hour == 24:
            return self._context.day_start().add(days=1)
        return self._context.at(hour, minute)

    def _build_appointment(
        self,
        request: AppointmentRequest,
        appointment_id: str,
        existing: Appointment | None = None,
    ) -> Appointment:
        """
        Validate a request and derive the occupied interval.

        An edit that keeps the existing start skips the past check, so an
        appointment already under way can still be annotated.
        """
        if not request.team_member_id or not request.start_time:
            raise ValidationError("Please fill all required fields: team member and start time")

        try:
            kind = AppointmentType(request.type)
        except ValueError as exc:
            raise ValidationError(f"Unknown appointment type: {request.type!r}") from exc

        if kind == AppointmentType.APPOINTMENT:
            if not request.client_id:
                raise ValidationError("Please select or create a client")
            if not request.service_id:
                raise ValidationError("Please select a service")

        start_label = request.start_time.strip()
        if not START_TIME_PATTERN.match(start_label):
            raise ValidationError(
                f"Invalid start time {request.start_time!r}: use HH:mm, e.g. 09:30 or 14:15"
            )

        day = self._parse_day(request.date)
        if day != self._context.day:
            raise ValidationError(
                f"{day} is not the calendar day {self._context.day}"
            )

        self._check_roster(request.team_member_id)

        start = self._at(start_label)
        price = None

        if kind == AppointmentType.APPOINTMENT:
            service = self._context.find_service(request.service_id)
            if service is None:
                raise ValidationError(f"Unknown service: {request.service_id}")
            end = start.add(minutes=service.occupied_minutes)
            price = service.price
        elif request.end_time:
            end_label = request.end_time.strip()
            if not END_TIME_PATTERN.match(end_label):
                raise ValidationError(f"Invalid end time {request.end_time!r}: use HH:mm")
            end = self._at(end_label)
        else:
            end = start.add(minutes=self.default_blocked_minutes)

        if end <= start:
            raise ValidationError("End time must be after start time")
        if kind == AppointmentType.BLOCKED and (end - start).total_seconds() < self.min_blocked_minutes * 60:
            raise ValidationError(f"Blocked time must last at least {self.min_blocked_minutes} minutes")

        if existing is None or start != existing.start:
            self._check_not_past(start)

        return Appointment(
            id=appointment_id,
            team_member_id=request.team_member_id,
            start=start,
            end=end,
            type=kind,
            service_id=request.service_id if kind == AppointmentType.APPOINTMENT else None,
            client_id=request.client_id if kind == AppointmentType.APPOINTMENT else None,
            client_name=request.client_name if kind == AppointmentType.APPOINTMENT else "Blocked",
            shop_id=self._context.shop.id,
            reason=request.reason,
            price=price,
        )

    def _set_local(self, appointment: Appointment, state: SyncState) -> None:
        self._appointments[appointment.id] = appointment
        self._sync[appointment.id] = state

    async def _write(self, appointment: Appointment) -> Appointment:
        async with self._write_lock:
            # Any later write of the appointment supersedes a parked restore.
            self._pending_restores.pop(appointment.id, None)
            return await self._repository.upsert_appointment(appointment)

    async def _persist(self, appointment: Appointment, previous: Appointment | None) -> OperationResult:
        """Optimistically apply ``appointment`` locally, write it, roll back on failure."""
        previous_sync = self._sync.get(appointment.id)
        self._set_local(appointment, SyncState.SPECULATIVE)

        try:
            stored = await self._write(appointment)
        except RepositoryError as exc:
            logger.error("Saving appointment %s failed: %s", appointment.id, exc)
            if previous is None:
                self._appointments.pop(appointment.id, None)
                self._sync.pop(appointment.id, None)
            else:
                self._set_local(previous, previous_sync or SyncState.CONFIRMED)
            return OperationResult(OperationStatus.FAILED, appointment=previous, error=exc)

        if stored.id != appointment.id:
            self._appointments.pop(appointment.id, None)
            self._sync.pop(appointment.id, None)
        self._set_local(stored, SyncState.CONFIRMED)
        logger.info("Saved %s %s at %s", stored.type.value, stored.id, stored.start.to_datetime_string())
        return OperationResult(OperationStatus.COMMITTED, appointment=stored)

    async def _revert(
        self,
        session: DragSession,
        current: Appointment,
        error: Exception,
        status: OperationStatus,
    ) -> OperationResult:
        """Put the dragged appointment back where the drag started."""
        original = current.moved_to(session.original)
        needs_write = session.speculative_writes > 0 or current.position() != session.original
        self._set_local(original, SyncState.SPECULATIVE if needs_write else SyncState.REVERTED)

        if needs_write:
            try:
                await self._write(original)
            except RepositoryError as exc:
                logger.error("Failed to revert %s in storage: %s", original.id, exc)
                self._sync[original.id] = SyncState.REVERTED
                return OperationResult(OperationStatus.FAILED, appointment=original, error=exc)
            self._sync[original.id] = SyncState.REVERTED

        return OperationResult(status, appointment=original, error=error)

    async def _restore(self, original: Appointment) -> None:
        """Write back the pre-drag position; a failed write is parked for the next load."""
        try:
            await self._write(original)
        except RepositoryError as exc:
            logger.error("Failed to restore %s after cancelled drag: %s", original.id, exc)
            if original.id in self._appointments:
                self._pending_restores.setdefault(original.id, original)
            return
        if self._sync.get(original.id) == SyncState.SPECULATIVE and self._appointments.get(original.id) == original:
            self._sync[original.id] = SyncState.REVERTED

    def _detach_session(self) -> None:
        if self._session is not None:
            self._session.pending_target = None
        self._session = None
        self._auto_update_in_flight = False

    def _release_auto_update(self) -> None:
        self._auto_update_in_flight = False
        if self._state == DragState.AUTO_UPDATING:
            self._state = DragState.DRAGGING

    def _schedule_restore(self, original: Appointment) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; restore of %s waits for the next load", original.id)
            self._pending_restores[original.id] = original
            return
        task = loop.create_task(self._restore(original))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
