"""
Service layer that orchestrates storage adapters and domain logic.
"""

from .day_view import DaySnapshot, build_day_view
from .scheduling_engine import (
    AppointmentRequest,
    DragState,
    OperationResult,
    OperationStatus,
    SchedulingEngine,
    SyncState,
)

__all__ = [
    "AppointmentRequest",
    "DaySnapshot",
    "DragState",
    "OperationResult",
    "OperationStatus",
    "SchedulingEngine",
    "SyncState",
    "build_day_view",
]
