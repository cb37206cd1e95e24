"""
Storage contract for appointments and the row format shared by adapters.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol

import pendulum
from pendulum import DateTime

from ..domain.exceptions import RepositoryError
from ..domain.models import Appointment, AppointmentType, Service, Shop, TeamMember


class AppointmentRepository(Protocol):
    """Protocol describing the durable appointment store used by the engine."""

    async def list_appointments(
        self,
        shop_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        """Return the shop's appointments starting within ``[start, end]``."""

    async def upsert_appointment(self, appointment: Appointment) -> Appointment:
        """Insert or replace an appointment as one write and return the stored row."""

    async def delete_appointment(self, appointment_id: str) -> None:
        """Remove an appointment."""


class CalendarDirectory(Protocol):
    """Read access to the records a day view is built from."""

    async def get_shop(self, shop_id: str) -> Shop:
        """Return the shop."""

    async def list_team_members(self, shop_id: str) -> List[TeamMember]:
        """Return all team members assigned to the shop."""

    async def list_services(self, shop_id: str) -> List[Service]:
        """Return the shop's service catalogue."""


def appointment_from_row(row: Dict[str, Any], timezone: str) -> Appointment:
    """
    Build an Appointment from a storage row.

    Raises:
        RepositoryError: If the row lacks required fields or holds bad times
    """
    try:
        start = pendulum.parse(row["start_time"]).in_timezone(timezone)
        end = pendulum.parse(row["end_time"]).in_timezone(timezone)

        return Appointment(
            id=str(row["id"]),
            team_member_id=str(row["team_member_id"]),
            start=start,
            end=end,
            type=AppointmentType(row.get("type") or AppointmentType.APPOINTMENT.value),
            service_id=row.get("service_id"),
            client_id=row.get("client_id"),
            client_name=row.get("client_name") or "",
            shop_id=row.get("shop_id"),
            reason=row.get("reason"),
            price=row.get("price"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise RepositoryError(f"Invalid appointment row {row.get('id')!r}: {exc}") from exc


def appointment_to_row(appointment: Appointment) -> Dict[str, Any]:
    """Serialise an Appointment; times are written as UTC ISO-8601 strings."""
    return {
        "id": appointment.id,
        "shop_id": appointment.shop_id,
        "team_member_id": appointment.team_member_id,
        "start_time": appointment.start.in_timezone("UTC").to_iso8601_string(),
        "end_time": appointment.end.in_timezone("UTC").to_iso8601_string(),
        "type": appointment.type.value,
        "service_id": appointment.service_id,
        "client_id": appointment.client_id,
        "client_name": appointment.client_name,
        "reason": appointment.reason,
        "price": appointment.price,
    }
