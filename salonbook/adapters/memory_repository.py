"""
In-memory appointment store backed by an optional JSON data file.

Used in mock mode and in tests, without any remote database.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from pendulum import DateTime

from ..domain.exceptions import RepositoryError
from ..domain.models import Appointment, Service, Shop, TeamMember
from .repository import appointment_from_row, appointment_to_row

logger = logging.getLogger(__name__)


class MemoryRepository:
    """
    Keeps shops, team members, services and appointments as storage rows.

    The data file holds one JSON object with ``shops``, ``team_members``,
    ``services`` and ``appointments`` arrays. Team members and services
    carry a ``shop_id``.
    """

    def __init__(self, data_file: Path | None = None, timezone: str = "UTC"):
        """
        Initialize the repository.

        Args:
            data_file: Optional JSON file to load rows from and save to
            timezone: Timezone appointments are returned in
        """
        self.data_file = data_file
        self.timezone = timezone
        self.shops: Dict[str, Dict[str, Any]] = {}
        self.team_members: List[Dict[str, Any]] = []
        self.services: List[Dict[str, Any]] = []
        self.appointments: Dict[str, Dict[str, Any]] = {}

        if data_file is not None:
            self._load_data(data_file)

    def _load_data(self, data_file: Path) -> None:
        if not data_file.exists():
            logger.info("Data file %s not found, starting empty", data_file)
            return

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise RepositoryError(f"Could not read data file {data_file}: {exc}") from exc

        self.shops = {str(row["id"]): row for row in data.get("shops", [])}
        self.team_members = list(data.get("team_members", []))
        self.services = list(data.get("services", []))
        self.appointments = {str(row["id"]): row for row in data.get("appointments", [])}

        logger.debug(
            "Loaded %d shops, %d appointments from %s",
            len(self.shops),
            len(self.appointments),
            data_file,
        )

    def save(self) -> None:
        """Write all rows back to the data file."""
        if self.data_file is None:
            return

        data = {
            "shops": list(self.shops.values()),
            "team_members": self.team_members,
            "services": self.services,
            "appointments": list(self.appointments.values()),
        }
        try:
            with open(self.data_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise RepositoryError(f"Could not write data file {self.data_file}: {exc}") from exc

    async def get_shop(self, shop_id: str) -> Shop:
        row = self.shops.get(str(shop_id))
        if row is None:
            raise RepositoryError(f"Unknown shop: {shop_id}")
        return Shop.from_row(row)

    async def list_team_members(self, shop_id: str) -> List[TeamMember]:
        return [
            TeamMember.from_row(row)
            for row in self.team_members
            if str(row.get("shop_id")) == str(shop_id)
        ]

    async def list_services(self, shop_id: str) -> List[Service]:
        return [
            Service.from_row(row)
            for row in self.services
            if str(row.get("shop_id")) == str(shop_id)
        ]

    async def list_appointments(
        self,
        shop_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        result: List[Appointment] = []

        for row in self.appointments.values():
            if str(row.get("shop_id")) != str(shop_id):
                continue

            appointment = appointment_from_row(row, self.timezone)
            if start <= appointment.start <= end:
                result.append(appointment)

        return sorted(result, key=lambda apt: apt.start)

    async def upsert_appointment(self, appointment: Appointment) -> Appointment:
        self.appointments[appointment.id] = appointment_to_row(appointment)
        return appointment

    async def delete_appointment(self, appointment_id: str) -> None:
        self.appointments.pop(appointment_id, None)
