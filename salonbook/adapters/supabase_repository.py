"""
Supabase (PostgREST) client for appointment storage.
"""

import asyncio
import logging
from typing import Any, Dict, List, Sequence, Tuple

import requests
from pendulum import DateTime

from ..domain.exceptions import RepositoryError
from ..domain.models import Appointment, Service, Shop, TeamMember
from .repository import appointment_from_row, appointment_to_row

logger = logging.getLogger(__name__)


class SupabaseRepository:
    """
    Client for the Supabase REST interface.

    Blocking ``requests`` calls run in a worker thread so the scheduling
    engine's event loop keeps serving pointer events while a write is in
    flight.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timezone: str = "UTC",
        timeout: float = 30,
        session: requests.Session | None = None,
    ):
        """
        Initialize the Supabase client.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            api_key: Anon or service key
            timezone: Timezone appointments are returned in
            timeout: Per-request timeout in seconds
            session: Optional requests session (connection pooling, tests)
        """
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timezone = timezone
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        table: str,
        params: Sequence[Tuple[str, str]] = (),
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        url = f"{self.base_url}/{table}"
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                params=list(params),
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RepositoryError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RepositoryError(f"{method} {table} returned invalid JSON: {e}") from e

    def _select(self, table: str, params: Sequence[Tuple[str, str]]) -> List[Dict[str, Any]]:
        rows = self._request("GET", table, params=[("select", "*"), *params])
        return rows or []

    def fetch_appointment_rows(self, shop_id: str, start: DateTime, end: DateTime) -> List[Dict[str, Any]]:
        return self._select(
            "appointments",
            [
                ("shop_id", f"eq.{shop_id}"),
                ("start_time", f"gte.{start.in_timezone('UTC').to_iso8601_string()}"),
                ("start_time", f"lte.{end.in_timezone('UTC').to_iso8601_string()}"),
                ("order", "start_time.asc"),
            ],
        )

    def fetch_team_member_rows(self, shop_id: str) -> List[Dict[str, Any]]:
        """
        Team member rows for a shop.

        Membership lives in the ``team_member_shops`` junction table; the
        legacy ``team_members.shop_id`` column is the fallback when the
        junction is unreadable or has no rows for the shop.
        """
        try:
            links = self._request(
                "GET",
                "team_member_shops",
                params=[
                    ("select", "team_member_id,team_members(*)"),
                    ("shop_id", f"eq.{shop_id}"),
                ],
            ) or []
        except RepositoryError as e:
            logger.warning("Reading team_member_shops failed, falling back to shop_id: %s", e)
            links = []

        rows: Dict[str, Dict[str, Any]] = {}
        for link in links:
            member = link.get("team_members")
            if member and member.get("id") not in rows:
                rows[member["id"]] = member

        if rows:
            return list(rows.values())

        logger.debug("No team_member_shops rows for shop %s, querying team_members", shop_id)
        return self._select("team_members", [("shop_id", f"eq.{shop_id}"), ("order", "name.asc")])

    async def list_appointments(
        self,
        shop_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        rows = await asyncio.to_thread(self.fetch_appointment_rows, shop_id, start, end)
        logger.debug("Fetched %d appointment rows for shop %s", len(rows), shop_id)
        return [appointment_from_row(row, self.timezone) for row in rows]

    async def upsert_appointment(self, appointment: Appointment) -> Appointment:
        rows = await asyncio.to_thread(
            self._request,
            "POST",
            "appointments",
            (("on_conflict", "id"),),
            appointment_to_row(appointment),
            "resolution=merge-duplicates,return=representation",
        )

        if not rows:
            return appointment
        return appointment_from_row(rows[0], self.timezone)

    async def delete_appointment(self, appointment_id: str) -> None:
        await asyncio.to_thread(
            self._request,
            "DELETE",
            "appointments",
            (("id", f"eq.{appointment_id}"),),
        )

    async def get_shop(self, shop_id: str) -> Shop:
        rows = await asyncio.to_thread(self._select, "shops", [("id", f"eq.{shop_id}")])
        if not rows:
            raise RepositoryError(f"Unknown shop: {shop_id}")
        return Shop.from_row(rows[0])

    async def list_team_members(self, shop_id: str) -> List[TeamMember]:
        rows = await asyncio.to_thread(self.fetch_team_member_rows, shop_id)
        return [TeamMember.from_row(row) for row in rows]

    async def list_services(self, shop_id: str) -> List[Service]:
        rows = await asyncio.to_thread(self._select, "services", [("shop_id", f"eq.{shop_id}")])
        return [Service.from_row(row) for row in rows]
