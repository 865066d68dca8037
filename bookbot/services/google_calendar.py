"""Google Calendar provider: free/busy lookup and event insertion.

Each tenant brings its own calendar id and a service-account key (the JSON
blob in ``Tenant.calendar_credentials``). The Google client library is
synchronous, so every request runs in a worker thread.

API docs: https://developers.google.com/calendar/api/v3/reference
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from bookbot.schemas.job_schema import BusyInterval, CalendarEvent
from bookbot.schemas.tenant_schema import Tenant

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]
REMINDER_MINUTES = (60, 15)


class CalendarError(Exception):
    """Raised when a calendar request cannot be made or is rejected."""


def build_calendar_service(tenant: Tenant) -> Any:
    """Build an authorized Calendar v3 client from the tenant's service-account key."""
    if not tenant.calendar_credentials:
        raise CalendarError(f"Tenant {tenant.id} has no calendar credentials")
    try:
        info = json.loads(tenant.calendar_credentials)
    except json.JSONDecodeError as exc:
        raise CalendarError(f"Tenant {tenant.id} calendar credentials are not valid JSON") from exc
    credentials = Credentials.from_service_account_info(info, scopes=CALENDAR_SCOPES)
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


def _utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GoogleCalendarProvider:
    """``CalendarProvider`` backed by the Google Calendar API.

    Clients are built lazily, once per tenant. ``service_factory`` swaps the
    client builder (tests hand in a fake service).
    """

    def __init__(self, service_factory: Callable[[Tenant], Any] = build_calendar_service) -> None:
        self._factory = service_factory
        self._services: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _service(self, tenant: Tenant) -> Any:
        with self._lock:
            service = self._services.get(tenant.id)
            if service is None:
                service = self._services[tenant.id] = self._factory(tenant)
        return service

    def forget(self, tenant_id: str) -> None:
        """Drop a cached client, e.g. after the tenant rotates its key."""
        with self._lock:
            self._services.pop(tenant_id, None)

    # ── Free/busy ────────────────────────────────────────────────────

    def _query_busy(self, tenant: Tenant, start: datetime, end: datetime) -> list[BusyInterval]:
        body = {
            "timeMin": _utc_iso(start),
            "timeMax": _utc_iso(end),
            "items": [{"id": tenant.calendar_id}],
        }
        result = self._service(tenant).freebusy().query(body=body).execute()
        calendar = result.get("calendars", {}).get(tenant.calendar_id, {})
        if calendar.get("errors"):
            reasons = ", ".join(e.get("reason", "unknown") for e in calendar["errors"])
            raise CalendarError(f"Free/busy lookup rejected for {tenant.calendar_id}: {reasons}")
        return [
            BusyInterval(start=_parse_time(block["start"]), end=_parse_time(block["end"]))
            for block in calendar.get("busy", [])
        ]

    async def list_busy_intervals(
        self, tenant: Tenant, start: datetime, end: datetime
    ) -> list[BusyInterval]:
        busy = await asyncio.to_thread(self._query_busy, tenant, start, end)
        logger.debug("Calendar %s: %d busy blocks", tenant.calendar_id, len(busy))
        return busy

    # ── Events ───────────────────────────────────────────────────────

    def _insert_event(self, tenant: Tenant, body: dict[str, Any]) -> dict[str, Any]:
        return (
            self._service(tenant)
            .events()
            .insert(calendarId=tenant.calendar_id, body=body)
            .execute()
        )

    async def create_event(
        self,
        tenant: Tenant,
        summary: str,
        description: str,
        location: str,
        start: datetime,
        end: datetime,
    ) -> CalendarEvent:
        body = {
            "summary": summary,
            "description": description,
            "location": location,
            "start": {"dateTime": _utc_iso(start)},
            "end": {"dateTime": _utc_iso(end)},
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "popup", "minutes": m} for m in REMINDER_MINUTES],
            },
        }
        created = await asyncio.to_thread(self._insert_event, tenant, body)
        event = CalendarEvent(event_id=created.get("id", ""), link=created.get("htmlLink", ""))
        logger.info("Calendar event created: %s on %s", event.event_id, tenant.calendar_id)
        return event
