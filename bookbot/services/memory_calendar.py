"""
In-memory calendar provider.

Used by the console demo and tests; live deployments use
``GoogleCalendarProvider``. Booked events are added to the busy list so later
searches see them.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import TypedDict

from bookbot.schemas.job_schema import BusyInterval, CalendarEvent
from bookbot.schemas.tenant_schema import Tenant

logger = logging.getLogger(__name__)


class EventRecord(TypedDict):
    event_id: str
    summary: str
    description: str
    location: str
    start: datetime
    end: datetime


class InMemoryCalendar:
    """Calendar keyed by the tenant's ``calendar_id``."""

    def __init__(self, link_base: str = "https://calendar.example.com/event") -> None:
        self._busy: dict[str, list[BusyInterval]] = defaultdict(list)
        self._events: dict[str, list[EventRecord]] = defaultdict(list)
        self._link_base = link_base
        self.busy_queries = 0

    def add_busy(self, calendar_id: str, start: datetime, end: datetime) -> None:
        self._busy[calendar_id].append(BusyInterval(start=start, end=end))

    def events(self, calendar_id: str) -> list[EventRecord]:
        return list(self._events[calendar_id])

    async def list_busy_intervals(
        self, tenant: Tenant, start: datetime, end: datetime
    ) -> list[BusyInterval]:
        self.busy_queries += 1
        return [b for b in self._busy[tenant.calendar_id] if b.overlaps(start, end)]

    async def create_event(
        self,
        tenant: Tenant,
        summary: str,
        description: str,
        location: str,
        start: datetime,
        end: datetime,
    ) -> CalendarEvent:
        event_id = uuid.uuid4().hex[:12]
        self._events[tenant.calendar_id].append(
            {
                "event_id": event_id,
                "summary": summary,
                "description": description,
                "location": location,
                "start": start,
                "end": end,
            }
        )
        self._busy[tenant.calendar_id].append(BusyInterval(start=start, end=end))
        logger.info("Calendar event created: %s on %s at %s", event_id, tenant.calendar_id, start.isoformat())
        return CalendarEvent(event_id=event_id, link=f"{self._link_base}/{event_id}")
