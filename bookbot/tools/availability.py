"""
Appointment availability lookup.

Fetches the tenant's busy intervals for exactly the window the slot finder
walks, then hands them to ``find_slots``. Calendar errors and timeouts are
recoverable: they are logged and reported as "no slots", which the
conversation turns into a manual follow-up.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from bookbot.config import settings
from bookbot.schemas.job_schema import CalendarEvent
from bookbot.schemas.tenant_schema import Tenant
from bookbot.services.interfaces import CalendarProvider
from bookbot.tools.slot_finder import find_slots, search_window, slot_duration

logger = logging.getLogger(__name__)


async def find_available_slots(
    calendar: CalendarProvider,
    tenant: Tenant,
    service_type: str,
    urgent: bool,
    now: datetime,
    timeout: Optional[float] = None,
) -> list[datetime]:
    """Return up to three free start times, or an empty list if none could be found."""
    hours = tenant.business_hours
    start, end = search_window(service_type, urgent, hours, now)
    limit = timeout if timeout is not None else settings.timeouts.calendar_timeout_sec
    try:
        busy = await asyncio.wait_for(
            calendar.list_busy_intervals(tenant, start, end), timeout=limit
        )
    except asyncio.TimeoutError:
        logger.warning("Busy-interval lookup for tenant %s timed out after %.1fs", tenant.id, limit)
        return []
    except Exception as exc:
        logger.warning("Busy-interval lookup for tenant %s failed: %s", tenant.id, exc)
        return []

    return find_slots(service_type, urgent, hours, now, busy)


async def book_slot(
    calendar: CalendarProvider,
    tenant: Tenant,
    *,
    service_type: str,
    description: str,
    address: str,
    customer_address: str,
    start: datetime,
    urgent: bool,
    timeout: Optional[float] = None,
) -> Optional[CalendarEvent]:
    """Create the calendar entry for a chosen slot.

    Returns None when the calendar call fails; the booking still stands,
    just without a calendar reference.
    """
    end = start + slot_duration(service_type, urgent)
    prefix = "[URGENT] " if urgent else ""
    limit = timeout if timeout is not None else settings.timeouts.calendar_timeout_sec
    try:
        return await asyncio.wait_for(
            calendar.create_event(
                tenant,
                summary=f"{prefix}{service_type} - {customer_address}",
                description=f"Problem: {description}\nCustomer: {customer_address}",
                location=address,
                start=start,
                end=end,
            ),
            timeout=limit,
        )
    except asyncio.TimeoutError:
        logger.warning("Calendar event creation timed out after %.1fs", limit)
    except Exception as exc:
        logger.warning("Calendar event creation failed: %s", exc)
    return None
