"""
Appointment slot finder.

Turns a calendar's busy intervals into up to three offerable start times.
Everything here is a pure function of its inputs: the caller fetches busy
intervals for ``search_window(...)`` and passes them in together with "now".

All wall-clock reasoning (business days, opening hours, grid alignment)
happens in the tenant's timezone. Busy intervals may use any timezone;
overlap checks compare absolute instants.

Usage:
    start, end = search_window("Plumber", False, hours, now)
    busy = ...  # fetched from the calendar for [start, end)
    slots = find_slots("Plumber", False, hours, now, busy)
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable

from bookbot.schemas.job_schema import BusyInterval
from bookbot.schemas.tenant_schema import BusinessHours

logger = logging.getLogger(__name__)

# Appointment length in minutes per service type
SLOT_DURATION_MINUTES: dict[str, int] = {
    "Plumber": 120,
    "Electrician": 120,
    "Locksmith": 60,
    "Handyman": 60,
}

# Urgent jobs get shorter slots so they fit into smaller calendar gaps
URGENT_SLOT_DURATION_MINUTES: dict[str, int] = {
    "Plumber": 60,
    "Electrician": 60,
    "Locksmith": 30,
    "Handyman": 30,
}

DEFAULT_DURATION_MINUTES = 120
DEFAULT_URGENT_DURATION_MINUTES = 60

BUFFER_MINUTES = 30
URGENT_BUFFER_MINUTES = 15
HORIZON_DAYS = 7
URGENT_HORIZON_DAYS = 3
MAX_CANDIDATES = 3

# Durations of an hour or more start on the hour, shorter ones on the half-hour
HOURLY_GRID_THRESHOLD_MINUTES = 60


def slot_duration(service_type: str, urgent: bool) -> timedelta:
    """Appointment length for a service, falling back to the default for unknown types."""
    if urgent:
        minutes = URGENT_SLOT_DURATION_MINUTES.get(service_type, DEFAULT_URGENT_DURATION_MINUTES)
    else:
        minutes = SLOT_DURATION_MINUTES.get(service_type, DEFAULT_DURATION_MINUTES)
    return timedelta(minutes=minutes)


def _opening(day: date, hours: BusinessHours) -> datetime:
    return datetime.combine(day, time(0), tzinfo=hours.tz) + timedelta(hours=hours.start)


def _closing(day: date, hours: BusinessHours) -> datetime:
    return datetime.combine(day, time(0), tzinfo=hours.tz) + timedelta(hours=hours.end)


def is_business_time(moment: datetime, hours: BusinessHours) -> bool:
    """True if *moment* falls on an active weekday within opening hours."""
    local = moment.astimezone(hours.tz)
    if local.isoweekday() not in hours.days:
        return False
    day = local.date()
    return _opening(day, hours) <= local < _closing(day, hours)


def next_business_start(moment: datetime, hours: BusinessHours) -> datetime:
    """First instant at or after *moment* that lies inside business hours."""
    local = moment.astimezone(hours.tz)
    # Eight probes cover a full week plus the partial starting day
    for _ in range(8):
        day = local.date()
        if day.isoweekday() in hours.days:
            opening = _opening(day, hours)
            if local < opening:
                return opening
            if local < _closing(day, hours):
                return local
        local = _opening(day + timedelta(days=1), hours)
    raise ValueError(f"No business day configured in {sorted(hours.days)}")


def round_up_to_grid(moment: datetime, duration: timedelta) -> datetime:
    """Round forward to the next on-the-hour or half-hour boundary."""
    step = 60 if duration >= timedelta(minutes=HOURLY_GRID_THRESHOLD_MINUTES) else 30
    floored = moment.replace(minute=moment.minute - moment.minute % step, second=0, microsecond=0)
    if floored < moment:
        floored += timedelta(minutes=step)
    return floored


def search_window(
    service_type: str, urgent: bool, hours: BusinessHours, now: datetime
) -> tuple[datetime, datetime]:
    """Return ``(search_start, search_end)`` for a booking made at *now*.

    Urgent requests use a shorter buffer and a narrower horizon so the
    soonest opening wins.
    """
    buffer = timedelta(minutes=URGENT_BUFFER_MINUTES if urgent else BUFFER_MINUTES)
    horizon = timedelta(days=URGENT_HORIZON_DAYS if urgent else HORIZON_DAYS)
    search_start = next_business_start(now.astimezone(hours.tz) + buffer, hours)
    return search_start, search_start + horizon


def _fits_business_hours(start: datetime, end: datetime, hours: BusinessHours) -> bool:
    if not is_business_time(start, hours):
        return False
    local = start.astimezone(hours.tz)
    return end.astimezone(hours.tz) <= _closing(local.date(), hours)


def find_slots(
    service_type: str,
    urgent: bool,
    hours: BusinessHours,
    now: datetime,
    busy: Iterable[BusyInterval],
) -> list[datetime]:
    """
    Walk the calendar in duration-sized steps and collect free start times.

    A cursor is accepted when it is inside business hours, the appointment
    ends no later than closing time, and [cursor, cursor + duration) does
    not overlap any busy interval. When the cursor leaves business hours
    it jumps to the next business day's opening.

    Returns:
        Up to ``MAX_CANDIDATES`` start times, earliest first. An empty list
        means no automatic slot was found; callers fall back to manual
        scheduling.
    """
    blocks = list(busy)
    duration = slot_duration(service_type, urgent)
    search_start, search_end = search_window(service_type, urgent, hours, now)

    cursor = round_up_to_grid(search_start, duration)
    if not is_business_time(cursor, hours):
        cursor = next_business_start(cursor, hours)

    slots: list[datetime] = []
    while len(slots) < MAX_CANDIDATES and cursor < search_end:
        slot_end = cursor + duration
        if _fits_business_hours(cursor, slot_end, hours) and not any(
            block.overlaps(cursor, slot_end) for block in blocks
        ):
            slots.append(cursor)

        cursor = cursor + duration
        if not is_business_time(cursor, hours):
            cursor = next_business_start(cursor, hours)

    logger.debug(
        "Slot search for %s (urgent=%s) between %s and %s found %d slot(s)",
        service_type, urgent, search_start.isoformat(), search_end.isoformat(), len(slots),
    )
    return slots
