"""Tests for the appointment slot finder."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from bookbot.schemas.job_schema import BusyInterval
from bookbot.schemas.tenant_schema import BusinessHours
from bookbot.tools.slot_finder import (
    MAX_CANDIDATES,
    find_slots,
    is_business_time,
    next_business_start,
    round_up_to_grid,
    search_window,
    slot_duration,
)

HOURS = BusinessHours(timezone="Europe/London")
UTC = timezone.utc


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """A moment in March 2025 (London is on UTC until the 30th)."""
    return datetime(2025, 3, day, hour, minute, tzinfo=UTC)


def busy(start: datetime, end: datetime) -> BusyInterval:
    return BusyInterval(start=start, end=end)


class TestDurations:
    def test_known_services(self):
        assert slot_duration("Plumber", False) == timedelta(minutes=120)
        assert slot_duration("Electrician", True) == timedelta(minutes=60)
        assert slot_duration("Locksmith", False) == timedelta(minutes=60)
        assert slot_duration("Handyman", True) == timedelta(minutes=30)

    def test_unknown_service_uses_default(self):
        assert slot_duration("Roofer", False) == timedelta(minutes=120)
        assert slot_duration("Roofer", True) == timedelta(minutes=60)


class TestGridAndHours:
    def test_round_up_hourly(self):
        assert round_up_to_grid(at(17, 9, 30), timedelta(minutes=120)) == at(17, 10)

    def test_round_up_half_hour(self):
        assert round_up_to_grid(at(17, 9, 15), timedelta(minutes=30)) == at(17, 9, 30)

    def test_on_grid_unchanged(self):
        assert round_up_to_grid(at(17, 10), timedelta(minutes=60)) == at(17, 10)

    def test_seconds_round_up(self):
        moment = at(17, 10) + timedelta(seconds=1)
        assert round_up_to_grid(moment, timedelta(minutes=60)) == at(17, 11)

    def test_weekend_is_not_business_time(self):
        assert not is_business_time(at(15, 10), HOURS)  # Saturday

    def test_closing_hour_excluded(self):
        assert is_business_time(at(17, 17, 59), HOURS)
        assert not is_business_time(at(17, 18), HOURS)

    def test_next_business_start_from_friday_evening(self):
        assert next_business_start(at(21, 19), HOURS) == at(24, 8)

    def test_next_business_start_before_opening(self):
        assert next_business_start(at(17, 6), HOURS) == at(17, 8)

    def test_sunday_zero_accepted(self):
        hours = BusinessHours(days=[0, 6], timezone="Europe/London")
        assert hours.days == frozenset({6, 7})
        assert is_business_time(at(16, 10), hours)  # Sunday

    def test_search_window_horizons(self):
        start, end = search_window("Plumber", False, HOURS, at(17, 9))
        assert start == at(17, 9, 30)
        assert end - start == timedelta(days=7)
        start, end = search_window("Plumber", True, HOURS, at(17, 9))
        assert start == at(17, 9, 15)
        assert end - start == timedelta(days=3)


class TestFindSlots:
    def test_empty_calendar_plumber(self):
        slots = find_slots("Plumber", False, HOURS, at(17, 9), [])
        assert slots == [at(17, 10), at(17, 12), at(17, 14)]

    def test_urgent_plumber_uses_shorter_slots(self):
        slots = find_slots("Plumber", True, HOURS, at(17, 9), [])
        assert slots == [at(17, 10), at(17, 11), at(17, 12)]

    def test_urgent_locksmith_on_half_hour_grid(self):
        slots = find_slots("Locksmith", True, HOURS, at(17, 9), [])
        assert slots == [at(17, 9, 30), at(17, 10), at(17, 10, 30)]

    def test_busy_interval_skipped(self):
        slots = find_slots("Plumber", False, HOURS, at(17, 9), [busy(at(17, 10), at(17, 11))])
        assert slots == [at(17, 12), at(17, 14), at(17, 16)]

    def test_adjacent_busy_interval_does_not_block(self):
        slots = find_slots("Plumber", False, HOURS, at(17, 9), [busy(at(17, 8), at(17, 10))])
        assert slots[0] == at(17, 10)

    def test_friday_evening_rolls_to_monday(self):
        slots = find_slots("Plumber", False, HOURS, at(21, 17), [])
        assert slots == [at(24, 8), at(24, 10), at(24, 12)]

    def test_before_opening_starts_at_opening(self):
        slots = find_slots("Plumber", False, HOURS, at(17, 6), [])
        assert slots[0] == at(17, 8)

    def test_rolls_into_next_day(self):
        slots = find_slots("Plumber", False, HOURS, at(17, 15, 10), [])
        assert slots == [at(17, 16), at(18, 8), at(18, 10)]

    def test_slot_must_end_by_closing(self):
        hours = BusinessHours(start=8, end=17, timezone="Europe/London")
        slots = find_slots("Plumber", False, hours, at(17, 15, 10), [])
        assert slots == [at(18, 8), at(18, 10), at(18, 12)]

    def test_fully_busy_calendar_returns_empty(self):
        slots = find_slots("Plumber", False, HOURS, at(17, 9), [busy(at(17, 0), at(31, 0))])
        assert slots == []

    def test_urgent_horizon_is_narrower(self):
        blocked = [busy(at(17, 0), at(20, 12))]
        assert find_slots("Plumber", True, HOURS, at(17, 9), blocked) == []
        assert find_slots("Plumber", False, HOURS, at(17, 9), blocked) == [
            at(20, 12), at(20, 14), at(20, 16),
        ]

    def test_tenant_timezone_drives_wall_clock(self):
        hours = BusinessHours(timezone="America/New_York")
        # 13:00 UTC is 09:00 in New York (EDT, UTC-4)
        slots = find_slots("Plumber", False, hours, at(17, 13), [])
        assert slots[0] == at(17, 14)
        assert all(is_business_time(s, hours) for s in slots)


class TestSlotProperties:
    """Randomized busy calendars with fixed seeds."""

    SERVICES = ["Plumber", "Electrician", "Locksmith", "Handyman", "Roofer"]

    @staticmethod
    def _random_busy(rng: random.Random, now: datetime) -> list[BusyInterval]:
        blocks = []
        for _ in range(rng.randint(0, 25)):
            start = now + timedelta(minutes=15 * rng.randint(0, 4 * 24 * 9))
            blocks.append(busy(start, start + timedelta(minutes=15 * rng.randint(1, 24))))
        return blocks

    @pytest.mark.parametrize("seed", range(20))
    def test_candidates_are_free_ordered_and_bounded(self, seed):
        rng = random.Random(seed)
        now = at(17, 6) + timedelta(minutes=rng.randint(0, 60 * 24 * 4))
        blocks = self._random_busy(rng, now)

        for service in self.SERVICES:
            for urgent in (False, True):
                slots = find_slots(service, urgent, HOURS, now, blocks)
                duration = slot_duration(service, urgent)

                assert len(slots) <= MAX_CANDIDATES
                assert all(a < b for a, b in zip(slots, slots[1:]))
                for slot in slots:
                    assert slot >= now
                    assert is_business_time(slot, HOURS)
                    assert not any(b.overlaps(slot, slot + duration) for b in blocks)

    @pytest.mark.parametrize("seed", range(20))
    def test_urgent_never_later_than_normal(self, seed):
        rng = random.Random(1000 + seed)
        now = at(17, 6) + timedelta(minutes=rng.randint(0, 60 * 24 * 4))
        blocks = self._random_busy(rng, now)

        for service in self.SERVICES:
            normal = find_slots(service, False, HOURS, now, blocks)
            urgent = find_slots(service, True, HOURS, now, blocks)
            _, urgent_end = search_window(service, True, HOURS, now)
            if normal and urgent and normal[0] < urgent_end:
                assert urgent[0] <= normal[0]
