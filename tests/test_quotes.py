"""Tests for quote generation and the availability lookup."""

import asyncio

import pytest

from bookbot.schemas.job_schema import QuoteRange
from bookbot.tools.availability import book_slot, find_available_slots
from bookbot.tools.quotes import default_quote, generate_quote, parse_quote
from tests.conftest import NOW, ScriptedCompletion


class SlowCompletion:
    async def chat(self, system_prompt, history):
        await asyncio.sleep(5)
        return '{"min": 1, "max": 2}'


class TestParseQuote:
    def test_valid_json(self):
        assert parse_quote('{"min": 90, "max": 150}') == QuoteRange(min=90, max=150)

    def test_surrounding_whitespace(self):
        assert parse_quote('  {"min": 90, "max": 150}\n') == QuoteRange(min=90, max=150)

    def test_prose_rejected(self):
        assert parse_quote("About 90 to 150 pounds") is None

    def test_inverted_range_rejected(self):
        assert parse_quote('{"min": 200, "max": 100}') is None

    def test_negative_rejected(self):
        assert parse_quote('{"min": -5, "max": 100}') is None

    def test_missing_field_rejected(self):
        assert parse_quote('{"min": 90}') is None


class TestGenerateQuote:
    @pytest.mark.asyncio
    async def test_uses_model_estimate(self):
        completion = ScriptedCompletion(['{"min": 95, "max": 140}'])
        quote = await generate_quote(completion, "Plumber", "leaking tap", False)
        assert quote == QuoteRange(min=95, max=140)

        system_prompt, history = completion.calls[0]
        assert "ONLY valid JSON" in system_prompt
        assert "Service: Plumber" in history[0].content
        assert "Urgent: false" in history[0].content

    @pytest.mark.asyncio
    async def test_garbage_falls_back_to_default(self):
        completion = ScriptedCompletion(["Sorry, I can't help with that"])
        quote = await generate_quote(completion, "Plumber", "leaking tap", False)
        assert quote == default_quote() == QuoteRange(min=80, max=200)

    @pytest.mark.asyncio
    async def test_error_falls_back_to_default(self):
        completion = ScriptedCompletion([RuntimeError("boom")])
        assert await generate_quote(completion, "Plumber", "x", True) == default_quote()

    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_default(self):
        quote = await generate_quote(SlowCompletion(), "Plumber", "x", False, timeout=0.01)
        assert quote == default_quote()


class BrokenCalendar:
    async def list_busy_intervals(self, tenant, start, end):
        raise ConnectionError("calendar unreachable")

    async def create_event(self, tenant, summary, description, location, start, end):
        raise ConnectionError("calendar unreachable")


class TestAvailability:
    @pytest.mark.asyncio
    async def test_queries_exact_search_window(self, calendar, tenant):
        slots = await find_available_slots(calendar, tenant, "Plumber", False, NOW)
        assert len(slots) == 3
        assert calendar.busy_queries == 1

    @pytest.mark.asyncio
    async def test_calendar_failure_means_no_slots(self, tenant):
        assert await find_available_slots(BrokenCalendar(), tenant, "Plumber", False, NOW) == []

    @pytest.mark.asyncio
    async def test_book_slot_creates_busy_event(self, calendar, tenant):
        slots = await find_available_slots(calendar, tenant, "Plumber", True, NOW)
        event = await book_slot(
            calendar,
            tenant,
            service_type="Plumber",
            description="leaking tap",
            address="10 Main St",
            customer_address="+447700900123",
            start=slots[0],
            urgent=True,
        )
        assert event is not None and event.link.endswith(event.event_id)

        recorded = calendar.events(tenant.calendar_id)[0]
        assert recorded["summary"].startswith("[URGENT] Plumber")
        assert recorded["location"] == "10 Main St"

        again = await find_available_slots(calendar, tenant, "Plumber", True, NOW)
        assert slots[0] not in again

    @pytest.mark.asyncio
    async def test_book_slot_failure_returns_none(self, tenant):
        event = await book_slot(
            BrokenCalendar(),
            tenant,
            service_type="Plumber",
            description="x",
            address="y",
            customer_address="z",
            start=NOW,
            urgent=False,
        )
        assert event is None
