"""Shared test fixtures and helpers."""

import itertools
from datetime import datetime, timezone
from typing import Optional, Sequence, Union

import pytest

from bookbot.conversation.state_machine import ConversationRouter, ConversationStateMachine
from bookbot.schemas.conversation_schema import ChatTurn
from bookbot.schemas.message_schema import ButtonOption, InboundEvent, ListRow
from bookbot.schemas.tenant_schema import BusinessHours, Tenant
from bookbot.services.memory_calendar import InMemoryCalendar
from bookbot.services.memory_store import InMemoryStore
from bookbot.services.tenant_cache import TenantResolverCache

# Monday 17 March 2025, 09:00 in London (GMT, no DST offset yet)
NOW = datetime(2025, 3, 17, 9, 0, tzinfo=timezone.utc)

CUSTOMER = "+447700900123"
TENANT_ID = "tenant-1"
CHANNEL_ID = "1234567890"

_event_ids = itertools.count(1)


class RecordingMessenger:
    """Messenger fake that keeps every send, in order."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail

    def _record(self, **entry) -> None:
        if self.fail:
            raise RuntimeError("transport down")
        self.sent.append(entry)

    async def send_text(self, tenant: Tenant, to: str, body: str) -> None:
        self._record(kind="text", to=to, body=body)

    async def send_buttons(
        self, tenant: Tenant, to: str, body: str, options: Sequence[ButtonOption]
    ) -> None:
        self._record(kind="buttons", to=to, body=body, ids=[o.id for o in options])

    async def send_list(
        self, tenant: Tenant, to: str, body: str, label: str, rows: Sequence[ListRow]
    ) -> None:
        self._record(kind="list", to=to, body=body, ids=[r.id for r in rows])

    def clear(self) -> None:
        self.sent.clear()


class ScriptedCompletion:
    """Completion fake returning queued replies; an Exception entry is raised instead."""

    def __init__(self, replies: Optional[list[Union[str, Exception]]] = None) -> None:
        self.replies = list(replies or [])
        self.calls: list[tuple[str, list[ChatTurn]]] = []

    def queue(self, *replies: Union[str, Exception]) -> None:
        self.replies.extend(replies)

    async def chat(self, system_prompt: str, history: Sequence[ChatTurn]) -> str:
        self.calls.append((system_prompt, list(history)))
        reply = self.replies.pop(0) if self.replies else "Happy to help!"
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_tenant(**overrides) -> Tenant:
    fields = dict(
        id=TENANT_ID,
        name="Acme Repairs",
        whatsapp_phone_number_id=CHANNEL_ID,
        whatsapp_token="test-token",
        calendar_id="cal-1",
        owner_phone="+447700900000",
        business_hours=BusinessHours(timezone="Europe/London"),
    )
    fields.update(overrides)
    return Tenant(**fields)


def make_event(
    text: Optional[str] = None,
    option: Optional[str] = None,
    customer: str = CUSTOMER,
    tenant_id: Optional[str] = TENANT_ID,
    channel_id: Optional[str] = None,
    event_id: Optional[str] = None,
) -> InboundEvent:
    """Build an inbound event carrying either free text or a tapped option id."""
    return InboundEvent(
        event_id=event_id or f"evt-{next(_event_ids)}",
        customer_address=customer,
        tenant_id=tenant_id,
        channel_id=channel_id,
        text=text,
        selected_option_id=option,
    )


@pytest.fixture
def tenant():
    return make_tenant()


@pytest.fixture
def store(tenant):
    s = InMemoryStore()
    s.add_tenant(tenant)
    return s


@pytest.fixture
def calendar():
    return InMemoryCalendar()


@pytest.fixture
def messenger():
    return RecordingMessenger()


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def tenant_cache(store):
    return TenantResolverCache(store, ttl_seconds=300)


@pytest.fixture
def router(store, tenant_cache, messenger, completion, calendar):
    return ConversationRouter(
        store, tenant_cache, messenger, completion, calendar, clock=lambda: NOW
    )


@pytest.fixture
def state_machine():
    return ConversationStateMachine()
