"""
Contracts for the collaborators the conversation core depends on.

The core never talks to a concrete transport, model provider, calendar, or
database directly; it is handed objects that satisfy these protocols.
Reference implementations live next to this module (WhatsApp, OpenAI,
in-memory store, Google and in-memory calendars).
"""

from datetime import datetime
from typing import Optional, Protocol, Sequence

from bookbot.schemas.conversation_schema import ChatTurn, Conversation
from bookbot.schemas.job_schema import BusyInterval, CalendarEvent, Job
from bookbot.schemas.message_schema import ButtonOption, ListRow
from bookbot.schemas.tenant_schema import Customer, Tenant


class Messenger(Protocol):
    """Outbound message transport. Option ids must be delivered verbatim."""

    async def send_text(self, tenant: Tenant, to: str, body: str) -> None: ...

    async def send_buttons(
        self, tenant: Tenant, to: str, body: str, options: Sequence[ButtonOption]
    ) -> None: ...

    async def send_list(
        self, tenant: Tenant, to: str, body: str, label: str, rows: Sequence[ListRow]
    ) -> None: ...


class CompletionService(Protocol):
    """Conversational AI. Receives the full running history for a conversation."""

    async def chat(self, system_prompt: str, history: Sequence[ChatTurn]) -> str: ...


class CalendarProvider(Protocol):
    """Calendar read/write. Callers treat every failure as recoverable."""

    async def list_busy_intervals(
        self, tenant: Tenant, start: datetime, end: datetime
    ) -> list[BusyInterval]: ...

    async def create_event(
        self,
        tenant: Tenant,
        summary: str,
        description: str,
        location: str,
        start: datetime,
        end: datetime,
    ) -> CalendarEvent: ...


class Store(Protocol):
    """Persistent records. One conversation is read then written per event."""

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]: ...

    async def get_tenant_by_channel_id(self, channel_id: str) -> Optional[Tenant]: ...

    async def get_or_create_customer(self, tenant_id: str, address: str) -> Customer: ...

    async def get_active_conversation(
        self, tenant_id: str, customer_id: str
    ) -> Optional[Conversation]: ...

    async def create_conversation(self, tenant_id: str, customer_id: str) -> Conversation: ...

    async def save_conversation(self, conversation: Conversation) -> None: ...

    async def create_job(self, job: Job) -> Job: ...

    async def get_job(self, job_id: str) -> Optional[Job]: ...

    async def save_job(self, job: Job) -> None: ...
