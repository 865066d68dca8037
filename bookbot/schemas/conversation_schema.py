"""Conversation records and the per-state attribute bag.

The attribute bag is a tagged union: each conversation state has its own
variant carrying exactly the fields that state needs, and the variant's
``state`` tag is the conversation's state. Persisting a conversation stores
the bag as an opaque JSON blob (see ``dump_bag`` / ``load_bag``).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from bookbot.schemas.job_schema import QuoteRange


class ConversationState(str, Enum):
    """All possible states in a conversation lifecycle."""

    MENU = "MENU"
    SERVICE_SELECT = "SERVICE_SELECT"
    INTAKE = "INTAKE"
    CONFIRM = "CONFIRM"
    SLOT_SELECT = "SLOT_SELECT"
    AI_CHAT = "AI_CHAT"
    DONE = "DONE"
    HANDOFF = "HANDOFF"


TERMINAL_STATES = frozenset({ConversationState.DONE, ConversationState.HANDOFF})


class MenuData(BaseModel):
    state: Literal["MENU"] = "MENU"


class ServiceSelectData(BaseModel):
    state: Literal["SERVICE_SELECT"] = "SERVICE_SELECT"


class IntakeData(BaseModel):
    """Structured intake in progress. ``step`` is the question being answered."""

    state: Literal["INTAKE"] = "INTAKE"
    service_id: str
    service_type: str
    step: int = Field(default=0, ge=0, le=2)
    description: Optional[str] = None
    address: Optional[str] = None


class _BookingDetails(BaseModel):
    service_id: str
    service_type: str
    description: str
    address: str
    urgent: bool
    job_id: str
    quote: QuoteRange


class ConfirmData(_BookingDetails):
    state: Literal["CONFIRM"] = "CONFIRM"


class SlotSelectData(_BookingDetails):
    """Offered slots are fixed once per confirm cycle and picked by index."""

    state: Literal["SLOT_SELECT"] = "SLOT_SELECT"
    offered_slots: list[datetime] = Field(min_length=1)


class AiChatData(BaseModel):
    state: Literal["AI_CHAT"] = "AI_CHAT"
    job_id: Optional[str] = None


class DoneData(BaseModel):
    state: Literal["DONE"] = "DONE"


class HandoffData(BaseModel):
    state: Literal["HANDOFF"] = "HANDOFF"
    reason: Optional[str] = None


AttributeBag = Annotated[
    Union[
        MenuData,
        ServiceSelectData,
        IntakeData,
        ConfirmData,
        SlotSelectData,
        AiChatData,
        DoneData,
        HandoffData,
    ],
    Field(discriminator="state"),
]

_bag_adapter: TypeAdapter[AttributeBag] = TypeAdapter(AttributeBag)


def dump_bag(bag: AttributeBag) -> str:
    """Serialize an attribute bag to its stored JSON form."""
    return _bag_adapter.dump_json(bag).decode("utf-8")


def load_bag(blob: str) -> AttributeBag:
    """Parse a stored attribute bag. Raises ``pydantic.ValidationError`` on bad data."""
    return _bag_adapter.validate_json(blob)


class ChatTurn(BaseModel):
    """One entry of the running AI conversation history."""

    role: Literal["user", "assistant"]
    content: str


class Conversation(BaseModel):
    """The stateful exchange with one customer."""

    id: str
    tenant_id: str
    customer_id: str
    data: AttributeBag = Field(default_factory=MenuData)
    handed_off: bool = False
    ai_history: list[ChatTurn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def state(self) -> ConversationState:
        return ConversationState(self.data.state)

    @property
    def is_active(self) -> bool:
        return self.state != ConversationState.DONE
