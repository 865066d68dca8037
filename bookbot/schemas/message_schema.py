"""Inbound event and outbound message models."""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20


class InboundEvent(BaseModel):
    """One message received from a customer.

    Carries either free text or the id of a tapped button/list row.
    The tenant is identified by id, by channel id, or both.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str
    customer_address: str
    tenant_id: Optional[str] = None
    channel_id: Optional[str] = None
    text: Optional[str] = None
    selected_option_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "InboundEvent":
        if not self.tenant_id and not self.channel_id:
            raise ValueError("inbound event needs a tenant_id or channel_id")
        if (self.text is None) == (self.selected_option_id is None):
            raise ValueError("inbound event needs exactly one of text or selected_option_id")
        return self

    @property
    def token(self) -> str:
        """The value the state machine matches on."""
        if self.selected_option_id is not None:
            return self.selected_option_id
        return (self.text or "").strip()

    @property
    def tenant_key(self) -> str:
        return self.tenant_id or f"channel:{self.channel_id}"


class ButtonOption(BaseModel):
    id: str
    title: str = Field(max_length=MAX_BUTTON_TITLE)


class ListRow(BaseModel):
    id: str
    title: str
    description: str = ""


class TextMessage(BaseModel):
    kind: Literal["text"] = "text"
    to: str
    body: str


class ButtonMessage(BaseModel):
    kind: Literal["buttons"] = "buttons"
    to: str
    body: str
    options: list[ButtonOption]

    @field_validator("options")
    @classmethod
    def _check_count(cls, value: list[ButtonOption]) -> list[ButtonOption]:
        if not 1 <= len(value) <= MAX_BUTTONS:
            raise ValueError(f"button messages carry 1-{MAX_BUTTONS} options, got {len(value)}")
        return value


class ListMessage(BaseModel):
    kind: Literal["list"] = "list"
    to: str
    body: str
    label: str
    rows: list[ListRow]


OutboundMessage = Union[TextMessage, ButtonMessage, ListMessage]
