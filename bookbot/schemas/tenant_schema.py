"""Tenant and customer records."""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bookbot.config import settings

DEFAULT_START_HOUR = 8
DEFAULT_END_HOUR = 18
DEFAULT_DAYS = frozenset({1, 2, 3, 4, 5})  # ISO weekdays, Mon-Fri


class BusinessHours(BaseModel):
    """Opening policy used when searching for appointment slots.

    ``days`` holds ISO weekday numbers (Monday=1 .. Sunday=7). A 0 is
    accepted as Sunday so hours stored with a Sunday-first numbering load
    unchanged.
    """

    model_config = ConfigDict(frozen=True)

    start: int = DEFAULT_START_HOUR
    end: int = DEFAULT_END_HOUR
    days: frozenset[int] = DEFAULT_DAYS
    timezone: str = Field(default_factory=lambda: settings.business.default_timezone)

    @field_validator("days", mode="before")
    @classmethod
    def _normalize_days(cls, value):
        days = frozenset(7 if int(d) == 0 else int(d) for d in value)
        if not days:
            raise ValueError("business hours need at least one active day")
        if not all(1 <= d <= 7 for d in days):
            raise ValueError(f"weekdays must be 0-7, got {sorted(days)}")
        return days

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        ZoneInfo(value)
        return value

    @model_validator(mode="after")
    def _check_range(self) -> "BusinessHours":
        if not 0 <= self.start < self.end <= 24:
            raise ValueError(
                f"business hours must satisfy 0 <= start < end <= 24, got {self.start}-{self.end}"
            )
        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class Tenant(BaseModel):
    """One onboarded business account."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    whatsapp_phone_number_id: str
    whatsapp_token: str
    calendar_id: str
    calendar_credentials: Optional[str] = None
    owner_phone: str
    business_hours: BusinessHours = Field(default_factory=BusinessHours)
    active: bool = True


class Customer(BaseModel):
    """A customer scoped to one tenant and one channel address."""

    id: str
    tenant_id: str
    address: str
    name: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
