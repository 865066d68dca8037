"""Job, quote, and calendar data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class JobStatus(str, Enum):
    """Job lifecycle. Only forward moves are allowed."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DONE = "DONE"


_STATUS_ORDER = [JobStatus.PENDING, JobStatus.CONFIRMED, JobStatus.DONE]


class QuoteRange(BaseModel):
    """Estimated price range in whole currency units."""

    model_config = ConfigDict(frozen=True)

    min: int = Field(ge=0)
    max: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "QuoteRange":
        if self.min > self.max:
            raise ValueError(f"quote min {self.min} exceeds max {self.max}")
        return self


class Job(BaseModel):
    """A service request created at the end of structured intake."""

    id: str
    tenant_id: str
    customer_id: str
    service_type: str
    description: str
    address: str
    urgent: bool = False
    status: JobStatus = JobStatus.PENDING
    quote: QuoteRange
    scheduled_at: Optional[datetime] = None
    calendar_event_id: Optional[str] = None
    calendar_link: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def advance_status(self, status: JobStatus) -> None:
        """Move the job forward. Setting the current status again is a no-op.

        Raises:
            ValueError: If *status* would move the job backwards.
        """
        if _STATUS_ORDER.index(status) < _STATUS_ORDER.index(self.status):
            raise ValueError(
                f"Job {self.id} cannot move from {self.status.value} back to {status.value}"
            )
        self.status = status


class BusyInterval(BaseModel):
    """A half-open [start, end) range already taken on the calendar."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "BusyInterval":
        if self.end < self.start:
            raise ValueError("busy interval ends before it starts")
        return self

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap test against [start, end)."""
        return start < self.end and end > self.start


class CalendarEvent(BaseModel):
    """Reference to a created calendar entry."""

    event_id: str
    link: str = ""
