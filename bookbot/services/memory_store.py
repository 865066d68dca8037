"""
In-memory record store.

Used by tests and the console demo. In production this would be backed by a
relational database; rows here are kept in their serialized form so every
read returns an independent copy, the same as a real store round trip.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from bookbot.schemas.conversation_schema import (
    ConversationState,
    Conversation,
    dump_bag,
    load_bag,
)
from bookbot.schemas.job_schema import Job
from bookbot.schemas.tenant_schema import Customer, Tenant
from bookbot.utils import normalize_phone

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


class InMemoryStore:
    """Dict-backed implementation of the ``Store`` protocol."""

    def __init__(self) -> None:
        self._tenants: dict[str, str] = {}
        self._customers: dict[str, str] = {}
        self._customer_index: dict[tuple[str, str], str] = {}
        self._conversations: dict[str, dict[str, Any]] = {}
        self._jobs: dict[str, str] = {}
        self.tenant_reads = 0

    # ------------------------------------------------------------------ #
    # Tenants
    # ------------------------------------------------------------------ #

    def add_tenant(self, tenant: Tenant) -> None:
        """Insert or replace a tenant record."""
        self._tenants[tenant.id] = tenant.model_dump_json()

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        self.tenant_reads += 1
        row = self._tenants.get(tenant_id)
        return Tenant.model_validate_json(row) if row else None

    async def get_tenant_by_channel_id(self, channel_id: str) -> Optional[Tenant]:
        self.tenant_reads += 1
        for row in self._tenants.values():
            tenant = Tenant.model_validate_json(row)
            if tenant.whatsapp_phone_number_id == channel_id:
                return tenant
        return None

    # ------------------------------------------------------------------ #
    # Customers
    # ------------------------------------------------------------------ #

    async def get_or_create_customer(self, tenant_id: str, address: str) -> Customer:
        key = (tenant_id, normalize_phone(address))
        customer_id = self._customer_index.get(key)
        if customer_id:
            return Customer.model_validate_json(self._customers[customer_id])

        customer = Customer(id=_new_id("cus"), tenant_id=tenant_id, address=key[1])
        self._customers[customer.id] = customer.model_dump_json()
        self._customer_index[key] = customer.id
        logger.info("New customer created: %s for tenant %s", customer.id, tenant_id)
        return customer

    # ------------------------------------------------------------------ #
    # Conversations
    # ------------------------------------------------------------------ #

    @staticmethod
    def _to_row(conversation: Conversation) -> dict[str, Any]:
        row = conversation.model_dump(mode="json", exclude={"data"})
        row["state"] = conversation.state.value
        row["intake_data"] = dump_bag(conversation.data)
        return row

    @staticmethod
    def _from_row(row: dict[str, Any]) -> Conversation:
        fields = {k: v for k, v in row.items() if k not in ("state", "intake_data")}
        return Conversation.model_validate({**fields, "data": load_bag(row["intake_data"])})

    async def get_active_conversation(
        self, tenant_id: str, customer_id: str
    ) -> Optional[Conversation]:
        candidates = [
            row
            for row in self._conversations.values()
            if row["tenant_id"] == tenant_id
            and row["customer_id"] == customer_id
            and row["state"] != ConversationState.DONE.value
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda r: r["updated_at"])
        return self._from_row(json.loads(json.dumps(latest)))

    async def create_conversation(self, tenant_id: str, customer_id: str) -> Conversation:
        conversation = Conversation(
            id=_new_id("conv"), tenant_id=tenant_id, customer_id=customer_id
        )
        self._conversations[conversation.id] = self._to_row(conversation)
        return conversation

    async def save_conversation(self, conversation: Conversation) -> None:
        conversation.updated_at = datetime.now(timezone.utc)
        self._conversations[conversation.id] = self._to_row(conversation)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        row = self._conversations.get(conversation_id)
        return self._from_row(row) if row else None

    def list_conversations(self, customer_id: Optional[str] = None) -> list[Conversation]:
        """All conversations, oldest first, optionally for one customer."""
        rows = sorted(self._conversations.values(), key=lambda r: r["created_at"])
        return [
            self._from_row(r) for r in rows if customer_id is None or r["customer_id"] == customer_id
        ]

    # ------------------------------------------------------------------ #
    # Jobs
    # ------------------------------------------------------------------ #

    async def create_job(self, job: Job) -> Job:
        if not job.id:
            job = job.model_copy(update={"id": _new_id("job")})
        self._jobs[job.id] = job.model_dump_json()
        logger.info("Job created: %s (%s, urgent=%s)", job.id, job.service_type, job.urgent)
        return job

    async def get_job(self, job_id: str) -> Optional[Job]:
        row = self._jobs.get(job_id)
        return Job.model_validate_json(row) if row else None

    async def save_job(self, job: Job) -> None:
        self._jobs[job.id] = job.model_dump_json()

    def list_jobs(self) -> list[Job]:
        return [Job.model_validate_json(row) for row in self._jobs.values()]
