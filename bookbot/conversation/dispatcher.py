"""
Per-conversation event dispatcher.

Inbound events are acknowledged immediately and processed in background
tasks. The tenant is resolved first, so an event naming its tenant by id and
one naming it by channel id land on the same key. Events for the same
(tenant, customer) pair are then serialized through a keyed ``asyncio.Lock``
so a conversation's state is read and written by one event at a time;
different conversations proceed in parallel.

Usage:
    dispatcher = ConversationDispatcher(router)
    dispatcher.submit(event)     # returns at once
    await dispatcher.drain()     # wait for in-flight work (tests, shutdown)
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Optional

from bookbot.config import settings
from bookbot.conversation.state_machine import ConversationRouter, TurnResult
from bookbot.errors import DataIntegrityError
from bookbot.logging_context import set_conversation_id
from bookbot.schemas.message_schema import InboundEvent
from bookbot.schemas.tenant_schema import Tenant
from bookbot.utils import normalize_phone

logger = logging.getLogger(__name__)


class _KeyedLock:
    """A lock plus the number of tasks holding or waiting for it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class ConversationDispatcher:
    """Fire-and-forget front door for the router, with ordering and de-duplication."""

    def __init__(self, router: ConversationRouter, seen_window: Optional[int] = None) -> None:
        self._router = router
        # (tenant id, normalized address) → lock held while the router runs
        self._locks: dict[tuple[str, str], _KeyedLock] = {}
        # (tenant key as sent, normalized address) → lock held while resolving the tenant
        self._ingress_locks: dict[tuple[str, str], _KeyedLock] = {}
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._seen_window = seen_window or settings.cache.seen_event_window
        self._tasks: set[asyncio.Task] = set()

    @property
    def router(self) -> ConversationRouter:
        return self._router

    @staticmethod
    def conversation_key(tenant: Tenant, event: InboundEvent) -> tuple[str, str]:
        """Lock key for one customer of one tenant, however the event named the tenant."""
        return tenant.id, normalize_phone(event.customer_address)

    def _already_seen(self, event_id: str) -> bool:
        if event_id in self._seen:
            return True
        self._seen[event_id] = None
        while len(self._seen) > self._seen_window:
            self._seen.popitem(last=False)
        return False

    @staticmethod
    async def _acquire(locks: dict[tuple[str, str], _KeyedLock], key: tuple[str, str]) -> _KeyedLock:
        entry = locks.get(key)
        if entry is None:
            entry = locks[key] = _KeyedLock()
        entry.users += 1
        try:
            await entry.lock.acquire()
        except BaseException:
            entry.users -= 1
            if entry.users == 0:
                del locks[key]
            raise
        return entry

    @staticmethod
    def _release(
        locks: dict[tuple[str, str], _KeyedLock], key: tuple[str, str], entry: _KeyedLock
    ) -> None:
        entry.lock.release()
        entry.users -= 1
        if entry.users == 0:
            del locks[key]

    async def _enter(self, event: InboundEvent) -> tuple[Tenant, tuple[str, str], _KeyedLock]:
        """Resolve the tenant, then queue on the conversation lock.

        The ingress lock is held until the conversation lock is ours, so events
        sent the same way keep their arrival order even when tenant lookup
        has to wait on the store.
        """
        ingress_key = (event.tenant_key, normalize_phone(event.customer_address))
        ingress = await self._acquire(self._ingress_locks, ingress_key)
        try:
            tenant = await self._router.resolve_tenant(event)
            key = self.conversation_key(tenant, event)
            entry = await self._acquire(self._locks, key)
        finally:
            self._release(self._ingress_locks, ingress_key, ingress)
        return tenant, key, entry

    def submit(self, event: InboundEvent) -> Optional[asyncio.Task]:
        """Schedule *event* for processing. Returns None for a redelivered event id."""
        if self._already_seen(event.event_id):
            logger.info("Duplicate event %s ignored", event.event_id)
            return None
        task = asyncio.get_running_loop().create_task(self.process(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def process(self, event: InboundEvent) -> Optional[TurnResult]:
        """Run one event under its conversation lock.

        Data-integrity failures drop the event with a warning. Anything else
        is unexpected: it is logged with a traceback, the event id is
        forgotten so a redelivery is processed, and the error is re-raised
        on the task.
        """
        key: Optional[tuple[str, str]] = None
        entry: Optional[_KeyedLock] = None
        try:
            tenant, key, entry = await self._enter(event)
            set_conversation_id(f"{key[0]}/{key[1]}")
            return await self._router.handle(event, tenant)
        except DataIntegrityError as exc:
            logger.warning("Dropping event %s: %s", event.event_id, exc)
            return None
        except Exception:
            logger.exception("Unhandled error processing event %s", event.event_id)
            self._seen.pop(event.event_id, None)
            raise
        finally:
            if entry is not None and key is not None:
                self._release(self._locks, key, entry)

    async def drain(self) -> None:
        """Wait until every submitted event has finished processing."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def active_locks(self) -> int:
        return len(self._locks)
