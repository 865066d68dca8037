"""Read-through tenant cache with a secondary channel-id index.

Every inbound message needs its tenant's configuration (credentials,
business hours, owner contact). This cache keeps resolved tenants for a
short TTL so the store is not hit on every message.

Lifecycle
─────────
• Built once at process start and injected into the router.
• Entries expire ``ttl_seconds`` after they were fetched; the next lookup
  re-reads the store and repopulates both the entry and the channel index.
• ``invalidate(tenant_id)`` drops the entry and its channel pointer, for use
  after a tenant's settings change.
• ``threading.Lock`` guards the two dicts. Two concurrent misses may both
  fetch from the store; the last write wins, which is fine within a TTL.

Usage
─────
>>> cache = TenantResolverCache(store, ttl_seconds=300)
>>> tenant = await cache.get_by_channel_id("1234567890")
>>> cache.invalidate(tenant.id)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from bookbot.config import settings
from bookbot.schemas.tenant_schema import Tenant
from bookbot.services.interfaces import Store

logger = logging.getLogger(__name__)


class TenantResolverCache:
    """TTL cache keyed by tenant id, with channel id → tenant id lookups."""

    def __init__(
        self,
        store: Store,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.cache.tenant_ttl_sec
        self._clock = clock
        # tenant id → (tenant, expires_at)
        self._by_id: dict[str, tuple[Tenant, float]] = {}
        # channel id → tenant id
        self._channel_index: dict[str, str] = {}
        self._lock = threading.Lock()

    def _remember(self, tenant: Tenant) -> None:
        with self._lock:
            previous = self._by_id.get(tenant.id)
            if previous and previous[0].whatsapp_phone_number_id != tenant.whatsapp_phone_number_id:
                self._channel_index.pop(previous[0].whatsapp_phone_number_id, None)
            self._by_id[tenant.id] = (tenant, self._clock() + self._ttl)
            self._channel_index[tenant.whatsapp_phone_number_id] = tenant.id

    def _fresh(self, tenant_id: str) -> Tenant | None:
        with self._lock:
            entry = self._by_id.get(tenant_id)
        if entry and entry[1] > self._clock():
            return entry[0]
        return None

    async def get_by_id(self, tenant_id: str) -> Tenant | None:
        """Return the tenant, reading through to the store on miss or expiry."""
        cached = self._fresh(tenant_id)
        if cached is not None:
            return cached

        tenant = await self._store.get_tenant(tenant_id)
        if tenant is None:
            logger.debug("Tenant %s not found in store", tenant_id)
            return None
        self._remember(tenant)
        return tenant

    async def get_by_channel_id(self, channel_id: str) -> Tenant | None:
        """Resolve a tenant from its messaging channel id.

        The secondary index is only a pointer: the lookup always goes through
        ``get_by_id`` so an expired entry is refreshed, not served stale.
        """
        with self._lock:
            tenant_id = self._channel_index.get(channel_id)
        if tenant_id:
            tenant = await self.get_by_id(tenant_id)
            if tenant is not None and tenant.whatsapp_phone_number_id == channel_id:
                return tenant

        tenant = await self._store.get_tenant_by_channel_id(channel_id)
        if tenant is None:
            logger.debug("No tenant for channel %s", channel_id)
            return None
        self._remember(tenant)
        return tenant

    def invalidate(self, tenant_id: str) -> bool:
        """Drop a tenant and its channel pointer. Returns ``True`` if it was cached."""
        with self._lock:
            entry = self._by_id.pop(tenant_id, None)
            if entry is None:
                return False
            channel_id = entry[0].whatsapp_phone_number_id
            if self._channel_index.get(channel_id) == tenant_id:
                del self._channel_index[channel_id]
        logger.info("Tenant cache invalidated: %s", tenant_id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._by_id.clear()
            self._channel_index.clear()

    @property
    def entry_count(self) -> int:
        return len(self._by_id)

    def has_channel(self, channel_id: str) -> bool:
        """Check the secondary index without touching the store."""
        return channel_id in self._channel_index
