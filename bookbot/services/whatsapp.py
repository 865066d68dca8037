"""WhatsApp Cloud API messenger with retry logic and timeout handling.

Messages are posted to ``/<version>/<phone_number_id>/messages`` using the
tenant's own phone number id and access token, so one client serves every
tenant in the deployment.

API docs: https://developers.facebook.com/docs/whatsapp/cloud-api/messages
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx

from bookbot.config import settings
from bookbot.schemas.message_schema import ButtonOption, ListRow
from bookbot.schemas.tenant_schema import Tenant

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

LIST_SECTION_TITLE = "Options"


class MessengerError(Exception):
    """Raised when a WhatsApp API call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class WhatsAppMessenger:
    """Async client for outbound WhatsApp messages.

    Server errors, timeouts, and connection failures are retried with
    exponential backoff. 4xx responses are raised immediately since a
    retry cannot fix a bad token or recipient.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_seconds: float = INITIAL_BACKOFF_SECONDS,
    ):
        self._api_version = api_version or settings.whatsapp.api_version
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.whatsapp.graph_base_url,
            timeout=timeout or settings.timeouts.send_timeout_sec,
            transport=transport,
        )
        self._backoff = backoff_seconds

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Internal helpers ─────────────────────────────────────────────

    async def _post(self, tenant: Tenant, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a message payload with exponential-backoff retries."""
        path = f"/{self._api_version}/{tenant.whatsapp_phone_number_id}/messages"
        headers = {
            "Authorization": f"Bearer {tenant.whatsapp_token}",
            "Content-Type": "application/json",
        }
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.post(path, json=payload, headers=headers)
                if response.status_code >= 500:
                    raise MessengerError(
                        f"Server error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                if response.status_code >= 400:
                    raise MessengerError(
                        f"Client error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                return response.json()

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                logger.warning(
                    "WhatsApp API attempt %d/%d failed (%s)",
                    attempt, MAX_RETRIES, type(exc).__name__,
                )
            except MessengerError as exc:
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "WhatsApp API server error on attempt %d/%d", attempt, MAX_RETRIES,
                    )
                else:
                    raise

            if attempt < MAX_RETRIES:
                await asyncio.sleep(self._backoff * (2 ** (attempt - 1)))

        raise MessengerError(
            f"WhatsApp API request failed after {MAX_RETRIES} retries: {last_error}"
        )

    # ── Public API methods ───────────────────────────────────────────

    async def send_text(self, tenant: Tenant, to: str, body: str) -> None:
        await self._post(
            tenant,
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "text",
                "text": {"body": body},
            },
        )

    async def send_buttons(
        self, tenant: Tenant, to: str, body: str, options: Sequence[ButtonOption]
    ) -> None:
        """Send an interactive reply-button message (max 3 buttons)."""
        await self._post(
            tenant,
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "interactive",
                "interactive": {
                    "type": "button",
                    "body": {"text": body},
                    "action": {
                        "buttons": [
                            {"type": "reply", "reply": {"id": o.id, "title": o.title}}
                            for o in options
                        ]
                    },
                },
            },
        )

    async def send_list(
        self, tenant: Tenant, to: str, body: str, label: str, rows: Sequence[ListRow]
    ) -> None:
        """Send an interactive list message, used for menus with more than 3 options."""
        await self._post(
            tenant,
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "interactive",
                "interactive": {
                    "type": "list",
                    "body": {"text": body},
                    "action": {
                        "button": label,
                        "sections": [
                            {
                                "title": LIST_SECTION_TITLE,
                                "rows": [r.model_dump() for r in rows],
                            }
                        ],
                    },
                },
            },
        )
