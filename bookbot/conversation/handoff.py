"""
Human handoff.

Freezes a conversation in HANDOFF and produces two notices: one telling the
customer a person will reply, one alerting the business owner. Once handed
off, the router drops every further event for that conversation until
someone outside the bot resets it.
"""

import logging
from typing import Optional

from bookbot.prompts.system_prompts import HANDOFF_PHRASE
from bookbot.schemas.conversation_schema import Conversation, HandoffData
from bookbot.schemas.message_schema import TextMessage
from bookbot.schemas.tenant_schema import Tenant

logger = logging.getLogger(__name__)

REASON_CUSTOMER_REQUEST = "Customer requested human agent"
REASON_AI_ESCALATION = "Assistant suggested escalation"


def suggests_handoff(reply: str) -> bool:
    """True if an AI reply contains the escalation sentence (case-insensitive)."""
    return HANDOFF_PHRASE.lower() in reply.lower()


class HandoffController:
    """Moves conversations to HANDOFF and builds the resulting notices."""

    def handoff(
        self,
        tenant: Tenant,
        conversation: Conversation,
        customer_address: str,
        reason: Optional[str] = None,
    ) -> list[TextMessage]:
        """Mark *conversation* handed off and return the customer and owner notices.

        The caller validates the state change and persists the conversation.
        """
        conversation.data = HandoffData(reason=reason)
        conversation.handed_off = True
        logger.info("Conversation %s handed off: %s", conversation.id, reason or "no reason given")

        reason_text = f"\nReason: {reason}" if reason else ""
        return [
            TextMessage(
                to=customer_address,
                body=(
                    "I'm connecting you with a member of our team now. 👤\n\n"
                    "They'll reply to you shortly. Thank you for your patience!"
                ),
            ),
            TextMessage(
                to=tenant.owner_phone,
                body=(
                    "🔔 *Handoff Alert*\n\nA customer needs your attention.\n\n"
                    f"Phone: {customer_address}{reason_text}\n\n"
                    "Reply directly to this number on WhatsApp to respond."
                ),
            ),
        ]
