"""
Price estimates from the completion service.

The model is asked for a bare JSON object ``{"min": .., "max": ..}``. Any
reply that doesn't parse into a valid ``QuoteRange``, and any error or
timeout from the service, yields the configured default range instead.
"""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from bookbot.config import settings
from bookbot.prompts.system_prompts import QUOTE_SYSTEM_PROMPT, build_quote_request
from bookbot.schemas.conversation_schema import ChatTurn
from bookbot.schemas.job_schema import QuoteRange
from bookbot.services.interfaces import CompletionService

logger = logging.getLogger(__name__)


def default_quote() -> QuoteRange:
    return QuoteRange(
        min=settings.business.default_quote_min,
        max=settings.business.default_quote_max,
    )


def parse_quote(reply: str) -> Optional[QuoteRange]:
    """Parse a model reply into a quote. Returns None if it isn't valid JSON of the right shape."""
    try:
        return QuoteRange.model_validate_json(reply.strip())
    except ValidationError:
        return None


async def generate_quote(
    completion: CompletionService,
    service_type: str,
    description: str,
    urgent: bool,
    timeout: Optional[float] = None,
) -> QuoteRange:
    """Ask the completion service for a price range, falling back to the default."""
    request = build_quote_request(service_type, description, urgent)
    limit = timeout if timeout is not None else settings.timeouts.ai_timeout_sec
    try:
        reply = await asyncio.wait_for(
            completion.chat(QUOTE_SYSTEM_PROMPT, [ChatTurn(role="user", content=request)]),
            timeout=limit,
        )
    except asyncio.TimeoutError:
        logger.warning("Quote request timed out after %.1fs, using default range", limit)
        return default_quote()
    except Exception as exc:
        logger.warning("Quote request failed (%s), using default range", exc)
        return default_quote()

    quote = parse_quote(reply)
    if quote is None:
        logger.warning("Unparseable quote reply %r, using default range", reply[:80])
        return default_quote()
    return quote
