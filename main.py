"""
Booking assistant entry point.

Usage:
    Console mode:      python main.py console [--scenario booking]
    Credential check:  python main.py check

Live deployments build the dispatcher with ``build_live_dispatcher`` and feed
it decoded webhook events; the webhook server itself lives outside this
package.
"""

import logging
import sys
from typing import Optional

from bookbot.config import require_credentials, settings
from bookbot.conversation.dispatcher import ConversationDispatcher
from bookbot.conversation.state_machine import ConversationRouter
from bookbot.errors import ConfigurationError
from bookbot.services.interfaces import CalendarProvider, Store
from bookbot.services.tenant_cache import TenantResolverCache

logger = logging.getLogger(__name__)


def build_live_dispatcher(
    store: Store, calendar: Optional[CalendarProvider] = None
) -> ConversationDispatcher:
    """Wire WhatsApp, OpenAI and (by default) Google Calendar around the given store.

    Raises:
        ConfigurationError: If required credentials are missing.
    """
    from bookbot.services.completion import OpenAICompletionService
    from bookbot.services.google_calendar import GoogleCalendarProvider
    from bookbot.services.whatsapp import WhatsAppMessenger

    require_credentials(settings)
    router = ConversationRouter(
        store,
        TenantResolverCache(store),
        WhatsAppMessenger(),
        OpenAICompletionService(api_key=settings.openai_api_key),
        calendar or GoogleCalendarProvider(),
    )
    logger.info("Live dispatcher ready for '%s' (model %s)", settings.agent_name, settings.model.llm_model)
    return ConversationDispatcher(router)


def _run_check() -> int:
    """Validate live-mode configuration without starting anything."""
    try:
        require_credentials(settings)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1
    logger.info("Configuration OK")
    return 0


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import main as console_main

    sys.argv = [sys.argv[0], *sys.argv[2:]]
    console_main()


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else "console"
    if mode == "console":
        _run_console_mode()
    elif mode == "check":
        sys.exit(_run_check())
    else:
        print(f"Unknown mode: {mode}. Use 'console' or 'check'.", file=sys.stderr)
        sys.exit(2)
