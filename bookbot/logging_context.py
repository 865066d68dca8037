"""Conversation correlation for log records.

The id of the conversation being handled lives in a ``ContextVar``, so each
dispatcher task carries its own. A filter installed on the root handlers
copies it onto every record, whichever module logged it, and ``LOG_FORMAT``
prints it:

    2025-03-17 09:00:00 [bookbot.conversation.state_machine] [conv-1a2b3c] INFO: Job j-42 booked

Usage:
    from bookbot.logging_context import install_conversation_filter, set_conversation_id

    install_conversation_filter()          # once, after logging is configured
    set_conversation_id("conv-1a2b3c")     # per event
"""

import logging
from contextvars import ContextVar
from typing import Iterable, Optional

NO_CONVERSATION = "-"

LOG_FORMAT = "%(asctime)s [%(name)s] [%(conversation_id)s] %(levelname)s: %(message)s"

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default=NO_CONVERSATION)


def set_conversation_id(conversation_id: str) -> None:
    _conversation_id.set(conversation_id)


def get_conversation_id() -> str:
    return _conversation_id.get()


class ConversationIdFilter(logging.Filter):
    """Stamps ``conversation_id`` on records that do not already carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "conversation_id"):
            record.conversation_id = _conversation_id.get()  # type: ignore[attr-defined]
        return True


def install_conversation_filter(handlers: Optional[Iterable[logging.Handler]] = None) -> None:
    """Attach the filter to *handlers*, by default every handler on the root logger.

    Filtering at the handler means records propagated from any module get
    the attribute, so plain ``logging.getLogger(__name__)`` loggers work
    with ``LOG_FORMAT``. Installing twice is harmless.
    """
    targets = list(handlers) if handlers is not None else logging.getLogger().handlers
    for handler in targets:
        if not any(isinstance(f, ConversationIdFilter) for f in handler.filters):
            handler.addFilter(ConversationIdFilter())
