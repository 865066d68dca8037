"""Tests for shared utility functions."""

import logging

from bookbot.logging_context import (
    LOG_FORMAT,
    ConversationIdFilter,
    get_conversation_id,
    install_conversation_filter,
    set_conversation_id,
)
from bookbot.utils import normalize_phone, truncate


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("07700 900 123") == "07700900123"

    def test_strips_dashes(self):
        assert normalize_phone("07700-900-123") == "07700900123"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+44 7700 900 123") == "+447700900123"

    def test_strips_whitespace(self):
        assert normalize_phone("  07700900123  ") == "07700900123"

    def test_mixed_separators(self):
        assert normalize_phone("+44 (7700) 900-123") == "+447700900123"


class TestTruncate:
    def test_short_value_unchanged(self):
        assert truncate("Plumber", 24) == "Plumber"

    def test_exact_limit_unchanged(self):
        assert truncate("x" * 24, 24) == "x" * 24

    def test_long_value_clipped_with_ellipsis(self):
        result = truncate("A very long list row title indeed", 24)
        assert len(result) == 24
        assert result.endswith("…")


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.lines: list[str] = []
        self.setFormatter(logging.Formatter(LOG_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))


class TestConversationLogging:
    def test_context_value_roundtrip(self):
        set_conversation_id("conv-abc123")
        assert get_conversation_id() == "conv-abc123"

    def test_any_module_logger_gets_the_stamp(self):
        handler = ListHandler()
        install_conversation_filter([handler])
        logger = logging.getLogger("bookbot.tools.quotes.test")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            set_conversation_id("conv-xyz789")
            logger.info("Quote fallback used")
        finally:
            logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)

        assert "[conv-xyz789] INFO: Quote fallback used" in handler.lines[0]

    def test_explicit_value_not_overwritten(self):
        record = logging.LogRecord("bookbot", logging.INFO, __file__, 1, "msg", None, None)
        record.conversation_id = "conv-explicit"
        set_conversation_id("conv-other")
        ConversationIdFilter().filter(record)
        assert record.conversation_id == "conv-explicit"

    def test_install_is_idempotent(self):
        handler = ListHandler()
        install_conversation_filter([handler])
        install_conversation_filter([handler])
        assert len(handler.filters) == 1

    def test_default_targets_root_handlers(self):
        handler = ListHandler()
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            install_conversation_filter()
        finally:
            root.removeHandler(handler)
        assert any(isinstance(f, ConversationIdFilter) for f in handler.filters)
