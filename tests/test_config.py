"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from bookbot.config import (
    AppConfig,
    BusinessConfig,
    CacheConfig,
    ModelConfig,
    TimeoutConfig,
    _safe_float,
    _safe_int,
    _validate_config,
    require_credentials,
)
from bookbot.errors import ConfigurationError


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_invalid_temperature_too_high(self):
        config = replace(AppConfig(), model=replace(ModelConfig(), llm_temperature=3.0))
        with pytest.raises(ValueError, match="LLM_TEMPERATURE"):
            _validate_config(config)

    def test_invalid_temperature_negative(self):
        config = replace(AppConfig(), model=replace(ModelConfig(), llm_temperature=-0.5))
        with pytest.raises(ValueError, match="LLM_TEMPERATURE"):
            _validate_config(config)

    def test_zero_timeout_rejected(self):
        config = replace(AppConfig(), timeouts=replace(TimeoutConfig(), calendar_timeout_sec=0))
        with pytest.raises(ValueError, match="CALENDAR_TIMEOUT"):
            _validate_config(config)

    def test_dedup_window_must_be_positive(self):
        config = replace(AppConfig(), cache=replace(CacheConfig(), seen_event_window=0))
        with pytest.raises(ValueError, match="SEEN_EVENT_WINDOW"):
            _validate_config(config)

    def test_inverted_default_quote_rejected(self):
        business = replace(BusinessConfig(), default_quote_min=300, default_quote_max=200)
        with pytest.raises(ValueError, match="DEFAULT_QUOTE_MIN"):
            _validate_config(replace(AppConfig(), business=business))

    def test_unknown_timezone_rejected(self):
        business = replace(BusinessConfig(), default_timezone="Mars/Olympus_Mons")
        with pytest.raises(ValueError, match="DEFAULT_TIMEZONE"):
            _validate_config(replace(AppConfig(), business=business))

    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_int_bad_value(self, monkeypatch):
        monkeypatch.setenv("BOOKBOT_TEST_INT", "ten")
        with pytest.raises(ValueError, match="BOOKBOT_TEST_INT"):
            _safe_int("BOOKBOT_TEST_INT", "1")


class TestRequireCredentials:
    def test_missing_openai_key(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            require_credentials(replace(AppConfig(), openai_api_key=""))

    def test_placeholder_key_counts_as_missing(self):
        with pytest.raises(ConfigurationError):
            require_credentials(replace(AppConfig(), openai_api_key="your_openai_key"))

    def test_present_key_passes(self):
        require_credentials(replace(AppConfig(), openai_api_key="sk-test"))


class TestEntryPoint:
    def test_check_fails_without_key(self, monkeypatch):
        import main

        monkeypatch.setattr(main, "settings", replace(main.settings, openai_api_key=""))
        assert main._run_check() == 1

    def test_live_dispatcher_refuses_to_start_without_key(self, monkeypatch, store, calendar):
        import main

        monkeypatch.setattr(main, "settings", replace(main.settings, openai_api_key=""))
        with pytest.raises(ConfigurationError):
            main.build_live_dispatcher(store, calendar)

    def test_live_dispatcher_wired_with_key(self, monkeypatch, store, calendar):
        import main
        from bookbot.conversation.dispatcher import ConversationDispatcher

        monkeypatch.setattr(main, "settings", replace(main.settings, openai_api_key="sk-test"))
        assert isinstance(main.build_live_dispatcher(store, calendar), ConversationDispatcher)

    def test_live_dispatcher_defaults_to_google_calendar(self, monkeypatch, store):
        import main
        from bookbot.services.google_calendar import GoogleCalendarProvider

        monkeypatch.setattr(main, "settings", replace(main.settings, openai_api_key="sk-test"))
        dispatcher = main.build_live_dispatcher(store)
        assert isinstance(dispatcher.router._calendar, GoogleCalendarProvider)
