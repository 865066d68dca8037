"""
Centralized configuration with environment variable overrides.

Deployment-wide defaults, timeouts, and model settings live here.
Per-business values (hours, credentials, owner contact) belong to the
Tenant record, not to this module.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from bookbot.errors import ConfigurationError
from bookbot.logging_context import LOG_FORMAT, install_conversation_filter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Defaults applied to tenants that don't override them."""

    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "Europe/London")
    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "£")
    default_quote_min: int = _safe_int("DEFAULT_QUOTE_MIN", "80")
    default_quote_max: int = _safe_int("DEFAULT_QUOTE_MAX", "200")


@dataclass(frozen=True)
class ModelConfig:
    """Completion service settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    max_tokens: int = _safe_int("LLM_MAX_TOKENS", "1024")


@dataclass(frozen=True)
class TimeoutConfig:
    """Upper bounds for calls to third-party services."""

    ai_timeout_sec: float = _safe_float("AI_TIMEOUT", "20.0")
    calendar_timeout_sec: float = _safe_float("CALENDAR_TIMEOUT", "10.0")
    send_timeout_sec: float = _safe_float("SEND_TIMEOUT", "15.0")


@dataclass(frozen=True)
class CacheConfig:
    """Tenant cache lifetime and inbound de-duplication window."""

    tenant_ttl_sec: float = _safe_float("TENANT_CACHE_TTL", "300")
    seen_event_window: int = _safe_int("SEEN_EVENT_WINDOW", "1000")


@dataclass(frozen=True)
class WhatsAppConfig:
    """WhatsApp Cloud API endpoint settings."""

    graph_base_url: str = os.getenv("WHATSAPP_GRAPH_URL", "https://graph.facebook.com")
    api_version: str = os.getenv("WHATSAPP_API_VERSION", "v21.0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    whatsapp: WhatsAppConfig = field(default_factory=WhatsAppConfig)
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "booking-assistant")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.max_tokens < 1:
        raise ValueError(f"LLM_MAX_TOKENS must be >= 1, got {config.model.max_tokens}")

    for name, value in [
        ("AI_TIMEOUT", config.timeouts.ai_timeout_sec),
        ("CALENDAR_TIMEOUT", config.timeouts.calendar_timeout_sec),
        ("SEND_TIMEOUT", config.timeouts.send_timeout_sec),
        ("TENANT_CACHE_TTL", config.cache.tenant_ttl_sec),
    ]:
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")

    if config.cache.seen_event_window < 1:
        raise ValueError(
            f"SEEN_EVENT_WINDOW must be >= 1, got {config.cache.seen_event_window}"
        )

    biz = config.business
    if biz.default_quote_min < 0 or biz.default_quote_min > biz.default_quote_max:
        raise ValueError(
            "DEFAULT_QUOTE_MIN/DEFAULT_QUOTE_MAX must satisfy 0 <= min <= max, "
            f"got {biz.default_quote_min}/{biz.default_quote_max}"
        )

    try:
        ZoneInfo(biz.default_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown DEFAULT_TIMEZONE: {biz.default_timezone!r}") from None


def require_credentials(config: AppConfig) -> None:
    """Fail fast when secrets needed by live mode are missing.

    Raises:
        ConfigurationError: If any required credential is unset.
    """
    missing = []
    if not config.openai_api_key or config.openai_api_key.startswith("your_"):
        missing.append("OPENAI_API_KEY")
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}. Set it in the environment or .env."
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_conversation_filter()
    logger.info("Configuration loaded for '%s'", config.agent_name)
    return config


# Singleton instance
settings = load_config()
