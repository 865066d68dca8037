"""Shared utilities used across the booking assistant."""

import re


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("07700 900 123")
        '07700900123'
        >>> normalize_phone("+44 (7700) 900-123")
        '+447700900123'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def truncate(value: str, limit: int) -> str:
    """Clip *value* to *limit* characters, marking the cut with an ellipsis."""
    if len(value) <= limit:
        return value
    return value[: max(limit - 1, 0)] + "…"
