"""Helpers for the number values handled by the query service."""

from __future__ import annotations

import re

_CUSTOM_SEPARATORS = re.compile(r"[,，\s]+")
_DIGITS_ONLY = re.compile(r"^\d+$")
_HAS_DIGIT = re.compile(r"\d")


def contains_digit(value: str) -> bool:
    """Return True when the value contains at least one digit."""
    return _HAS_DIGIT.search(value) is not None


def is_nice_number(value: object) -> bool:
    """Return True when the number contains an ascending run such as "34".

    Example:
        >>> is_nice_number("13800138456")
        True
        >>> is_nice_number("13000000000")
        False
    """
    text = str(value)
    if len(text) < 2:
        return False

    for current, following in zip(text, text[1:]):
        if current.isdigit() and following.isdigit() and int(following) == int(current) + 1:
            return True
    return False


def parse_custom_numbers(raw: str | None) -> list[str]:
    """Split user input on commas (ASCII or full-width) and whitespace.

    Only purely numeric entries are kept.

    Example:
        >>> parse_custom_numbers("8888, 6666，abc 1234")
        ['8888', '6666', '1234']
    """
    if not raw or not isinstance(raw, str) or not raw.strip():
        return []

    return [
        part.strip()
        for part in _CUSTOM_SEPARATORS.split(raw)
        if part.strip() and _DIGITS_ONLY.match(part.strip())
    ]


def format_number(value: int) -> str:
    """Format an integer with thousands separators."""
    return f"{value:,}"


def to_count(value: object, default: int = 0) -> int:
    """Coerce a server-supplied count to int, falling back to default.

    Example:
        >>> to_count("1200"), to_count(None), to_count("n/a")
        (1200, 0, 0)
    """
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
