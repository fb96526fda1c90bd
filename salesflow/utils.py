"""Shared utilities used across the sales flow engine."""

import re
from typing import Optional


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("55 1234 5678")
        '5512345678'
        >>> normalize_phone("+52 (55) 1234-5678")
        '+525512345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def format_number(value: float) -> str:
    """Render a measurement without trailing zeros.

    Examples:
        >>> format_number(4.0)
        '4'
        >>> format_number(4.20)
        '4.2'
    """
    return f"{value:g}"


def dimension_key(a: float, b: float) -> str:
    """Orientation-insensitive key for a width/height pair.

    Examples:
        >>> dimension_key(5, 4)
        '4x5'
        >>> dimension_key(4.20, 100)
        '4.2x100'
    """
    low, high = sorted((float(a), float(b)))
    return f"{format_number(low)}x{format_number(high)}"


def format_price(amount: Optional[float]) -> str:
    """Format a peso amount for customer-facing text.

    Examples:
        >>> format_price(650)
        '$650'
        >>> format_price(5800.5)
        '$5,800.50'
    """
    if amount is None:
        return ""
    if float(amount).is_integer():
        return f"${int(amount):,}"
    return f"${amount:,.2f}"
