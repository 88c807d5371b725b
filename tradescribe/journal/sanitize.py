"""Field sanitizer: loose input → canonical trade field values. Pure functions."""

from __future__ import annotations

import math
from typing import Any, Optional

UNKNOWN_TICKER = "UNKNOWN"

_TRADE_TYPES = ("long", "short", "call", "put")


def sanitize_ticker(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        return UNKNOWN_TICKER
    return value.strip().upper()


def sanitize_trade_type(value: Any) -> str:
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in _TRADE_TYPES:
            return lower
    return "long"


def sanitize_status(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() == "closed":
        return "closed"
    return "open"


def coerce_number(value: Any) -> Optional[float]:
    """Numeric-like → float; anything else → None. Never raises."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
