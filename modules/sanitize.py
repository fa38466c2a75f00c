"""User input cleaning for wizard form posts."""

from __future__ import annotations

import math
from typing import Any, Optional

import bleach


MAX_TEXT_LENGTH = 255
MAX_ADDRESS_LINE_LENGTH = 35


def sanitize_text(text: Any, max_length: Optional[int] = MAX_TEXT_LENGTH) -> str:
    """Strip markup and surrounding whitespace, then cap the length."""
    if text is None or text == "":
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def to_float(value: Any, default: float = 0.0) -> float:
    """Parse a number from form/JSON input; NaN and junk give the default."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(result) or math.isinf(result) else result


def to_int(value: Any, default: int = 0) -> int:
    return int(to_float(value, default))


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "on", "yes")
