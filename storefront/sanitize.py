"""
Free-text scrubbing for customer-supplied fields.
"""

import re
from typing import Any

MAX_TEXT_LENGTH = 1000

_DANGEROUS_CHARS = re.compile(r"[<>\"'%;()&+${}]")
_SCRIPT_MARKERS = re.compile(r"javascript:|data:|vbscript:|onload|onclick", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def sanitize_text(value: Any, max_length: int = MAX_TEXT_LENGTH) -> str | None:
    """Strip markup characters and script markers; None for non-strings."""
    if not isinstance(value, str):
        return None
    value = _DANGEROUS_CHARS.sub("", value)
    value = _SCRIPT_MARKERS.sub("", value)
    return value.strip()[: min(max_length, MAX_TEXT_LENGTH)]


def is_valid_email(value: str | None) -> bool:
    return bool(value and EMAIL_PATTERN.match(value))
