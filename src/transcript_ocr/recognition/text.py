"""Cleanup and numeric parsing of recognized cell text."""

import re
from typing import Optional

_WHITESPACE_RUN = re.compile(r"\s+")
_NON_NUMERIC = re.compile(r"[^0-9.]")
_LEADING_FLOAT = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def cleanup_text(value: str) -> str:
    """Drop control characters, collapse whitespace runs and trim."""
    without_control = "".join(ch for ch in value if ord(ch) >= 32)
    return _WHITESPACE_RUN.sub(" ", without_control).strip()


def parse_number(value: str) -> Optional[float]:
    """Parse a numeric cell such as ``"87.5 分"``.

    Everything but ASCII digits and the decimal point is removed, then the
    longest leading float is read. Returns None (never 0) when nothing
    numeric is left.

    >>> parse_number("87.5 分")
    87.5
    >>> parse_number("—") is None
    True
    """
    sanitized = _NON_NUMERIC.sub("", value)
    if not sanitized:
        return None
    match = _LEADING_FLOAT.match(sanitized)
    if match is None:
        return None
    return float(match.group(0))
