"""Option validators shared by commands."""

from __future__ import annotations

import re
from typing import Optional

from .config import SPO_URL_PATTERN

GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def is_valid_guid(value: Optional[str]) -> bool:
    return bool(value) and GUID_PATTERN.fullmatch(value) is not None


def is_valid_sharepoint_url(value: Optional[str]) -> bool:
    return bool(value) and SPO_URL_PATTERN.fullmatch(value) is not None


def parse_int(value: str) -> Optional[int]:
    """Parse the leading integer of a string ("3.5" -> 3), None if there is none."""
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


def split_list(value: str) -> list[str]:
    """Split a comma-separated option into trimmed items."""
    return [item.strip() for item in value.split(",")]
