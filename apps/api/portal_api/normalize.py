from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

_LIST_DELIMITERS = re.compile(r"[\r\n;,]+")
_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")
_CONTACT_FIELDS = ("name", "organization", "email", "phone")


def normalize_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def normalize_number(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def is_finite_number(value: Any) -> bool:
    return normalize_number(value) is not None


def as_mapping(value: Any) -> dict[str, Any] | None:
    """Return a plain dict for mappings and pydantic models, else None."""
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_unset=True)
    if isinstance(value, Mapping):
        return dict(value)
    return None


def normalize_contact(contact: Any) -> dict[str, str] | None:
    raw = as_mapping(contact)
    if raw is None:
        return None
    normalized: dict[str, str] = {}
    for field in _CONTACT_FIELDS:
        value = normalize_string(raw.get(field))
        if value:
            normalized[field] = value
    return normalized or None


def parse_delimited_list(value: Any) -> list[str]:
    normalized = normalize_string(value)
    if not normalized:
        return []
    return [entry.strip() for entry in _LIST_DELIMITERS.split(normalized) if entry.strip()]


def parse_numeric_id(value: Any) -> int | None:
    """
    Parse an identifier the way the portal stores them: finite integers, or strings with a leading integer.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    if isinstance(value, str) and value.strip():
        match = _LEADING_INTEGER.match(value)
        return int(match.group(1)) if match else None
    return None


@dataclass(frozen=True)
class LocationParseResult:
    value: Any = None
    raw: str | None = None


def parse_location_object(value: Any) -> LocationParseResult:
    normalized = normalize_string(value)
    if not normalized:
        return LocationParseResult()
    try:
        return LocationParseResult(value=json.loads(normalized))
    except ValueError:
        # Unparsable input is kept verbatim so it can be stored under `other.invalidLocationObject`.
        return LocationParseResult(raw=value)


def is_non_empty_container(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, Mapping):
        return len(value) > 0
    return False


def empty_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return normalize_string(value)
    if isinstance(value, (list, tuple, Mapping)):
        return value if len(value) > 0 else None
    return value
