from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

DATA_SOURCE_SYSTEM = "project-portal"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _utc_now_iso() -> str:
    return _utc_now().isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class WriteContext:
    """Source-system tag and wall-clock timestamp stamped onto every write of one call."""

    source_system: str
    timestamp: str

    @classmethod
    def now(cls, source_system: str = DATA_SOURCE_SYSTEM) -> WriteContext:
        return cls(source_system=source_system, timestamp=_utc_now_iso())

    def stamp(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {
            **payload,
            "data_source_system": self.source_system,
            "last_updated": self.timestamp,
            "retrieved_timestamp": self.timestamp,
        }


def _pick_latest_timestamp(current: str | None, candidate: Any) -> str | None:
    candidate = candidate if isinstance(candidate, str) else None
    current_time = _parse_timestamp(current)
    candidate_time = _parse_timestamp(candidate)
    if current_time and candidate_time:
        return candidate if candidate_time >= current_time else current
    if candidate_time:
        return candidate
    if current_time:
        return current
    return candidate or current


def _newest_first_key(value: Any) -> tuple[int, float]:
    """Sort key placing parsed timestamps newest first and missing or unparsable ones last."""
    parsed = _parse_timestamp(value)
    if parsed is None:
        return (1, 0.0)
    return (0, -parsed.timestamp())
