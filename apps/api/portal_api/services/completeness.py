from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..models import GeospatialResultsState, GeospatialServiceState
from ..normalize import empty_to_none, is_non_empty_container
from .decision_elements import PRE_SCREENING_ELEMENT_TITLES

if TYPE_CHECKING:
    from .decision_payloads import DecisionPayloadRecord

HOUSEKEEPING_KEYS = frozenset({"id", "process_instance"})


@dataclass(frozen=True)
class DecisionPayloadEvaluation:
    total: int
    completed_titles: list[str] = field(default_factory=list)
    is_complete: bool = False


def _status_is_active(status: Any) -> bool:
    return bool(status) and status != "idle"


def is_includable(service: GeospatialServiceState | None) -> bool:
    """
    Whether a geospatial service carries anything worth reporting; idle, empty services are omitted.
    """
    if service is None:
        return False
    if _status_is_active(service.status):
        return True
    summary = service.summary
    if summary is not None:
        if isinstance(summary, (list, tuple, Mapping)):
            if is_non_empty_container(summary):
                return True
        else:
            return True
    if service.raw is not None:
        return True
    if service.error:
        return True
    return isinstance(service.meta, Mapping) and len(service.meta) > 0


def has_meaningful_geospatial_results(results: GeospatialResultsState) -> bool:
    if results.last_run_at:
        return True
    if results.messages:
        return True
    for service in (results.nepassist, results.ipac):
        if _status_is_active(service.status):
            return True
        if empty_to_none(service.summary) is not None:
            return True
        if service.error:
            return True
    return False


def contains_meaningful_value(value: Any, ignored_keys: frozenset[str] = HOUSEKEEPING_KEYS) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, Mapping):
        return any(
            contains_meaningful_value(entry, ignored_keys)
            for key, entry in value.items()
            if key not in ignored_keys
        )
    if isinstance(value, (list, tuple, set, frozenset)):
        return any(contains_meaningful_value(entry, ignored_keys) for entry in value)
    return True


def has_meaningful_data(payload: Any) -> bool:
    if not isinstance(payload, Mapping):
        return False
    return contains_meaningful_value(payload, HOUSEKEEPING_KEYS)


def evaluate_decision_payloads(
    records: Sequence[DecisionPayloadRecord],
    titles: Iterable[str] | None = None,
) -> DecisionPayloadEvaluation:
    """
    Pair records with builder titles in pipeline order and report which carry meaningful data.

    The tested payload is each record's builder output, before any fallback `id`/`title` is synthesized.
    """
    ordered_titles = list(titles if titles is not None else PRE_SCREENING_ELEMENT_TITLES)
    completed: list[str] = []
    for index, title in enumerate(ordered_titles):
        if index >= len(records):
            break
        if has_meaningful_data(records[index].data):
            completed.append(title)
    return DecisionPayloadEvaluation(
        total=len(ordered_titles),
        completed_titles=completed,
        is_complete=len(completed) == len(ordered_titles),
    )
