from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models import GeospatialResultsState, GeospatialServiceState, ProjectFormData
from ..normalize import (
    LocationParseResult,
    normalize_contact,
    normalize_number,
    normalize_string,
)
from .completeness import has_meaningful_geospatial_results

_STRING_FIELDS = (
    "description",
    "sector",
    "lead_agency",
    "participating_agencies",
    "sponsor",
    "funding",
    "location_text",
)


def sanitize_geospatial_service(service: GeospatialServiceState) -> dict[str, Any]:
    sanitized: dict[str, Any] = {"status": service.status}
    if service.summary is not None:
        sanitized["summary"] = service.summary
    if isinstance(service.error, str) and service.error:
        sanitized["error"] = service.error
    if isinstance(service.meta, Mapping) and service.meta:
        sanitized["meta"] = dict(service.meta)
    return sanitized


def build_other_payload(
    form_data: ProjectFormData,
    geospatial_results: GeospatialResultsState,
    location_result: LocationParseResult,
) -> dict[str, Any] | None:
    other: dict[str, Any] = {}

    notes = normalize_string(form_data.other)
    if notes:
        other["notes"] = notes

    if has_meaningful_geospatial_results(geospatial_results):
        geospatial: dict[str, Any] = {}
        last_run_at = normalize_string(geospatial_results.last_run_at)
        if last_run_at:
            geospatial["lastRunAt"] = last_run_at
        if geospatial_results.messages:
            geospatial["messages"] = list(geospatial_results.messages)
        geospatial["nepassist"] = sanitize_geospatial_service(geospatial_results.nepassist)
        geospatial["ipac"] = sanitize_geospatial_service(geospatial_results.ipac)
        other["geospatial"] = geospatial

    if location_result.raw:
        other["invalidLocationObject"] = location_result.raw

    return other or None


def build_project_record(
    form_data: ProjectFormData,
    geospatial_results: GeospatialResultsState,
    *,
    numeric_id: int | None,
    normalized_title: str | None,
    location_result: LocationParseResult,
) -> dict[str, Any]:
    """
    Assemble the canonical project snapshot from the intake form.

    Normalized-empty columns are sent as `None`; the id is left out entirely until one is known.
    """
    record: dict[str, Any] = {}
    if numeric_id is not None:
        record["id"] = numeric_id
    record["title"] = normalized_title
    for field in _STRING_FIELDS:
        record[field] = normalize_string(getattr(form_data, field))
    record["location_lat"] = normalize_number(form_data.location_lat)
    record["location_lon"] = normalize_number(form_data.location_lon)
    record["location_object"] = location_result.value
    record["sponsor_contact"] = normalize_contact(form_data.sponsor_contact)
    record["other"] = build_other_payload(form_data, geospatial_results, location_result)
    return record
