from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors import ProjectPersistenceError
from ..models import GeospatialResultsState, GeospatialServiceState, PermittingChecklistItem, ProjectFormData
from ..normalize import normalize_number, parse_numeric_id
from ..process_model import load_pre_screening_model
from ..providers.base import RecordStoreProvider
from ..providers.factory import get_record_store_provider
from ..time_utils import DATA_SOURCE_SYSTEM, _pick_latest_timestamp
from .decision_elements import (
    CE_REFERENCES,
    CONDITIONS,
    IPAC,
    NEPA_ASSIST,
    PERMIT_NOTES,
    PROJECT_DETAILS,
    load_decision_elements,
)
from .process_instances import fetch_latest_instance

PROJECT_COLUMNS = (
    "id,title,description,sector,lead_agency,participating_agencies,sponsor,funding,location_text,"
    "location_lat,location_lon,location_object,sponsor_contact,other,last_updated"
)
_PROJECT_STRING_FIELDS = (
    "title",
    "description",
    "sector",
    "lead_agency",
    "participating_agencies",
    "sponsor",
    "funding",
    "location_text",
)
_CONTACT_FIELDS = ("name", "organization", "email", "phone")
_GEOSPATIAL_STATUSES = ("idle", "loading", "success", "error")
_CHECKLIST_SOURCES = ("copilot", "manual", "seed")


@dataclass
class LoadedProjectPortalState:
    form_data: ProjectFormData
    geospatial_results: GeospatialResultsState
    permitting_checklist: list[PermittingChecklistItem] = field(default_factory=list)
    last_updated: str | None = None


def _maybe_string(value: Any) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _stringify_location(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (Mapping, list)) and value:
        return json.dumps(value, ensure_ascii=False)
    return None


def parse_contact_record(value: Any) -> dict[str, str] | None:
    if not isinstance(value, Mapping):
        return None
    contact = {key: value[key] for key in _CONTACT_FIELDS if _maybe_string(value.get(key))}
    return contact or None


def parse_project_other(value: Any) -> dict[str, Any] | None:
    if not value:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return parse_project_other(json.loads(value))
        except ValueError:
            return {"notes": value}
    if not isinstance(value, Mapping):
        return None

    other: dict[str, Any] = {}
    notes = _maybe_string(value.get("notes"))
    if notes:
        other["notes"] = notes
    geospatial = value.get("geospatial")
    if isinstance(geospatial, Mapping):
        restored: dict[str, Any] = {}
        last_run_at = _maybe_string(geospatial.get("lastRunAt"))
        if last_run_at:
            restored["lastRunAt"] = last_run_at
        if isinstance(geospatial.get("messages"), list):
            restored["messages"] = [entry for entry in geospatial["messages"] if isinstance(entry, str)]
        for service in ("nepassist", "ipac"):
            if service in geospatial:
                restored[service] = geospatial[service]
        other["geospatial"] = restored
    invalid_location = _maybe_string(value.get("invalidLocationObject"))
    if invalid_location:
        other["invalidLocationObject"] = invalid_location
    return other or None


def parse_stored_geospatial_service(value: Any) -> dict[str, Any] | None:
    """Fields of a stored service state worth restoring, or None when nothing usable was stored."""
    if not isinstance(value, Mapping):
        return None
    status = value.get("status")
    restored: dict[str, Any] = {"status": status if status in _GEOSPATIAL_STATUSES else "idle"}
    if value.get("summary") is not None:
        restored["summary"] = value["summary"]
    if _maybe_string(value.get("error")):
        restored["error"] = value["error"]
    if isinstance(value.get("meta"), Mapping):
        restored["meta"] = dict(value["meta"])
    if "raw" in value:
        restored["raw"] = value["raw"]
    return restored


def _merge_service(service: GeospatialServiceState, update: Mapping[str, Any]) -> GeospatialServiceState:
    return service.model_copy(update=dict(update))


def apply_project_record_to_state(
    form_data: ProjectFormData,
    geospatial_results: GeospatialResultsState,
    record: Mapping[str, Any],
) -> None:
    for name in _PROJECT_STRING_FIELDS:
        value = _maybe_string(record.get(name))
        if value:
            setattr(form_data, name, value)
    for name in ("location_lat", "location_lon"):
        value = normalize_number(record.get(name))
        if value is not None:
            setattr(form_data, name, value)
    location_object = _stringify_location(record.get("location_object"))
    if location_object:
        form_data.location_object = location_object

    contact = parse_contact_record(record.get("sponsor_contact"))
    if contact:
        existing = form_data.sponsor_contact if isinstance(form_data.sponsor_contact, Mapping) else {}
        form_data.sponsor_contact = {**existing, **contact}

    other = parse_project_other(record.get("other"))
    if not other:
        return
    if other.get("notes"):
        form_data.other = other["notes"]
    if other.get("invalidLocationObject") and not form_data.location_object:
        form_data.location_object = other["invalidLocationObject"]
    geospatial = other.get("geospatial")
    if geospatial:
        if geospatial.get("lastRunAt"):
            geospatial_results.last_run_at = geospatial["lastRunAt"]
        if geospatial.get("messages"):
            geospatial_results.messages = geospatial["messages"]
        stored_nepassist = parse_stored_geospatial_service(geospatial.get("nepassist"))
        if stored_nepassist:
            geospatial_results.nepassist = _merge_service(geospatial_results.nepassist, stored_nepassist)
        stored_ipac = parse_stored_geospatial_service(geospatial.get("ipac"))
        if stored_ipac:
            geospatial_results.ipac = _merge_service(geospatial_results.ipac, stored_ipac)


def parse_checklist_items(value: Any) -> list[PermittingChecklistItem]:
    if not isinstance(value, list):
        return []
    items: list[PermittingChecklistItem] = []
    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        label = entry.get("label").strip() if isinstance(entry.get("label"), str) else ""
        if not label:
            continue
        item = PermittingChecklistItem(label=label, completed=bool(entry.get("completed")))
        if entry.get("source") in _CHECKLIST_SOURCES:
            item.source = entry["source"]
        if _maybe_string(entry.get("notes")):
            item.notes = entry["notes"]
        items.append(item)
    return items


def _join_strings(values: Any) -> str | None:
    if not isinstance(values, list):
        return None
    filtered = [value.strip() for value in values if isinstance(value, str) and value.strip()]
    return "\n".join(filtered) if filtered else None


def _restore_service(
    service: GeospatialServiceState,
    evaluation: Mapping[str, Any],
    prefix: str,
    summary_type: type,
) -> GeospatialServiceState:
    update: dict[str, Any] = {}
    summary_key, raw_key = f"{prefix}_summary", f"{prefix}_raw"
    if isinstance(evaluation.get(summary_key), summary_type):
        update["summary"] = evaluation[summary_key]
    elif summary_key in evaluation and evaluation[summary_key] is None:
        update["summary"] = None
    if raw_key in evaluation:
        update["raw"] = evaluation[raw_key]
    restored = service.model_copy(update=update)
    has_results = isinstance(restored.summary, summary_type) or restored.raw is not None
    if restored.status == "idle" and has_results:
        restored = restored.model_copy(update={"status": "success"})
    return restored


def apply_decision_payload_to_state(
    title: str,
    evaluation: Mapping[str, Any],
    form_data: ProjectFormData,
    geospatial_results: GeospatialResultsState,
    permitting_checklist: list[PermittingChecklistItem],
) -> None:
    if title == PROJECT_DETAILS:
        project = evaluation.get("project")
        if isinstance(project, Mapping):
            apply_project_record_to_state(form_data, geospatial_results, project)
    elif title == NEPA_ASSIST:
        geospatial_results.nepassist = _restore_service(geospatial_results.nepassist, evaluation, "nepa_assist", list)
    elif title == IPAC:
        geospatial_results.ipac = _restore_service(geospatial_results.ipac, evaluation, "ipac", dict)
    elif title == PERMIT_NOTES:
        permits = parse_checklist_items(evaluation.get("permits"))
        if permits:
            permitting_checklist[:] = permits
        if _maybe_string(evaluation.get("notes")):
            form_data.other = evaluation["notes"]
    elif title == CE_REFERENCES:
        candidates = _join_strings(evaluation.get("ce_candidates"))
        if candidates:
            form_data.nepa_categorical_exclusion_code = candidates
    elif title == CONDITIONS:
        conditions = _join_strings(evaluation.get("conditions"))
        if conditions:
            form_data.nepa_conformance_conditions = conditions
        if _maybe_string(evaluation.get("notes")):
            form_data.nepa_extraordinary_circumstances = evaluation["notes"]


def determine_decision_element_title(
    decision_element_id: Any,
    evaluation: Mapping[str, Any],
    titles_by_id: Mapping[int, str],
) -> str | None:
    element_id = parse_numeric_id(decision_element_id)
    if element_id is not None and element_id in titles_by_id:
        return titles_by_id[element_id]
    # Payloads stored without a catalog entry carry the builder title as their id/title.
    return _maybe_string(evaluation.get("id")) or _maybe_string(evaluation.get("title"))


def load_project_portal_state(
    project_id: int,
    *,
    store: RecordStoreProvider | None = None,
) -> LoadedProjectPortalState:
    """
    Rebuild the intake form, geospatial results and permitting checklist from stored records.

    Project columns are applied first, then each decision payload of the current pre-screening instance.
    """
    store = store or get_record_store_provider()
    model = load_pre_screening_model()

    rows = store.select(
        "project",
        columns=PROJECT_COLUMNS,
        filters={"id": f"eq.{project_id}", "data_source_system": f"eq.{DATA_SOURCE_SYSTEM}"},
        limit=1,
        action="Failed to load project",
    )
    if not rows:
        raise ProjectPersistenceError(f"Project {project_id} was not found.", kind="not_found")
    project_row = rows[0]

    form_data = ProjectFormData(id=str(project_id))
    geospatial_results = GeospatialResultsState()
    permitting_checklist: list[PermittingChecklistItem] = []
    apply_project_record_to_state(form_data, geospatial_results, project_row)
    last_updated = _maybe_string(project_row.get("last_updated"))

    process_row = fetch_latest_instance(store, project_id, process_model=model)
    process_id = parse_numeric_id(process_row.get("id")) if process_row else None
    if process_row and process_id is not None:
        last_updated = _pick_latest_timestamp(last_updated, process_row.get("last_updated"))
        titles_by_id = {element.id: element.title for element in load_decision_elements(store, model).values()}
        payload_rows = store.select(
            "process_decision_payload",
            columns="decision_element,evaluation_data,last_updated",
            filters={"process_instance": f"eq.{process_id}"},
            action="Failed to load decision payloads",
        )
        for payload in payload_rows:
            last_updated = _pick_latest_timestamp(last_updated, payload.get("last_updated"))
            evaluation = payload.get("evaluation_data")
            if not isinstance(evaluation, Mapping):
                continue
            title = determine_decision_element_title(payload.get("decision_element"), evaluation, titles_by_id)
            if not title:
                continue
            apply_decision_payload_to_state(
                title, evaluation, form_data, geospatial_results, permitting_checklist
            )

    if form_data.sponsor_contact is None:
        form_data.sponsor_contact = {}
    if geospatial_results.messages is None:
        geospatial_results.messages = []

    return LoadedProjectPortalState(
        form_data=form_data,
        geospatial_results=geospatial_results,
        permitting_checklist=permitting_checklist,
        last_updated=last_updated,
    )
