from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any

from ..models import GeospatialResultsState, GeospatialServiceState, PermittingChecklistItem, ProjectFormData
from ..normalize import empty_to_none, normalize_string, parse_delimited_list
from ..time_utils import WriteContext, _parse_timestamp
from .completeness import is_includable
from .decision_elements import (
    CE_REFERENCES,
    CONDITIONS,
    IPAC,
    NEPA_ASSIST,
    PERMIT_NOTES,
    PROJECT_DETAILS,
    RESOURCE_NOTES,
    DecisionElement,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionPayloadContext:
    element_id: int | None
    project_record: dict[str, Any]
    geospatial_results: GeospatialResultsState
    permitting_checklist: Sequence[PermittingChecklistItem]
    form_data: ProjectFormData


@dataclass(frozen=True)
class DecisionPayloadRecord:
    process_instance: int
    title: str
    decision_element: int | None
    data: dict[str, Any]
    evaluation_data: dict[str, Any] = field(default_factory=dict)

    def to_row(self, write_context: WriteContext) -> dict[str, Any]:
        row: dict[str, Any] = {"process_instance": self.process_instance}
        if self.decision_element is not None:
            row["decision_element"] = self.decision_element
        row = write_context.stamp(row)
        row["evaluation_data"] = self.evaluation_data
        return row


def _with_element_id(element_id: int | None, payload: dict[str, Any]) -> dict[str, Any]:
    if element_id is None:
        return payload
    return {"id": element_id, **payload}


def build_project_details_payload(context: DecisionPayloadContext) -> dict[str, Any]:
    project = context.project_record if context.project_record else None
    return _with_element_id(context.element_id, {"project": project})


def _service_payload(service: GeospatialServiceState | None, prefix: str) -> dict[str, Any]:
    raw = empty_to_none(service.raw) if service else None
    summary = empty_to_none(service.summary) if service else None
    return {f"{prefix}_raw": raw, f"{prefix}_summary": summary}


def build_nepa_assist_payload(context: DecisionPayloadContext) -> dict[str, Any]:
    return _with_element_id(
        context.element_id, _service_payload(context.geospatial_results.nepassist, "nepa_assist")
    )


def build_ipac_payload(context: DecisionPayloadContext) -> dict[str, Any]:
    return _with_element_id(context.element_id, _service_payload(context.geospatial_results.ipac, "ipac"))


def _checklist_entry(item: PermittingChecklistItem) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    label = normalize_string(item.label)
    if label is not None:
        entry["label"] = label
    entry["completed"] = bool(item.completed)
    entry["notes"] = normalize_string(item.notes)
    if item.source is not None:
        entry["source"] = item.source
    return entry


def build_permit_notes_payload(context: DecisionPayloadContext) -> dict[str, Any]:
    permits = [_checklist_entry(item) for item in context.permitting_checklist]
    # Entries with neither a label nor a note are empty rows left over from the form.
    permits = [entry for entry in permits if entry.get("label") or entry.get("notes")]
    return _with_element_id(
        context.element_id,
        {
            "permits": permits or None,
            "notes": normalize_string(context.form_data.other),
        },
    )


def build_categorical_rationale(form_data: ProjectFormData) -> str | None:
    sections: list[str] = []
    extraordinary = normalize_string(form_data.nepa_extraordinary_circumstances)
    if extraordinary:
        sections.append(extraordinary)
    conformance = normalize_string(form_data.nepa_conformance_conditions)
    if conformance and conformance not in sections:
        sections.append(conformance)
    return "\n\n".join(sections) if sections else None


def build_categorical_exclusion_payload(context: DecisionPayloadContext) -> dict[str, Any]:
    candidates = parse_delimited_list(context.form_data.nepa_categorical_exclusion_code)
    return _with_element_id(
        context.element_id,
        {
            "ce_candidates": candidates or None,
            "rationale": build_categorical_rationale(context.form_data),
        },
    )


def build_conditions_payload(context: DecisionPayloadContext) -> dict[str, Any]:
    # Same two source fields as the CE payload, projected as conditions + notes.
    conditions = parse_delimited_list(context.form_data.nepa_conformance_conditions)
    return _with_element_id(
        context.element_id,
        {
            "conditions": conditions or None,
            "notes": normalize_string(context.form_data.nepa_extraordinary_circumstances),
        },
    )


def format_service_status(name: str, service: GeospatialServiceState | None) -> str | None:
    if service is None:
        return None
    if service.status == "success":
        return f"{name}: results available"
    if service.status == "error":
        detail = normalize_string(service.error)
        return f"{name}: {detail}" if detail else f"{name}: error"
    if service.status == "loading":
        return f"{name}: running"
    return None


def _format_last_run(value: Any) -> str:
    parsed = _parse_timestamp(value)
    if parsed is None:
        return str(value)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def build_resource_summary(results: GeospatialResultsState) -> str | None:
    sections: list[str] = []
    if results.last_run_at:
        sections.append(f"Last screening run: {_format_last_run(results.last_run_at)}")
    for name, service in (("NEPA Assist", results.nepassist), ("IPaC", results.ipac)):
        status_line = format_service_status(name, service)
        if status_line:
            sections.append(status_line)
    if results.messages:
        sections.append("\n".join(str(message) for message in results.messages))
    return "\n\n".join(sections) if sections else None


def build_resource_entries(results: GeospatialResultsState) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    for name, service in (("NEPA Assist", results.nepassist), ("IPaC", results.ipac)):
        if not is_includable(service):
            continue
        entry: dict[str, Any] = {"name": name}
        if service.status is not None:
            entry["status"] = service.status
        entry["summary"] = empty_to_none(service.summary)
        entry["error"] = normalize_string(service.error)
        if isinstance(service.meta, Mapping) and service.meta:
            entry["meta"] = dict(service.meta)
        entries.append(entry)
    return entries


def build_resource_notes_payload(context: DecisionPayloadContext) -> dict[str, Any]:
    resources = build_resource_entries(context.geospatial_results)
    return _with_element_id(
        context.element_id,
        {
            "resources": resources or None,
            "summary": build_resource_summary(context.geospatial_results),
        },
    )


DecisionPayloadBuilder = Callable[[DecisionPayloadContext], dict[str, Any]]

DECISION_ELEMENT_BUILDERS: tuple[tuple[str, DecisionPayloadBuilder], ...] = (
    (PROJECT_DETAILS, build_project_details_payload),
    (NEPA_ASSIST, build_nepa_assist_payload),
    (IPAC, build_ipac_payload),
    (PERMIT_NOTES, build_permit_notes_payload),
    (CE_REFERENCES, build_categorical_exclusion_payload),
    (CONDITIONS, build_conditions_payload),
    (RESOURCE_NOTES, build_resource_notes_payload),
)


def _with_fallback_identity(title: str, payload: dict[str, Any]) -> dict[str, Any]:
    fallback = dict(payload)
    existing_id = payload.get("id")
    if isinstance(existing_id, bool) or not isinstance(existing_id, (int, float, str)):
        fallback["id"] = title
    existing_title = payload.get("title")
    if not isinstance(existing_title, str) or not existing_title:
        fallback["title"] = title
    return fallback


def build_decision_payload_records(
    *,
    process_instance_id: int,
    project_record: dict[str, Any],
    decision_elements: Mapping[str, DecisionElement],
    geospatial_results: GeospatialResultsState,
    permitting_checklist: Sequence[PermittingChecklistItem],
    form_data: ProjectFormData,
) -> list[DecisionPayloadRecord]:
    """
    Build one payload record per pre-screening decision element, in builder order.

    A title missing from the catalog still yields a record: the payload gets a synthetic `id`/`title`
    and the record carries no `decision_element`.
    """
    records: list[DecisionPayloadRecord] = []
    for title, build in DECISION_ELEMENT_BUILDERS:
        element = decision_elements.get(title)
        element_id = element.id if element else None
        if element is None:
            _logger.warning('Decision element "%s" is not configured; using fallback payload metadata.', title)

        data = build(
            DecisionPayloadContext(
                element_id=element_id,
                project_record=project_record,
                geospatial_results=geospatial_results,
                permitting_checklist=permitting_checklist,
                form_data=form_data,
            )
        )
        records.append(
            DecisionPayloadRecord(
                process_instance=process_instance_id,
                title=title,
                decision_element=element_id,
                data=data,
                evaluation_data=data if element else _with_fallback_identity(title, data),
            )
        )
    return records
