from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import ProjectPersistenceError
from ..models import ProjectSnapshotRequest
from ..normalize import normalize_string, parse_location_object, parse_numeric_id
from ..process_model import load_pre_screening_model
from ..providers.base import RecordStoreProvider
from ..providers.factory import get_record_store_provider
from ..time_utils import DATA_SOURCE_SYSTEM, WriteContext, _newest_first_key
from .case_events import create_case_event, ensure_case_event
from .process_instances import resolve_or_create
from .project_records import build_project_record


@dataclass(frozen=True)
class SaveProjectSnapshotResult:
    project_id: int
    process_instance_id: int


@dataclass
class ProjectSummary:
    id: int
    title: str | None = None
    description: str | None = None
    last_updated: str | None = None


@dataclass
class CaseEventSummary:
    id: int
    event_type: str | None = None
    last_updated: str | None = None
    data: Any = None


@dataclass
class ProjectProcessSummary:
    id: int
    title: str | None = None
    description: str | None = None
    last_updated: str | None = None
    created_timestamp: str | None = None
    case_events: list[CaseEventSummary] = field(default_factory=list)


@dataclass
class ProjectHierarchy:
    project: ProjectSummary
    processes: list[ProjectProcessSummary] = field(default_factory=list)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_form_project_id(value: Any) -> int | None:
    """
    The numeric project id carried by the form, or None when the form has none yet.

    Raises `ProjectPersistenceError` when an id is present but not numeric.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    normalized = normalize_string(value)
    if not normalized:
        return None
    numeric_id = parse_numeric_id(normalized)
    if numeric_id is None:
        raise ProjectPersistenceError("Project identifier must be numeric to save to Supabase.", kind="validation")
    return numeric_id


def _determine_project_id(explicit_id: int | None, rows: list[dict[str, Any]]) -> int:
    if explicit_id is not None:
        return explicit_id
    for row in rows:
        derived = row.get("id")
        if isinstance(derived, int) and not isinstance(derived, bool):
            return derived
    raise ProjectPersistenceError("Supabase response did not include a project identifier.")


def save_project_snapshot(
    body: ProjectSnapshotRequest,
    *,
    store: RecordStoreProvider | None = None,
) -> SaveProjectSnapshotResult:
    """
    Upsert the project snapshot, make sure it has a pre-screening process instance and record
    the "Project initiated" event.

    Writes run in order (project, process instance, case event) with no rollback; a failure part way
    leaves the earlier writes in place, and retrying is safe because the project upsert is keyed by id.
    """
    store = store or get_record_store_provider()
    model = load_pre_screening_model()
    form_data = body.form_data

    numeric_id = parse_form_project_id(form_data.id)
    normalized_title = normalize_string(form_data.title)
    location_result = parse_location_object(form_data.location_object)
    write_context = WriteContext.now()

    project_record = build_project_record(
        form_data,
        body.geospatial_results,
        numeric_id=numeric_id,
        normalized_title=normalized_title,
        location_result=location_result,
    )
    rows = store.upsert(
        "project",
        write_context.stamp(project_record),
        on_conflict=("id",),
        action="Supabase request failed",
    )
    project_id = _determine_project_id(numeric_id, rows)

    instance = resolve_or_create(store, write_context, project_id, normalized_title, process_model=model)
    event_data = {
        "process_instance": instance.id,
        "project_id": project_id,
        "project_title": normalized_title,
        "project_snapshot": project_record,
    }
    if instance.created:
        create_case_event(store, write_context, instance.id, model.project_initiated, event_data)
    else:
        ensure_case_event(store, write_context, instance.id, model.project_initiated, event_data)

    return SaveProjectSnapshotResult(project_id=project_id, process_instance_id=instance.id)


def fetch_project_hierarchy(*, store: RecordStoreProvider | None = None) -> list[ProjectHierarchy]:
    """
    List portal projects with their process instances and case events, newest first at every level.
    """
    store = store or get_record_store_provider()
    source_filter = f"eq.{DATA_SOURCE_SYSTEM}"

    project_rows = store.select(
        "project",
        columns="id,title,description,last_updated",
        filters={"data_source_system": source_filter},
        order=("last_updated.desc.nullslast",),
        action="Failed to load projects",
    )
    projects: list[ProjectSummary] = []
    for row in project_rows:
        project_id = parse_numeric_id(row.get("id"))
        if project_id is None:
            continue
        projects.append(
            ProjectSummary(
                id=project_id,
                title=_optional_str(row.get("title")),
                description=_optional_str(row.get("description")),
                last_updated=_optional_str(row.get("last_updated")),
            )
        )
    if not projects:
        return []

    process_rows = store.select(
        "process_instance",
        columns="id,parent_project_id,title,description,last_updated,created_timestamp,data_source_system",
        filters={
            "parent_project_id": f"in.({','.join(str(p.id) for p in projects)})",
            "data_source_system": source_filter,
        },
        action="Failed to load processes",
    )
    process_ids = [pid for pid in (parse_numeric_id(row.get("id")) for row in process_rows) if pid is not None]

    event_rows: list[dict[str, Any]] = []
    if process_ids:
        event_rows = store.select(
            "case_event",
            columns="id,process_instance,event_type,last_updated,data",
            filters={
                "process_instance": f"in.({','.join(str(pid) for pid in process_ids)})",
                "data_source_system": source_filter,
            },
            action="Failed to load case events",
        )

    events_by_process: dict[int, list[CaseEventSummary]] = {}
    for row in event_rows:
        process_id = parse_numeric_id(row.get("process_instance"))
        event_id = parse_numeric_id(row.get("id"))
        if process_id is None or event_id is None:
            continue
        events_by_process.setdefault(process_id, []).append(
            CaseEventSummary(
                id=event_id,
                event_type=_optional_str(row.get("event_type")),
                last_updated=_optional_str(row.get("last_updated")),
                data=row.get("data"),
            )
        )

    processes_by_project: dict[int, list[ProjectProcessSummary]] = {}
    for row in process_rows:
        project_id = parse_numeric_id(row.get("parent_project_id"))
        process_id = parse_numeric_id(row.get("id"))
        if project_id is None or process_id is None:
            continue
        events = events_by_process.get(process_id, [])
        events.sort(key=lambda event: _newest_first_key(event.last_updated))
        processes_by_project.setdefault(project_id, []).append(
            ProjectProcessSummary(
                id=process_id,
                title=_optional_str(row.get("title")),
                description=_optional_str(row.get("description")),
                last_updated=_optional_str(row.get("last_updated")),
                created_timestamp=_optional_str(row.get("created_timestamp")),
                case_events=events,
            )
        )

    hierarchy: list[ProjectHierarchy] = []
    for project in projects:
        processes = processes_by_project.get(project.id, [])
        processes.sort(key=lambda process: _newest_first_key(process.last_updated))
        hierarchy.append(ProjectHierarchy(project=project, processes=processes))
    hierarchy.sort(key=lambda item: _newest_first_key(item.project.last_updated))
    return hierarchy
