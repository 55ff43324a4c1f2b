from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..errors import ProjectPersistenceError
from ..normalize import parse_numeric_id
from ..process_model import ProcessModel, load_pre_screening_model
from ..providers.base import RecordStoreProvider
from ..time_utils import WriteContext

_logger = logging.getLogger(__name__)

PROCESS_INSTANCE_COLUMNS = "id,parent_project_id,process_model,last_updated,created_timestamp,title,description"
LATEST_FIRST = ("last_updated.desc.nullslast", "id.desc")


@dataclass(frozen=True)
class ResolvedProcessInstance:
    id: int
    created: bool


def _first_numeric_id(rows: list[dict[str, Any]]) -> int | None:
    for row in rows:
        value = row.get("id")
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
    return None


def create_instance(
    store: RecordStoreProvider,
    write_context: WriteContext,
    project_id: int,
    project_title: str | None,
    *,
    process_model: ProcessModel | None = None,
) -> int:
    model = process_model or load_pre_screening_model()
    payload = write_context.stamp(
        {
            "description": model.instance_description(project_title),
            "process_model": model.process_model_id,
            "parent_project_id": project_id,
        }
    )
    rows = store.insert("process_instance", payload, action="Failed to create process instance")
    instance_id = _first_numeric_id(rows)
    if instance_id is None:
        raise ProjectPersistenceError("Supabase response did not include a process instance identifier.")
    _logger.info("Created pre-screening process instance %s for project %s", instance_id, project_id)
    return instance_id


def fetch_latest_instance(
    store: RecordStoreProvider,
    project_id: int,
    *,
    process_model: ProcessModel | None = None,
) -> dict[str, Any] | None:
    """
    The current pre-screening instance for a project: most recently updated, ties broken by highest id.
    """
    model = process_model or load_pre_screening_model()
    rows = store.select(
        "process_instance",
        columns=PROCESS_INSTANCE_COLUMNS,
        filters={
            "parent_project_id": f"eq.{project_id}",
            "process_model": f"eq.{model.process_model_id}",
        },
        order=LATEST_FIRST,
        limit=1,
        action="Failed to load process instance",
    )
    return rows[0] if rows else None


def resolve_or_create(
    store: RecordStoreProvider,
    write_context: WriteContext,
    project_id: int,
    project_title: str | None,
    *,
    process_model: ProcessModel | None = None,
) -> ResolvedProcessInstance:
    """
    Return the project's current pre-screening instance, creating one when none exists.

    Lookup and insert are separate requests. Two concurrent first submissions for the same project can
    both miss the lookup and create duplicate instances unless the store enforces uniqueness on
    (parent_project_id, process_model).
    """
    model = process_model or load_pre_screening_model()
    existing = fetch_latest_instance(store, project_id, process_model=model)
    existing_id = parse_numeric_id(existing.get("id")) if existing else None
    if existing_id is not None:
        return ResolvedProcessInstance(id=existing_id, created=False)
    instance_id = create_instance(store, write_context, project_id, project_title, process_model=model)
    return ResolvedProcessInstance(id=instance_id, created=True)
