from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..errors import ProjectPersistenceError
from ..models import DecisionSubmissionRequest
from ..normalize import normalize_string, parse_location_object
from ..process_model import load_pre_screening_model
from ..providers.base import RecordStoreProvider
from ..providers.factory import get_record_store_provider
from ..time_utils import WriteContext
from .case_events import ensure_case_event
from .completeness import DecisionPayloadEvaluation, evaluate_decision_payloads
from .decision_elements import load_decision_elements, missing_titles
from .decision_payloads import build_decision_payload_records
from .process_instances import resolve_or_create
from .project_records import build_project_record
from .projects import parse_form_project_id

_logger = logging.getLogger(__name__)


@dataclass
class DecisionSubmissionResult:
    process_instance_id: int
    evaluation: DecisionPayloadEvaluation
    missing_elements: list[str] = field(default_factory=list)
    recorded_events: list[str] = field(default_factory=list)


def _evaluation_event_data(
    process_instance_id: int,
    project_id: int,
    evaluation: DecisionPayloadEvaluation,
) -> dict[str, object]:
    return {
        "process_instance": process_instance_id,
        "project_id": project_id,
        "total_payloads": evaluation.total,
        "payloads_with_content": list(evaluation.completed_titles),
        "payloads_with_content_count": len(evaluation.completed_titles),
    }


def submit_decision_payload(
    body: DecisionSubmissionRequest,
    *,
    store: RecordStoreProvider | None = None,
) -> DecisionSubmissionResult:
    """
    Persist the seven pre-screening decision payloads for a saved project and advance its case events.

    "Pre-screening initiated" is ensured on every submission; "Pre-screening complete" only once every
    payload carries meaningful data. Both are no-ops when the event already exists.
    """
    store = store or get_record_store_provider()
    model = load_pre_screening_model()
    form_data = body.form_data

    try:
        numeric_id = parse_form_project_id(form_data.id)
    except ProjectPersistenceError:
        numeric_id = None
    if not numeric_id:
        raise ProjectPersistenceError(
            "A numeric project identifier is required to submit pre-screening data. "
            "Save the project snapshot first.",
            kind="validation",
        )

    normalized_title = normalize_string(form_data.title)
    project_record = build_project_record(
        form_data,
        body.geospatial_results,
        numeric_id=numeric_id,
        normalized_title=normalized_title,
        location_result=parse_location_object(form_data.location_object),
    )

    write_context = WriteContext.now()
    instance = resolve_or_create(store, write_context, numeric_id, normalized_title, process_model=model)

    decision_elements = load_decision_elements(store, model)
    missing = missing_titles(decision_elements)

    records = build_decision_payload_records(
        process_instance_id=instance.id,
        project_record=project_record,
        decision_elements=decision_elements,
        geospatial_results=body.geospatial_results,
        permitting_checklist=body.permitting_checklist,
        form_data=form_data,
    )
    store.upsert(
        "process_decision_payload",
        [record.to_row(write_context) for record in records],
        on_conflict=("process_instance", "decision_element"),
        action="Failed to submit pre-screening data",
    )

    evaluation = evaluate_decision_payloads(records)
    event_data = _evaluation_event_data(instance.id, numeric_id, evaluation)
    recorded: list[str] = []
    if ensure_case_event(store, write_context, instance.id, model.pre_screening_initiated, event_data):
        recorded.append(model.pre_screening_initiated)
    if evaluation.is_complete and ensure_case_event(
        store, write_context, instance.id, model.pre_screening_complete, event_data
    ):
        recorded.append(model.pre_screening_complete)

    _logger.info(
        "Pre-screening payloads saved for project %s (%s/%s with content)",
        numeric_id,
        len(evaluation.completed_titles),
        evaluation.total,
    )
    return DecisionSubmissionResult(
        process_instance_id=instance.id,
        evaluation=evaluation,
        missing_elements=missing,
        recorded_events=recorded,
    )
