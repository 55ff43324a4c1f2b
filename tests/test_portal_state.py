import pytest

from conftest import InMemoryRecordStore
from portal_api.errors import ProjectPersistenceError
from portal_api.models import DecisionSubmissionRequest, ProjectSnapshotRequest
from portal_api.services.portal_state import (
    load_project_portal_state,
    parse_checklist_items,
    parse_project_other,
)
from portal_api.services.prescreening import submit_decision_payload
from portal_api.services.projects import save_project_snapshot

GEOSPATIAL = {
    "lastRunAt": "2024-05-01T12:30:00Z",
    "messages": ["IPaC uploaded manually"],
    "nepassist": {"status": "success", "summary": [{"name": "Wetlands"}], "raw": {"layers": 3}},
    "ipac": {"status": "idle", "summary": {"listedSpecies": ["Bald eagle"]}},
}

FORM = {
    "title": "Bridge Repair",
    "sector": "Transportation",
    "location_lat": 38.5,
    "location_object": '{"type": "Point", "coordinates": [-77.0, 38.5]}',
    "sponsor_contact": {"name": "Ada", "email": "ada@dot.gov"},
    "other": "Coordinate with county",
    "nepa_categorical_exclusion_code": "CE-1; CE-2",
    "nepa_conformance_conditions": "Work in dry season",
    "nepa_extraordinary_circumstances": "None identified",
}


def _persist(store):
    saved = save_project_snapshot(
        ProjectSnapshotRequest.model_validate({"formData": FORM, "geospatialResults": GEOSPATIAL}),
        store=store,
    )
    submit_decision_payload(
        DecisionSubmissionRequest.model_validate(
            {
                "formData": {**FORM, "id": str(saved.project_id)},
                "geospatialResults": GEOSPATIAL,
                "permittingChecklist": [
                    {"label": "Section 404 permit", "completed": True, "source": "copilot", "notes": "USACE"},
                    {"label": "  "},
                ],
            }
        ),
        store=store,
    )
    return saved.project_id


def test_state_round_trips_saved_project(store):
    project_id = _persist(store)

    state = load_project_portal_state(project_id, store=store)

    form = state.form_data
    assert form.id == str(project_id)
    assert form.title == "Bridge Repair"
    assert form.sector == "Transportation"
    assert form.location_lat == 38.5
    assert '"Point"' in form.location_object
    assert form.sponsor_contact == {"name": "Ada", "email": "ada@dot.gov"}
    assert form.other == "Coordinate with county"
    assert form.nepa_categorical_exclusion_code == "CE-1\nCE-2"
    assert form.nepa_conformance_conditions == "Work in dry season"
    assert form.nepa_extraordinary_circumstances == "None identified"

    geo = state.geospatial_results
    assert geo.last_run_at == "2024-05-01T12:30:00Z"
    assert geo.messages == ["IPaC uploaded manually"]
    assert geo.nepassist.status == "success"
    assert geo.nepassist.summary == [{"name": "Wetlands"}]
    assert geo.nepassist.raw == {"layers": 3}
    assert geo.ipac.summary == {"listedSpecies": ["Bald eagle"]}
    assert geo.ipac.status == "success"

    assert [item.label for item in state.permitting_checklist] == ["Section 404 permit"]
    assert state.permitting_checklist[0].completed is True
    assert state.permitting_checklist[0].source == "copilot"
    assert state.last_updated is not None


def test_state_restores_payloads_without_catalog(empty_catalog_store):
    project_id = _persist(empty_catalog_store)

    state = load_project_portal_state(project_id, store=empty_catalog_store)

    assert state.form_data.nepa_categorical_exclusion_code == "CE-1\nCE-2"
    assert [item.label for item in state.permitting_checklist] == ["Section 404 permit"]


def test_state_without_process_instance_uses_defaults():
    store = InMemoryRecordStore(
        {"project": [{"id": 5, "title": "Culvert", "data_source_system": "project-portal", "other": None}]}
    )

    state = load_project_portal_state(5, store=store)

    assert state.form_data.title == "Culvert"
    assert state.form_data.sponsor_contact == {}
    assert state.geospatial_results.messages == []
    assert state.geospatial_results.nepassist.status == "idle"
    assert state.permitting_checklist == []


def test_missing_project_is_not_found(store):
    with pytest.raises(ProjectPersistenceError, match="Project 99 was not found.") as excinfo:
        load_project_portal_state(99, store=store)
    assert excinfo.value.kind == "not_found"


def test_projects_from_other_sources_are_not_loaded():
    store = InMemoryRecordStore({"project": [{"id": 5, "title": "Imported", "data_source_system": "legacy"}]})
    with pytest.raises(ProjectPersistenceError):
        load_project_portal_state(5, store=store)


def test_parse_project_other_accepts_json_text():
    assert parse_project_other('{"notes": "From text"}') == {"notes": "From text"}
    assert parse_project_other("plain notes") == {"notes": "plain notes"}
    assert parse_project_other({}) is None


def test_parse_checklist_items_filters_sources():
    items = parse_checklist_items(
        [{"label": "A", "source": "robot"}, {"label": "B", "source": "manual"}, "junk", {"completed": True}]
    )
    assert [(item.label, item.source) for item in items] == [("A", None), ("B", "manual")]
