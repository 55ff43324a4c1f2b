import logging

from portal_api.models import (
    GeospatialResultsState,
    GeospatialServiceState,
    PermittingChecklistItem,
    ProjectFormData,
)
from portal_api.services.decision_elements import PRE_SCREENING_ELEMENT_TITLES, DecisionElement
from portal_api.services.decision_payloads import (
    build_categorical_exclusion_payload,
    build_conditions_payload,
    build_decision_payload_records,
    build_permit_notes_payload,
    build_resource_notes_payload,
    DecisionPayloadContext,
)
from portal_api.time_utils import WriteContext


def _context(form=None, geo=None, checklist=(), element_id=7):
    return DecisionPayloadContext(
        element_id=element_id,
        project_record={"id": 42, "title": "Bridge Repair"},
        geospatial_results=geo or GeospatialResultsState(),
        permitting_checklist=list(checklist),
        form_data=form or ProjectFormData(),
    )


def _catalog():
    return {title: DecisionElement(id=10 + index, title=title) for index, title in enumerate(PRE_SCREENING_ELEMENT_TITLES)}


def test_permit_notes_drop_blank_entries():
    checklist = [
        PermittingChecklistItem(label=" Section 404 ", completed=1, source="copilot"),
        PermittingChecklistItem(label="  ", notes=""),
        PermittingChecklistItem(notes="Check with USACE"),
    ]
    payload = build_permit_notes_payload(_context(ProjectFormData(other=" general "), checklist=checklist))
    assert payload["id"] == 7
    assert payload["notes"] == "general"
    assert payload["permits"] == [
        {"label": "Section 404", "completed": True, "notes": None, "source": "copilot"},
        {"completed": False, "notes": "Check with USACE"},
    ]


def test_categorical_exclusion_and_conditions_share_sources():
    form = ProjectFormData(
        nepa_categorical_exclusion_code="23 CFR 771.117(c)(22); 23 CFR 771.117(d)(1)",
        nepa_conformance_conditions="Work in dry season\nNo night work",
        nepa_extraordinary_circumstances="None identified",
    )
    ce = build_categorical_exclusion_payload(_context(form))
    assert ce["ce_candidates"] == ["23 CFR 771.117(c)(22)", "23 CFR 771.117(d)(1)"]
    assert ce["rationale"] == "None identified\n\nWork in dry season\nNo night work"

    conditions = build_conditions_payload(_context(form))
    assert conditions["conditions"] == ["Work in dry season", "No night work"]
    assert conditions["notes"] == "None identified"


def test_rationale_skips_duplicate_sections():
    form = ProjectFormData(nepa_conformance_conditions="Same", nepa_extraordinary_circumstances="Same")
    assert build_categorical_exclusion_payload(_context(form))["rationale"] == "Same"


def test_resource_notes_summarize_services():
    geo = GeospatialResultsState(
        lastRunAt="2024-05-01T12:30:00Z",
        messages=["Manual upload used"],
        nepassist=GeospatialServiceState(status="success", summary=[{"name": "Wetlands"}]),
        ipac=GeospatialServiceState(status="error", error="timeout"),
    )
    payload = build_resource_notes_payload(_context(geo=geo))
    assert payload["summary"] == (
        "Last screening run: 2024-05-01 12:30 UTC\n\n"
        "NEPA Assist: results available\n\n"
        "IPaC: timeout\n\n"
        "Manual upload used"
    )
    assert [entry["name"] for entry in payload["resources"]] == ["NEPA Assist", "IPaC"]
    assert payload["resources"][1]["error"] == "timeout"


def test_resource_notes_empty_when_idle():
    payload = build_resource_notes_payload(_context())
    assert payload == {"id": 7, "resources": None, "summary": None}


def test_records_follow_builder_order_with_catalog_ids():
    records = build_decision_payload_records(
        process_instance_id=5,
        project_record={"id": 42, "title": "Bridge Repair"},
        decision_elements=_catalog(),
        geospatial_results=GeospatialResultsState(),
        permitting_checklist=[],
        form_data=ProjectFormData(title="Bridge Repair"),
    )
    assert [record.title for record in records] == list(PRE_SCREENING_ELEMENT_TITLES)
    assert [record.decision_element for record in records] == list(range(10, 17))
    assert records[0].evaluation_data == {"id": 10, "project": {"id": 42, "title": "Bridge Repair"}}


def test_missing_catalog_uses_fallback_identity(caplog):
    with caplog.at_level(logging.WARNING):
        records = build_decision_payload_records(
            process_instance_id=5,
            project_record={"id": 42},
            decision_elements={},
            geospatial_results=GeospatialResultsState(),
            permitting_checklist=[],
            form_data=ProjectFormData(),
        )
    assert len(records) == 7
    assert all(record.decision_element is None for record in records)
    first = records[0]
    assert first.evaluation_data["id"] == PRE_SCREENING_ELEMENT_TITLES[0]
    assert first.evaluation_data["title"] == PRE_SCREENING_ELEMENT_TITLES[0]
    assert "id" not in first.data
    assert "is not configured" in caplog.text


def test_row_omits_missing_decision_element():
    records = build_decision_payload_records(
        process_instance_id=5,
        project_record={},
        decision_elements={},
        geospatial_results=GeospatialResultsState(),
        permitting_checklist=[],
        form_data=ProjectFormData(),
    )
    row = records[1].to_row(WriteContext(source_system="project-portal", timestamp="2024-05-01T00:00:00Z"))
    assert "decision_element" not in row
    assert row["process_instance"] == 5
    assert row["data_source_system"] == "project-portal"
    assert row["last_updated"] == row["retrieved_timestamp"] == "2024-05-01T00:00:00Z"
