from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _PortalModel(BaseModel):
    # Form payloads are loosely typed; values are kept as sent and normalized downstream.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ProjectContact(_PortalModel):
    name: Any = None
    organization: Any = None
    email: Any = None
    phone: Any = None


class ProjectFormData(_PortalModel):
    id: Any = None
    title: Any = None
    description: Any = None
    sector: Any = None
    lead_agency: Any = None
    participating_agencies: Any = None
    sponsor: Any = None
    sponsor_contact: Any = None
    funding: Any = None
    location_text: Any = None
    location_lat: Any = None
    location_lon: Any = None
    location_object: Any = None
    other: Any = None
    nepa_categorical_exclusion_code: Any = None
    nepa_conformance_conditions: Any = None
    nepa_extraordinary_circumstances: Any = None


class GeospatialServiceState(_PortalModel):
    status: Any = "idle"
    summary: Any = None
    raw: Any = None
    error: Any = None
    meta: Any = None


class GeospatialResultsState(_PortalModel):
    nepassist: GeospatialServiceState = Field(default_factory=GeospatialServiceState)
    ipac: GeospatialServiceState = Field(default_factory=GeospatialServiceState)
    last_run_at: Any = Field(default=None, alias="lastRunAt")
    messages: list[Any] | None = None


class PermittingChecklistItem(_PortalModel):
    id: Any = None
    label: Any = None
    completed: Any = False
    notes: Any = None
    source: Any = None


class ProjectSnapshotRequest(_PortalModel):
    form_data: ProjectFormData = Field(default_factory=ProjectFormData, alias="formData")
    geospatial_results: GeospatialResultsState = Field(
        default_factory=GeospatialResultsState, alias="geospatialResults"
    )


class DecisionSubmissionRequest(ProjectSnapshotRequest):
    permitting_checklist: list[PermittingChecklistItem] = Field(
        default_factory=list, alias="permittingChecklist"
    )
