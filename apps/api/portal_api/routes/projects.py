from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..api_utils import json_response, persistence_http_error
from ..errors import ProjectPersistenceError
from ..models import ProjectSnapshotRequest
from ..services.portal_state import load_project_portal_state as service_load_project_portal_state
from ..services.projects import fetch_project_hierarchy as service_fetch_project_hierarchy
from ..services.projects import save_project_snapshot as service_save_project_snapshot


router = APIRouter(tags=["projects"])


@router.post("/projects")
def save_project(body: ProjectSnapshotRequest) -> JSONResponse:
    try:
        result = service_save_project_snapshot(body)
    except ProjectPersistenceError as exc:
        raise persistence_http_error(exc) from exc
    return json_response(result)


@router.get("/projects")
def list_projects() -> JSONResponse:
    try:
        hierarchy = service_fetch_project_hierarchy()
    except ProjectPersistenceError as exc:
        raise persistence_http_error(exc) from exc
    return json_response(hierarchy)


@router.get("/projects/{project_id}/state")
def get_project_state(project_id: int) -> JSONResponse:
    try:
        state = service_load_project_portal_state(project_id)
    except ProjectPersistenceError as exc:
        raise persistence_http_error(exc) from exc
    return json_response(
        {
            "formData": state.form_data,
            "geospatialResults": state.geospatial_results,
            "permittingChecklist": state.permitting_checklist,
            "lastUpdated": state.last_updated,
        }
    )
