from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..api_utils import json_response, persistence_http_error
from ..errors import ProjectPersistenceError
from ..models import DecisionSubmissionRequest
from ..services.prescreening import submit_decision_payload as service_submit_decision_payload


router = APIRouter(tags=["pre-screening"])


@router.post("/projects/pre-screening")
def submit_pre_screening(body: DecisionSubmissionRequest) -> JSONResponse:
    try:
        result = service_submit_decision_payload(body)
    except ProjectPersistenceError as exc:
        raise persistence_http_error(exc) from exc
    return json_response(result)
