from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .errors import ProjectPersistenceError

_STATUS_BY_KIND = {
    "configuration": 503,
    "validation": 400,
    "not_found": 404,
    "backend": 502,
}


def persistence_http_error(exc: ProjectPersistenceError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_KIND.get(exc.kind, 502), detail=str(exc))


def json_response(content: Any) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(content))
