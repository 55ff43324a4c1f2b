from __future__ import annotations

import logging

from fastapi import HTTPException

from ..errors import ProjectPersistenceError
from ..providers.factory import get_record_store_provider

_logger = logging.getLogger(__name__)


def healthz() -> dict[str, str]:
    return {"status": "ok"}


def readyz() -> dict[str, str]:
    try:
        store = get_record_store_provider()
    except ProjectPersistenceError as exc:
        _logger.debug("Record store is not configured: %s", exc)
        raise HTTPException(status_code=503, detail={"status": "not_ready", "store": "unconfigured"}) from exc
    if not store.ping():
        raise HTTPException(status_code=503, detail={"status": "not_ready", "store": "down"})
    return {"status": "ready", "store": "ok"}
