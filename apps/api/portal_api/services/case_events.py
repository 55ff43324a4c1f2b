from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..providers.base import RecordStoreProvider
from ..time_utils import WriteContext

_logger = logging.getLogger(__name__)


def build_case_event_data(process_instance_id: int, event_data: Mapping[str, Any] | None) -> dict[str, Any]:
    data: dict[str, Any] = {"process_instance": process_instance_id}
    if event_data:
        data.update(event_data)
    return data


def case_event_exists(store: RecordStoreProvider, process_instance_id: int, event_type: str) -> bool:
    rows = store.select(
        "case_event",
        columns="id",
        filters={
            "process_instance": f"eq.{process_instance_id}",
            "event_type": f"eq.{event_type}",
        },
        limit=1,
        action="Failed to check case events",
    )
    return any(isinstance(row.get("id"), int) and not isinstance(row.get("id"), bool) for row in rows)


def create_case_event(
    store: RecordStoreProvider,
    write_context: WriteContext,
    process_instance_id: int,
    event_type: str,
    event_data: Mapping[str, Any] | None = None,
) -> None:
    payload = write_context.stamp({"process_instance": process_instance_id, "event_type": event_type})
    payload["data"] = build_case_event_data(process_instance_id, event_data)
    store.insert(
        "case_event",
        payload,
        returning=False,
        action=f'Failed to record "{event_type}" case event',
    )
    _logger.info('Recorded "%s" case event for process instance %s', event_type, process_instance_id)


def ensure_case_event(
    store: RecordStoreProvider,
    write_context: WriteContext,
    process_instance_id: int,
    event_type: str,
    event_data: Mapping[str, Any] | None = None,
) -> bool:
    """
    Record the event unless one of the same type already exists for the process instance.

    Returns True when an event was inserted. The existence check and the insert are separate requests;
    a store-level unique constraint on (process_instance, event_type) is what makes this strictly once.
    """
    if case_event_exists(store, process_instance_id, event_type):
        return False
    create_case_event(store, write_context, process_instance_id, event_type, event_data)
    return True
