from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ProjectPersistenceError

PRE_SCREENING_FILE_NAME = "pre_screening.yaml"

_DEFAULT_CASE_EVENT_TYPES = {
    "project_initiated": "Project initiated",
    "pre_screening_initiated": "Pre-screening initiated",
    "pre_screening_complete": "Pre-screening complete",
}


@dataclass(frozen=True)
class ProcessModel:
    process_model_id: int
    description_suffix: str
    case_event_types: dict[str, str]

    @property
    def project_initiated(self) -> str:
        return self.case_event_types["project_initiated"]

    @property
    def pre_screening_initiated(self) -> str:
        return self.case_event_types["pre_screening_initiated"]

    @property
    def pre_screening_complete(self) -> str:
        return self.case_event_types["pre_screening_complete"]

    def instance_description(self, project_title: str | None) -> str:
        if project_title:
            return f"{project_title} {self.description_suffix}"
        return self.description_suffix


def _spec_root() -> Path:
    configured = os.environ.get("PORTAL_SPEC_ROOT")
    if configured:
        path = Path(configured).resolve()
        if (path / PRE_SCREENING_FILE_NAME).exists():
            return path
    return Path(__file__).resolve().parent / "process_models"


def _read_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ProjectPersistenceError(f"Process model not found: {path}", kind="configuration") from exc
    except Exception as exc:  # noqa: BLE001
        raise ProjectPersistenceError(f"Failed to read process model YAML: {path}", kind="configuration") from exc


def load_pre_screening_model() -> ProcessModel:
    """
    Load the pre-screening process model definition.

    `PORTAL_SPEC_ROOT` may point at a directory holding an override `pre_screening.yaml`.
    """
    data = _read_yaml(_spec_root() / PRE_SCREENING_FILE_NAME)
    if not isinstance(data, dict):
        raise ProjectPersistenceError("Pre-screening process model must be a YAML mapping.", kind="configuration")

    model_id = data.get("process_model_id")
    if isinstance(model_id, bool) or not isinstance(model_id, int):
        raise ProjectPersistenceError("Pre-screening process_model_id must be an integer.", kind="configuration")

    suffix = data.get("description_suffix")
    if not isinstance(suffix, str) or not suffix.strip():
        suffix = "Pre-Screening"

    configured_events = data.get("case_event_types") if isinstance(data.get("case_event_types"), dict) else {}
    case_event_types = dict(_DEFAULT_CASE_EVENT_TYPES)
    for key in _DEFAULT_CASE_EVENT_TYPES:
        label = configured_events.get(key)
        if isinstance(label, str) and label.strip():
            case_event_types[key] = label.strip()

    return ProcessModel(
        process_model_id=model_id,
        description_suffix=suffix.strip(),
        case_event_types=case_event_types,
    )
