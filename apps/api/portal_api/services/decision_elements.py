from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ..normalize import is_finite_number
from ..process_model import ProcessModel, load_pre_screening_model
from ..providers.base import RecordStoreProvider

_logger = logging.getLogger(__name__)

PROJECT_DETAILS = "Provide complete project details"
NEPA_ASSIST = "Confirm or upload NEPA Assist results if auto fetch fails"
IPAC = "Confirm or upload IPaC results if auto fetch fails"
PERMIT_NOTES = "Provide permit applicability notes"
CE_REFERENCES = "Enter CE references and rationale"
CONDITIONS = "List applicable conditions and notes"
RESOURCE_NOTES = "Provide resource-by-resource notes"

# Catalog titles the pre-screening pipeline expects, in pipeline order.
PRE_SCREENING_ELEMENT_TITLES: tuple[str, ...] = (
    PROJECT_DETAILS,
    NEPA_ASSIST,
    IPAC,
    PERMIT_NOTES,
    CE_REFERENCES,
    CONDITIONS,
    RESOURCE_NOTES,
)


@dataclass(frozen=True)
class DecisionElement:
    id: int
    title: str


def load_decision_elements(
    store: RecordStoreProvider,
    process_model: ProcessModel | None = None,
) -> dict[str, DecisionElement]:
    """
    Load the decision-element catalog for the pre-screening process model, keyed by title.

    Rows without a string title or a finite numeric id are skipped.
    """
    model = process_model or load_pre_screening_model()
    rows = store.select(
        "decision_element",
        columns="id,title",
        filters={"process_model": f"eq.{model.process_model_id}"},
        action="Failed to load decision elements",
    )
    elements: dict[str, DecisionElement] = {}
    for row in rows:
        title = row.get("title")
        element_id = row.get("id")
        if not isinstance(title, str) or not is_finite_number(element_id):
            continue
        if isinstance(element_id, float) and not element_id.is_integer():
            continue
        elements[title] = DecisionElement(id=int(element_id), title=title)
    return elements


def missing_titles(
    elements: Mapping[str, DecisionElement],
    titles: Iterable[str] = PRE_SCREENING_ELEMENT_TITLES,
) -> list[str]:
    missing = [title for title in titles if title not in elements]
    if missing:
        _logger.warning(
            "Decision elements are not configured for: %s; proceeding with available configuration.",
            ", ".join(missing),
        )
    return missing
