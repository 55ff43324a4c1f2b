from __future__ import annotations

import copy
import itertools
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from portal_api.providers.base import RecordStoreProvider


def _matches(row: dict[str, Any], column: str, expression: str) -> bool:
    operator, _, operand = expression.partition(".")
    value = row.get(column)
    if operator == "eq":
        return value is not None and str(value) == operand
    if operator == "in":
        options = operand.strip("()").split(",")
        return value is not None and str(value) in options
    raise ValueError(f"Unsupported filter: {expression}")


def _sort_rows(rows: list[dict[str, Any]], order: Sequence[str]) -> list[dict[str, Any]]:
    for clause in reversed(list(order)):
        column, *modifiers = clause.split(".")
        descending = "desc" in modifiers
        present = [row for row in rows if row.get(column) is not None]
        missing = [row for row in rows if row.get(column) is None]
        present.sort(key=lambda row: row[column], reverse=descending)
        rows = present + missing
    return rows


class InMemoryRecordStore(RecordStoreProvider):
    """Record store fake applying PostgREST-style eq/in filters, ordering and upsert keys."""

    def __init__(self, tables: Mapping[str, list[dict[str, Any]]] | None = None):
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.calls: list[tuple[str, str]] = []
        self._ids = itertools.count(1000)
        self.reachable = True

    @property
    def backend(self) -> str:
        return "memory"

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def select(self, table, *, columns="*", filters=None, order=None, limit=None, action=None):
        self.calls.append(("select", table))
        rows = [
            row
            for row in self.rows(table)
            if all(_matches(row, column, expression) for column, expression in (filters or {}).items())
        ]
        if order:
            rows = _sort_rows(rows, order)
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            names = columns.split(",")
            rows = [{name: row.get(name) for name in names if name in row} for row in rows]
        return copy.deepcopy(rows)

    def _store(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(row)
        stored.setdefault("id", next(self._ids))
        self.rows(table).append(stored)
        return stored

    def insert(self, table, rows, *, returning=True, action=None):
        self.calls.append(("insert", table))
        batch = rows if isinstance(rows, list) else [rows]
        stored = [self._store(table, row) for row in batch]
        return copy.deepcopy(stored) if returning else []

    def upsert(self, table, rows, *, on_conflict, action=None):
        self.calls.append(("upsert", table))
        batch = rows if isinstance(rows, list) else [rows]
        result = []
        for row in batch:
            existing = None
            if all(row.get(column) is not None for column in on_conflict):
                existing = next(
                    (
                        current
                        for current in self.rows(table)
                        if all(current.get(column) == row[column] for column in on_conflict)
                    ),
                    None,
                )
            if existing is not None:
                existing.update(copy.deepcopy(row))
                result.append(copy.deepcopy(existing))
            else:
                result.append(copy.deepcopy(self._store(table, row)))
        return result

    def ping(self) -> bool:
        return self.reachable


PRE_SCREENING_TITLES = (
    "Provide complete project details",
    "Confirm or upload NEPA Assist results if auto fetch fails",
    "Confirm or upload IPaC results if auto fetch fails",
    "Provide permit applicability notes",
    "Enter CE references and rationale",
    "List applicable conditions and notes",
    "Provide resource-by-resource notes",
)


def catalog_rows(process_model: int = 1) -> list[dict[str, Any]]:
    return [
        {"id": 10 + index, "title": title, "process_model": process_model}
        for index, title in enumerate(PRE_SCREENING_TITLES)
    ]


@pytest.fixture
def store():
    return InMemoryRecordStore({"decision_element": catalog_rows()})


@pytest.fixture
def empty_catalog_store():
    return InMemoryRecordStore()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for name in (
        "PORTAL_SUPABASE_URL",
        "SUPABASE_URL",
        "PORTAL_SUPABASE_ANON_KEY",
        "SUPABASE_ANON_KEY",
        "PORTAL_SUPABASE_SCHEMA",
        "PORTAL_SUPABASE_TIMEOUT_SECONDS",
        "PORTAL_SPEC_ROOT",
        "PORTAL_STORE_BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)
