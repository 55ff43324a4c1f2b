from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence
from typing import Any


class Provider(abc.ABC):
    """
    Base class for all providers.
    Every concrete provider must declare the backend it talks to.
    """

    @property
    @abc.abstractmethod
    def backend(self) -> str:
        """The backend this provider belongs to (e.g. 'supabase')."""
        pass


class RecordStoreProvider(Provider):
    """
    Interface for the keyed resource store behind the portal.

    Resources are named collections (`project`, `process_instance`, `case_event`, `decision_element`,
    `process_decision_payload`). Filters and ordering use PostgREST expressions, e.g.
    `{"process_model": "eq.1"}` and `["last_updated.desc.nullslast", "id.desc"]`.

    `action` is a short human description of the call, used to prefix error messages.
    Every method raises `ProjectPersistenceError` when the store rejects the request.
    """

    @abc.abstractmethod
    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Mapping[str, str] | None = None,
        order: Sequence[str] | None = None,
        limit: int | None = None,
        action: str | None = None,
    ) -> list[dict[str, Any]]:
        """Returns matching rows (empty list when none)."""
        pass

    @abc.abstractmethod
    def insert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        returning: bool = True,
        action: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Inserts one or more rows.
        Returns the stored representation, or an empty list when `returning` is False.
        """
        pass

    @abc.abstractmethod
    def upsert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        on_conflict: Sequence[str],
        action: str | None = None,
    ) -> list[dict[str, Any]]:
        """Inserts or merges rows keyed by the `on_conflict` columns; returns the stored representation."""
        pass

    @abc.abstractmethod
    def ping(self) -> bool:
        """Best-effort connectivity check."""
        pass
