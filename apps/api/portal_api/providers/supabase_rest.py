from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from portal_api.errors import ProjectPersistenceError
from portal_api.providers.base import RecordStoreProvider

_logger = logging.getLogger(__name__)

_DEFAULT_SCHEMA = "public"
_DEFAULT_TIMEOUT_SECONDS = 10.0


def _env(*names: str) -> str:
    for name in names:
        value = (os.environ.get(name) or "").strip()
        if value:
            return value
    return ""


@dataclass(frozen=True)
class SupabaseRestConfig:
    url: str = ""
    api_key: str = ""
    schema: str = _DEFAULT_SCHEMA
    timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key)

    @classmethod
    def from_env(cls) -> SupabaseRestConfig:
        timeout_raw = _env("PORTAL_SUPABASE_TIMEOUT_SECONDS")
        try:
            timeout_seconds = float(timeout_raw) if timeout_raw else _DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            timeout_seconds = _DEFAULT_TIMEOUT_SECONDS
        return cls(
            url=_env("PORTAL_SUPABASE_URL", "SUPABASE_URL").rstrip("/"),
            api_key=_env("PORTAL_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY"),
            schema=_env("PORTAL_SUPABASE_SCHEMA") or _DEFAULT_SCHEMA,
            timeout_seconds=max(1.0, min(timeout_seconds, 120.0)),
        )


def _safe_json_loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def extract_error_detail(response_text: str) -> str | None:
    """
    Pull a readable detail out of a PostgREST error body: its `message`, else the JSON body, else the raw text.
    """
    if not response_text:
        return None
    parsed = _safe_json_loads(response_text)
    if isinstance(parsed, dict) and isinstance(parsed.get("message"), str):
        return parsed["message"]
    if isinstance(parsed, (dict, list)):
        return json.dumps(parsed, ensure_ascii=False)
    return response_text


def _batch_params(rows: Any) -> dict[str, str]:
    """PostgREST `columns` for a bulk write; keys a row leaves out take the column default."""
    if not isinstance(rows, list):
        return {}
    columns = sorted({key for row in rows for key in row})
    return {"columns": ",".join(columns)} if columns else {}


def _rows_from_payload(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    if isinstance(payload, dict):
        return [payload]
    return []


class SupabaseRestStoreProvider(RecordStoreProvider):
    """
    PostgREST (Supabase) implementation of RecordStoreProvider over httpx.
    """

    def __init__(self, config: SupabaseRestConfig | None = None):
        self._config = config or SupabaseRestConfig.from_env()
        if not self._config.configured:
            raise ProjectPersistenceError(
                "Supabase credentials are not configured. Set PORTAL_SUPABASE_URL and PORTAL_SUPABASE_ANON_KEY.",
                kind="configuration",
            )

    @property
    def backend(self) -> str:
        return "supabase"

    def _headers(self, *, write: bool = False, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._config.api_key,
            "Authorization": f"Bearer {self._config.api_key}",
            "Accept": "application/json",
        }
        if self._config.schema != _DEFAULT_SCHEMA:
            headers["Content-Profile" if write else "Accept-Profile"] = self._config.schema
        if write:
            headers["Content-Type"] = "application/json"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _endpoint(self, table: str) -> str:
        return f"{self._config.url}/rest/v1/{table}"

    def _request(
        self,
        method: str,
        table: str,
        *,
        action: str,
        params: dict[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        write = body is not None
        try:
            with httpx.Client(timeout=self._config.timeout_seconds) as client:
                resp = client.request(
                    method,
                    self._endpoint(table),
                    params=params,
                    headers=self._headers(write=write, prefer=prefer),
                    content=json.dumps(body, ensure_ascii=False, default=str) if write else None,
                )
        except httpx.HTTPError as exc:
            raise ProjectPersistenceError(f"{action}: {exc}") from exc

        response_text = resp.text
        if not resp.is_success:
            detail = extract_error_detail(response_text)
            message = (
                f"{action} ({resp.status_code}): {detail}" if detail else f"{action} ({resp.status_code})."
            )
            raise ProjectPersistenceError(message, status_code=resp.status_code)

        if not response_text:
            return []
        return _rows_from_payload(_safe_json_loads(response_text))

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
        params: dict[str, str] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = ",".join(order)
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", table, action=action or f"Failed to load {table}", params=params)

    def insert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        returning: bool = True,
        action: str | None = None,
    ) -> list[dict[str, Any]]:
        return self._request(
            "POST",
            table,
            action=action or f"Failed to insert into {table}",
            params=_batch_params(rows) or None,
            body=rows,
            prefer="return=representation" if returning else "return=minimal",
        )

    def upsert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        on_conflict: Sequence[str],
        action: str | None = None,
    ) -> list[dict[str, Any]]:
        return self._request(
            "POST",
            table,
            action=action or f"Failed to upsert into {table}",
            params={"on_conflict": ",".join(on_conflict), **_batch_params(rows)},
            body=rows,
            prefer="resolution=merge-duplicates,return=representation",
        )

    def ping(self) -> bool:
        try:
            with httpx.Client(timeout=self._config.timeout_seconds) as client:
                resp = client.get(f"{self._config.url}/rest/v1/", headers=self._headers())
            return resp.status_code < 500
        except httpx.HTTPError:
            _logger.debug("Supabase ping failed.", exc_info=True)
            return False
