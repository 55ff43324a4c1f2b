from __future__ import annotations

import os

from portal_api.errors import ProjectPersistenceError
from portal_api.providers.base import RecordStoreProvider
from portal_api.providers.supabase_rest import SupabaseRestStoreProvider


def get_record_store_provider() -> RecordStoreProvider:
    """
    Returns the configured RecordStoreProvider.
    Currently only supports 'supabase' (PostgREST).
    """
    backend = os.environ.get("PORTAL_STORE_BACKEND", "supabase")
    if backend == "supabase":
        return SupabaseRestStoreProvider()
    raise ProjectPersistenceError(f"Unsupported record store backend: {backend}", kind="configuration")
