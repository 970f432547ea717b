"""
Base store — shared Supabase client access for all stores.

All domain-specific stores inherit from this class to get
standardised insert / select / update / delete primitives. postgrest
APIError is translated into the domain hierarchy here:
unique violations become MappingConflictError, everything else
DatabaseTransientError (retryable).
Version: 1.0.0
"""

import logging
from typing import Any, Dict, List, NoReturn, Optional

from postgrest.exceptions import APIError
from supabase import Client

from catalog_sync.core.config import settings
from catalog_sync.core.exceptions import DatabaseTransientError, MappingConflictError
from catalog_sync.clients.supabase_client import SupabaseClient

logger = logging.getLogger("base_store")

UNIQUE_VIOLATION = "23505"


class BaseStore:
    """Base class for all Supabase stores providing shared CRUD operations."""

    def __init__(self, supabase_client: Optional[SupabaseClient] = None) -> None:
        self._supabase_client = supabase_client

    @property
    def client(self) -> Client:
        """Get or create Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = SupabaseClient(settings)
        return self._supabase_client.client

    def _raise_for(self, table: str, action: str, error: APIError) -> NoReturn:
        logger.info("supabase error table=%s action=%s detail=%s", table, action, str(error))
        if getattr(error, "code", None) == UNIQUE_VIOLATION:
            raise MappingConflictError(f"Duplicate row in {table}: {error}") from error
        raise DatabaseTransientError(f"Supabase {action} on {table} failed: {error}") from error

    def _insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored."""
        try:
            result = self.client.table(table).insert(row).execute()
        except APIError as e:
            self._raise_for(table, "insert", e)
        return result.data[0] if result.data else row

    def _select(
        self, table: str, filters: Dict[str, Any], columns: str = "*", limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Select rows matching every filter (equality)."""
        try:
            query = self.client.table(table).select(columns)
            for key, value in filters.items():
                query = query.eq(key, value)
            if limit is not None:
                query = query.limit(limit)
            result = query.execute()
        except APIError as e:
            self._raise_for(table, "select", e)
        return result.data or []

    def _update(
        self, table: str, filters: Dict[str, Any], payload: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Update rows matching the filters; returns the updated rows."""
        try:
            query = self.client.table(table).update(payload)
            for key, value in filters.items():
                query = query.eq(key, value)
            result = query.execute()
        except APIError as e:
            self._raise_for(table, "update", e)
        return result.data or []

    def _delete(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete rows matching the filters; returns how many were removed."""
        try:
            query = self.client.table(table).delete()
            for key, value in filters.items():
                query = query.eq(key, value)
            result = query.execute()
        except APIError as e:
            self._raise_for(table, "delete", e)
        return len(result.data or [])
