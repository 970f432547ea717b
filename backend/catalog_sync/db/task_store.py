"""
Sync Queue Database Store.

Provides database operations for the sync_queue table:
- Task insert / lookup / delete
- Ready-task selection and the conditional claim (pending -> processing)
- Status transitions, deferrals and tenant-wide postponement
- Stuck-task recovery
- Filtered, paginated listing and aggregate counts for operators

Timestamps are written as ISO-8601 UTC strings.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError

from catalog_sync.core.constants.sync import (
    RECENT_FAILURES_LIMIT,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
)
from catalog_sync.db.base_store import BaseStore
from catalog_sync.schemas.sync import SyncTask, TaskFilters

logger = logging.getLogger("task_store")

TABLE = "sync_queue"

SORTABLE_COLUMNS = ("priority", "created_at", "updated_at", "scheduled_at", "attempts")

TENANT_COLUMNS = ("source_tenant", "tenant_key")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class TaskStore(BaseStore):
    """Database operations for the sync queue."""

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def insert_task(self, row: Dict[str, Any]) -> SyncTask:
        return SyncTask.model_validate(self._insert(TABLE, row))

    def get_task(self, task_id: int) -> Optional[SyncTask]:
        rows = self._select(TABLE, {"id": task_id}, limit=1)
        return SyncTask.model_validate(rows[0]) if rows else None

    def update_task(self, task_id: int, payload: Dict[str, Any]) -> Optional[SyncTask]:
        payload = {**payload, "updated_at": utc_now().isoformat()}
        rows = self._update(TABLE, {"id": task_id}, payload)
        return SyncTask.model_validate(rows[0]) if rows else None

    def delete_task(self, task_id: int) -> bool:
        return self._delete(TABLE, {"id": task_id}) > 0

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    def fetch_ready(self, limit: int, now: Optional[datetime] = None) -> List[SyncTask]:
        """
        Pending tasks that are due, highest priority first, FIFO within a band.

        Due means scheduled_at is null or not in the future.
        """
        now_iso = (now or utc_now()).isoformat()
        try:
            result = self.client.table(TABLE) \
                .select("*") \
                .eq("status", STATUS_PENDING) \
                .or_(f"scheduled_at.is.null,scheduled_at.lte.{now_iso}") \
                .order("priority", desc=True) \
                .order("created_at") \
                .limit(limit) \
                .execute()
        except APIError as e:
            self._raise_for(TABLE, "select", e)
        return [SyncTask.model_validate(row) for row in result.data or []]

    def claim(self, task_id: int, now: Optional[datetime] = None) -> Optional[SyncTask]:
        """
        pending -> processing, guarded on the current status.

        The update only matches while the row is still pending, so when two
        workers race for the same task exactly one gets the row back.
        """
        now_iso = (now or utc_now()).isoformat()
        try:
            result = self.client.table(TABLE) \
                .update({"status": STATUS_PROCESSING, "started_at": now_iso, "updated_at": now_iso}) \
                .eq("id", task_id) \
                .eq("status", STATUS_PENDING) \
                .execute()
        except APIError as e:
            self._raise_for(TABLE, "claim", e)
        if not result.data:
            logger.debug("claim lost task_id=%s", task_id)
            return None
        return SyncTask.model_validate(result.data[0])

    def postpone_pending(
        self, tenant: str, scheduled_at: datetime, column: str = "source_tenant"
    ) -> int:
        """
        Push pending tasks whose `column` equals tenant out to scheduled_at.

        column is "source_tenant" or "tenant_key". Rows already scheduled at
        or after scheduled_at are left alone, so postponement never pulls a
        delayed task forward.
        """
        if column not in TENANT_COLUMNS:
            raise ValueError(f"Cannot postpone by column {column}")
        scheduled_iso = scheduled_at.isoformat()
        try:
            result = self.client.table(TABLE) \
                .update({"scheduled_at": scheduled_iso, "updated_at": utc_now().isoformat()}) \
                .eq(column, tenant) \
                .eq("status", STATUS_PENDING) \
                .or_(f"scheduled_at.is.null,scheduled_at.lt.{scheduled_iso}") \
                .execute()
        except APIError as e:
            self._raise_for(TABLE, "postpone", e)
        return len(result.data or [])

    def release_stuck(self, started_before: datetime) -> List[SyncTask]:
        """processing tasks started before the cutoff go back to pending."""
        try:
            result = self.client.table(TABLE) \
                .update({
                    "status": STATUS_PENDING,
                    "started_at": None,
                    "updated_at": utc_now().isoformat(),
                }) \
                .eq("status", STATUS_PROCESSING) \
                .lt("started_at", started_before.isoformat()) \
                .execute()
        except APIError as e:
            self._raise_for(TABLE, "reset_stuck", e)
        return [SyncTask.model_validate(row) for row in result.data or []]

    # ------------------------------------------------------------------
    # Operator queries
    # ------------------------------------------------------------------

    def query(self, filters: TaskFilters, now: Optional[datetime] = None) -> Tuple[List[SyncTask], int]:
        """Filtered page of tasks plus the total matching count."""
        try:
            query = self.client.table(TABLE).select("*", count="exact")

            if filters.tenant_key:
                query = query.eq("tenant_key", filters.tenant_key)
            if filters.source_tenant:
                query = query.eq("source_tenant", filters.source_tenant)
            if filters.status:
                query = query.eq("status", filters.status)
            if filters.entity_type:
                query = query.eq("entity_type", filters.entity_type)
            if filters.operation:
                query = query.eq("operation", filters.operation)
            if filters.priority is not None:
                query = query.eq("priority", filters.priority)
            if filters.scheduled_only:
                query = query.eq("status", STATUS_PENDING).gt("scheduled_at", (now or utc_now()).isoformat())
            if filters.errors_only:
                query = query.not_.is_("error", "null")
            if filters.start_date:
                query = query.gte("created_at", filters.start_date.isoformat())
            if filters.end_date:
                query = query.lte("created_at", filters.end_date.isoformat())

            sort_by = filters.sort_by if filters.sort_by in SORTABLE_COLUMNS else "priority"
            query = query.order(sort_by, desc=filters.sort_order != "asc")
            if sort_by == "priority":
                query = query.order("created_at")

            offset = (filters.page - 1) * filters.per_page
            result = query.range(offset, offset + filters.per_page - 1).execute()
        except APIError as e:
            self._raise_for(TABLE, "query", e)

        tasks = [SyncTask.model_validate(row) for row in result.data or []]
        total = result.count if result.count is not None else len(tasks)
        return tasks, total

    def fetch_status_rows(self) -> List[Dict[str, Any]]:
        """status / source_tenant / entity_type of every task, for aggregation."""
        return self._select(TABLE, {}, columns="status,source_tenant,entity_type")

    def fetch_recent_failed(self, limit: int = RECENT_FAILURES_LIMIT) -> List[SyncTask]:
        try:
            result = self.client.table(TABLE) \
                .select("*") \
                .eq("status", STATUS_FAILED) \
                .order("updated_at", desc=True) \
                .limit(limit) \
                .execute()
        except APIError as e:
            self._raise_for(TABLE, "select", e)
        return [SyncTask.model_validate(row) for row in result.data or []]

    def count_scheduled(self, now: Optional[datetime] = None) -> int:
        """Pending tasks whose scheduled_at is in the future."""
        try:
            result = self.client.table(TABLE) \
                .select("id", count="exact") \
                .eq("status", STATUS_PENDING) \
                .gt("scheduled_at", (now or utc_now()).isoformat()) \
                .execute()
        except APIError as e:
            self._raise_for(TABLE, "count", e)
        return result.count or 0

    def distinct_tenants(self) -> List[str]:
        """Every tenant key (source or destination) that has queued tasks."""
        rows = self._select(TABLE, {}, columns="tenant_key,source_tenant")
        tenants: Dict[str, None] = {}
        for row in rows:
            for key in (row.get("source_tenant"), row.get("tenant_key")):
                if key:
                    tenants[key] = None
        return list(tenants)
