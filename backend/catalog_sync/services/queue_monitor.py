"""
Queue monitor — read side of the sync queue for operators.

Filtered task listing, aggregate statistics and per-tenant rate-limit
status. Display and access control live outside this service.
"""

import logging
from typing import Dict, List, Optional

from catalog_sync.core.constants.sync import RECENT_FAILURES_LIMIT, TASK_STATUSES
from catalog_sync.db.task_store import TaskStore
from catalog_sync.schemas.rate_limit import RateLimitStatus
from catalog_sync.schemas.sync import (
    FailedTaskSummary,
    QueueStatistics,
    TaskFilters,
    TaskListResponse,
)
from catalog_sync.services.rate_limit_coordinator import RateLimitCoordinator

logger = logging.getLogger("queue_monitor")

UNKNOWN_TENANT = "unknown"


class QueueMonitor:
    def __init__(self, store: TaskStore, rate_limits: RateLimitCoordinator) -> None:
        self._store = store
        self._rate_limits = rate_limits

    def list_tasks(self, filters: TaskFilters) -> TaskListResponse:
        tasks, total = self._store.query(filters)
        return TaskListResponse(tasks=tasks, total=total, page=filters.page, per_page=filters.per_page)

    def get_statistics(self) -> QueueStatistics:
        """Counts by status, by source tenant x status and by entity type x status."""
        by_status: Dict[str, int] = {status: 0 for status in TASK_STATUSES}
        by_source_tenant: Dict[str, Dict[str, int]] = {}
        by_entity_type: Dict[str, Dict[str, int]] = {}

        rows = self._store.fetch_status_rows()
        for row in rows:
            status = row.get("status")
            by_status[status] = by_status.get(status, 0) + 1

            tenant = row.get("source_tenant") or UNKNOWN_TENANT
            per_tenant = by_source_tenant.setdefault(tenant, {})
            per_tenant[status] = per_tenant.get(status, 0) + 1

            per_type = by_entity_type.setdefault(row.get("entity_type"), {})
            per_type[status] = per_type.get(status, 0) + 1

        recent_failed = [
            FailedTaskSummary(
                id=task.id,
                tenant_key=task.tenant_key,
                source_tenant=task.source_tenant,
                entity_type=task.entity_type,
                entity_id=task.entity_id,
                error=task.error,
                updated_at=task.updated_at,
            )
            for task in self._store.fetch_recent_failed(RECENT_FAILURES_LIMIT)
        ]

        return QueueStatistics(
            total=len(rows),
            by_status=by_status,
            by_source_tenant=by_source_tenant,
            by_entity_type=by_entity_type,
            recent_failed=recent_failed,
            scheduled_count=self._store.count_scheduled(),
        )

    def get_rate_limit_status(self, tenant_keys: Optional[List[str]] = None) -> List[RateLimitStatus]:
        """Budgets for the given tenants, or every tenant with queued tasks."""
        if tenant_keys is None:
            tenant_keys = self._store.distinct_tenants()
        return self._rate_limits.get_status(tenant_keys)
