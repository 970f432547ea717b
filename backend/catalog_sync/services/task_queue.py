"""
Task queue — lifecycle of sync tasks on top of the sync_queue table.

    pending -> processing -> completed | failed
    processing -> pending   rate-limit deferral, lock contention,
                            transient-failure requeue, stuck recovery

scheduled_at is the only delay mechanism: deferrals and backoff push it
forward, claim_ready ignores pending rows whose scheduled_at is in the
future. A failed task is never put back to pending; retry() clones it.
Version: 1.0.0
"""

import logging
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from catalog_sync.core.constants.sync import (
    DELETABLE_STATUSES,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
)
from catalog_sync.core.exceptions import InvalidTaskStateError, TaskNotFoundError
from catalog_sync.db.task_store import TaskStore, utc_now
from catalog_sync.schemas.sync import EnqueueTaskRequest, SyncTask

logger = logging.getLogger("task_queue")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_MINUTES = 5


def interleave_by_tenant(tasks: List[SyncTask]) -> List[SyncTask]:
    """
    Round-robin tasks across source tenants within each priority band.

    Bands keep their (descending) order and each tenant keeps its own
    creation order, so one busy tenant cannot starve the others in a batch.
    """
    bands: "OrderedDict[int, OrderedDict[str, List[SyncTask]]]" = OrderedDict()
    for task in sorted(tasks, key=lambda t: -t.priority):
        tenant = task.source_tenant or task.tenant_key
        bands.setdefault(task.priority, OrderedDict()).setdefault(tenant, []).append(task)

    balanced: List[SyncTask] = []
    for per_tenant in bands.values():
        queues = [list(q) for q in per_tenant.values()]
        while any(queues):
            for queue in queues:
                if queue:
                    balanced.append(queue.pop(0))
    return balanced


class TaskQueue:
    """Enqueue, claim and transition sync tasks."""

    def __init__(
        self,
        store: TaskStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_minutes: int = DEFAULT_BACKOFF_MINUTES,
    ) -> None:
        self._store = store
        self._max_attempts = max_attempts
        self._backoff_minutes = backoff_minutes

    # ------------------------------------------------------------------
    # Producing
    # ------------------------------------------------------------------

    def enqueue(self, request: EnqueueTaskRequest, max_attempts: Optional[int] = None) -> SyncTask:
        """Insert a pending task, optionally delayed by request.delay_seconds."""
        now = utc_now()
        scheduled_at = now + timedelta(seconds=request.delay_seconds) if request.delay_seconds else None
        task = self._store.insert_task({
            "tenant_key": request.tenant_key,
            "source_tenant": request.source_tenant,
            "entity_type": request.entity_type,
            "entity_id": request.entity_id,
            "operation": request.operation,
            "payload": request.payload,
            "priority": request.priority,
            "status": STATUS_PENDING,
            "attempts": 0,
            "max_attempts": max_attempts or self._max_attempts,
            "scheduled_at": scheduled_at.isoformat() if scheduled_at else None,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        })
        logger.info(
            "task enqueued id=%s type=%s entity=%s operation=%s tenant=%s source=%s priority=%s",
            task.id, task.entity_type, task.entity_id, task.operation,
            task.tenant_key, task.source_tenant, task.priority,
        )
        return task

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------

    def claim_ready(self, limit: int) -> List[SyncTask]:
        """
        Claim up to `limit` due tasks for this worker.

        Each candidate is claimed with a guarded single-row update; tasks
        another worker claimed first are skipped.
        """
        candidates = self._store.fetch_ready(limit)
        claimed = []
        for candidate in candidates:
            task = self._store.claim(candidate.id)
            if task is not None:
                claimed.append(task)

        if candidates:
            logger.info("claimed tasks candidates=%s claimed=%s", len(candidates), len(claimed))
        return interleave_by_tenant(claimed)

    def defer(
        self,
        task: SyncTask,
        seconds: int,
        reason: str,
        rate_limit_info: Optional[Dict[str, Any]] = None,
    ) -> Optional[SyncTask]:
        """Back to pending, due in `seconds`. Not counted as an attempt."""
        scheduled_at = utc_now() + timedelta(seconds=max(0, seconds))
        payload: Dict[str, Any] = {
            "status": STATUS_PENDING,
            "scheduled_at": scheduled_at.isoformat(),
            "started_at": None,
            "error": reason,
        }
        if rate_limit_info is not None:
            payload["rate_limit_info"] = rate_limit_info
        logger.info(
            "task deferred id=%s seconds=%s reason=%s tenant=%s source=%s",
            task.id, seconds, reason, task.tenant_key, task.source_tenant,
        )
        return self._store.update_task(task.id, payload)

    def postpone_tenant(self, tenant: str, seconds: int) -> int:
        """
        Push every pending task that spends an exhausted tenant's budget out
        by `seconds`: tasks reading from it and tasks writing into it.
        """
        until = utc_now() + timedelta(seconds=seconds)
        count = self._store.postpone_pending(tenant, until, column="source_tenant")
        count += self._store.postpone_pending(tenant, until, column="tenant_key")
        logger.info("tenant postponed tenant=%s seconds=%s tasks=%s", tenant, seconds, count)
        return count

    def complete(self, task: SyncTask) -> Optional[SyncTask]:
        now = utc_now().isoformat()
        logger.info(
            "task completed id=%s type=%s entity=%s tenant=%s",
            task.id, task.entity_type, task.entity_id, task.tenant_key,
        )
        return self._store.update_task(task.id, {
            "status": STATUS_COMPLETED,
            "completed_at": now,
            "error": None,
        })

    def record_failure(self, task: SyncTask, error: str, retryable: bool) -> Optional[SyncTask]:
        """
        Count an attempt. Permanent errors and exhausted attempts fail the task;
        otherwise it is requeued with linear backoff (backoff_minutes x attempts).
        """
        attempts = task.attempts + 1
        if not retryable or attempts >= task.max_attempts:
            logger.error(
                "task failed id=%s type=%s entity=%s tenant=%s source=%s attempts=%s retryable=%s error=%s",
                task.id, task.entity_type, task.entity_id, task.tenant_key,
                task.source_tenant, attempts, retryable, error,
            )
            return self._store.update_task(task.id, {
                "status": STATUS_FAILED,
                "attempts": attempts,
                "error": error,
                "completed_at": utc_now().isoformat(),
            })

        delay = timedelta(minutes=self._backoff_minutes * attempts)
        logger.warning(
            "task requeued id=%s attempts=%s/%s delay_minutes=%s error=%s",
            task.id, attempts, task.max_attempts, self._backoff_minutes * attempts, error,
        )
        return self._store.update_task(task.id, {
            "status": STATUS_PENDING,
            "attempts": attempts,
            "error": error,
            "started_at": None,
            "scheduled_at": (utc_now() + delay).isoformat(),
        })

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    def get(self, task_id: int) -> SyncTask:
        task = self._store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def delete(self, task_id: int) -> None:
        """Remove a pending or failed task."""
        task = self.get(task_id)
        if task.status not in DELETABLE_STATUSES:
            raise InvalidTaskStateError(task_id, task.status, "delete")
        self._store.delete_task(task_id)
        logger.info("task deleted id=%s status=%s", task_id, task.status)

    def retry(self, task_id: int) -> SyncTask:
        """Clone a failed task into a fresh pending task; the original is untouched."""
        task = self.get(task_id)
        if not task.is_failed():
            raise InvalidTaskStateError(task_id, task.status, "retry")

        now = utc_now().isoformat()
        clone = self._store.insert_task({
            "tenant_key": task.tenant_key,
            "source_tenant": task.source_tenant,
            "entity_type": task.entity_type,
            "entity_id": task.entity_id,
            "operation": task.operation,
            "payload": task.payload,
            "priority": task.priority,
            "status": STATUS_PENDING,
            "attempts": 0,
            "max_attempts": task.max_attempts,
            "scheduled_at": None,
            "retry_of_task_id": task.id,
            "created_at": now,
            "updated_at": now,
        })
        logger.info("task retried id=%s new_id=%s", task.id, clone.id)
        return clone

    def reset_stuck(self, threshold_minutes: int) -> int:
        """processing tasks older than threshold_minutes go back to pending."""
        released = self._store.release_stuck(utc_now() - timedelta(minutes=threshold_minutes))
        for task in released:
            logger.warning("stuck task released id=%s tenant=%s", task.id, task.tenant_key)
        return len(released)
