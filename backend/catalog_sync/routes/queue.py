"""
Queue routes — operator view and actions on the sync queue.

Listing with filters, task detail, statistics, tenant rate-limit status,
manual enqueue, retry of failed tasks and deletion of pending / failed
tasks. Authentication is handled in front of this service.
Version: 1.0.0
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from catalog_sync.container import get_queue_monitor, get_task_queue
from catalog_sync.core.exceptions import (
    DatabaseTransientError,
    InvalidTaskStateError,
    TaskNotFoundError,
)
from catalog_sync.schemas.rate_limit import RateLimitStatus
from catalog_sync.schemas.sync import (
    EnqueueTaskRequest,
    QueueStatistics,
    SyncTask,
    TaskFilters,
    TaskListResponse,
)
from catalog_sync.services.queue_monitor import QueueMonitor
from catalog_sync.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/queue", tags=["queue"])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, TaskNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTaskStateError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, DatabaseTransientError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    tenant_key: Optional[str] = Query(None, description="Destination tenant"),
    source_tenant: Optional[str] = Query(None, description="Source (main) tenant"),
    status: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    operation: Optional[str] = Query(None),
    priority: Optional[int] = Query(None),
    scheduled_only: bool = Query(False, description="Only tasks scheduled in the future"),
    errors_only: bool = Query(False, description="Only tasks with an error message"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    sort_by: str = Query("priority"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=500),
    monitor: QueueMonitor = Depends(get_queue_monitor),
):
    """Filtered, paginated task list."""
    filters = TaskFilters(
        tenant_key=tenant_key,
        source_tenant=source_tenant,
        status=status,
        entity_type=entity_type,
        operation=operation,
        priority=priority,
        scheduled_only=scheduled_only,
        errors_only=errors_only,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        per_page=per_page,
    )
    try:
        return monitor.list_tasks(filters)
    except Exception as e:
        logger.error(f"Error listing sync tasks: {e}")
        raise _http_error(e)


@router.get("/stats", response_model=QueueStatistics)
async def get_statistics(monitor: QueueMonitor = Depends(get_queue_monitor)):
    try:
        return monitor.get_statistics()
    except Exception as e:
        logger.error(f"Error getting queue statistics: {e}")
        raise _http_error(e)


@router.get("/rate-limits", response_model=List[RateLimitStatus])
async def get_rate_limits(
    tenant: Optional[List[str]] = Query(None, description="Tenants to report; all queued tenants if omitted"),
    monitor: QueueMonitor = Depends(get_queue_monitor),
):
    """Current request budget per tenant, exhausted tenants first."""
    try:
        return monitor.get_rate_limit_status(tenant)
    except Exception as e:
        logger.error(f"Error getting rate limit status: {e}")
        raise _http_error(e)


@router.post("/tasks", response_model=SyncTask, status_code=201)
async def enqueue_task(request: EnqueueTaskRequest, queue: TaskQueue = Depends(get_task_queue)):
    try:
        return queue.enqueue(request)
    except Exception as e:
        logger.error(f"Error enqueuing sync task: {e}")
        raise _http_error(e)


@router.get("/tasks/{task_id}", response_model=SyncTask)
async def get_task(task_id: int, queue: TaskQueue = Depends(get_task_queue)):
    try:
        return queue.get(task_id)
    except Exception as e:
        raise _http_error(e)


@router.post("/tasks/{task_id}/retry", response_model=SyncTask)
async def retry_task(task_id: int, queue: TaskQueue = Depends(get_task_queue)):
    """Clone a failed task into a new pending task."""
    try:
        return queue.retry(task_id)
    except Exception as e:
        logger.warning(f"Retry rejected for task {task_id}: {e}")
        raise _http_error(e)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: int, queue: TaskQueue = Depends(get_task_queue)):
    """Delete a pending or failed task."""
    try:
        queue.delete(task_id)
    except Exception as e:
        logger.warning(f"Delete rejected for task {task_id}: {e}")
        raise _http_error(e)
    return {"status": "deleted", "task_id": task_id}
