"""
Sync queue tasks — periodic queue passes and stuck-task recovery.

Tasks:
- process_sync_queue: claims and runs one batch of due tasks
- reset_stuck_tasks: releases processing tasks abandoned by a lost worker
Version: 1.0.0
"""
import logging

from catalog_sync.celery_app.celery_config import celery_app, SYNC_QUEUE_ENABLED, SYNC_STUCK_THRESHOLD_MINUTES
from catalog_sync.celery_app.tasks.base import BaseTask, run_async
from catalog_sync.container import get_queue_processor, get_task_queue
from catalog_sync.core.exceptions import DatabaseTransientError

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.sync_queue.process_sync_queue",
    max_retries=0
)
def process_sync_queue(self):
    """
    One queue pass. Runs every SYNC_QUEUE_INTERVAL_SECONDS; a failed pass
    is not retried, the next tick picks the work up.
    """
    if not SYNC_QUEUE_ENABLED:
        logger.info("Sync queue is disabled (SYNC_QUEUE_ENABLED=false), skipping pass")
        return {"status": "skipped", "reason": "sync_queue_disabled"}

    stats = run_async(get_queue_processor().process_batch())
    return {"status": "completed", **stats}


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.sync_queue.reset_stuck_tasks",
    autoretry_for=(DatabaseTransientError,),
    max_retries=3
)
def reset_stuck_tasks(self, threshold_minutes: int = None):
    """Release tasks stuck in processing longer than the threshold."""
    threshold = threshold_minutes or SYNC_STUCK_THRESHOLD_MINUTES
    released = get_task_queue().reset_stuck(threshold)
    if released:
        logger.warning(f"Released {released} stuck sync tasks (threshold={threshold}m)")
    return {"status": "completed", "released": released, "threshold_minutes": threshold}
