"""
Celery tasks package.

Exports all tasks for convenient imports.
Version: 1.0.0
"""
from catalog_sync.celery_app.tasks.sync_queue import process_sync_queue, reset_stuck_tasks

__all__ = [
    "process_sync_queue",
    "reset_stuck_tasks",
]
