"""
Celery configuration — broker, task routes, beat schedule.

Configures the Redis broker, the sync_queue / default queues and the
periodic queue passes.

Note: On Windows, Celery's prefork pool doesn't work properly.
Use --pool=solo or --pool=threads on Windows.

=============================================================================
RUNNING WORKERS
=============================================================================

    Worker (queue passes + maintenance):
        celery -A catalog_sync.celery_app worker -Q sync_queue,default -l info -n sync@%h

    Celery Beat (scheduler):
        celery -A catalog_sync.celery_app beat -l info

Several workers may run the same queue: tasks are claimed with a guarded
update, budgets are shared through Redis, and mapping writes are
serialized per tenant pair.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================
    SYNC_QUEUE_ENABLED: "true" or "false" — master on/off for queue passes (default: true)
    SYNC_QUEUE_INTERVAL_SECONDS: Seconds between queue passes (default: 30)
    SYNC_QUEUE_BATCH_SIZE: Tasks claimed per pass (default: 50)
    SYNC_STUCK_THRESHOLD_MINUTES: Age after which processing tasks are released (default: 30)
Version: 1.0.0
"""
import logging
import platform

from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from catalog_sync.core.config import settings

logger = logging.getLogger(__name__)

IS_WINDOWS = platform.system() == "Windows"

SYNC_QUEUE_ENABLED = settings.sync_queue_enabled
SYNC_QUEUE_INTERVAL_SECONDS = settings.sync_queue_interval_seconds
SYNC_STUCK_THRESHOLD_MINUTES = settings.sync_stuck_threshold_minutes


def _build_beat_schedule() -> dict:
    """Periodic queue passes, empty when the queue is disabled."""
    if not SYNC_QUEUE_ENABLED:
        logger.info("sync queue disabled (SYNC_QUEUE_ENABLED=false), no beat schedule")
        return {}

    return {
        "process-sync-queue": {
            "task": "tasks.sync_queue.process_sync_queue",
            "schedule": float(SYNC_QUEUE_INTERVAL_SECONDS),
            "options": {"queue": "sync_queue"},
        },
        "reset-stuck-tasks": {
            "task": "tasks.sync_queue.reset_stuck_tasks",
            "schedule": crontab(minute="*/10"),
            "options": {"queue": "default"},
        },
    }


celery_app = Celery(
    "catalog_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "catalog_sync.celery_app.tasks.sync_queue",
    ]
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.celery_sync_concurrency,

    task_queues=(
        Queue("sync_queue"),
        Queue("default"),
    ),
    task_routes={
        "tasks.sync_queue.process_sync_queue": {"queue": "sync_queue"},
        "tasks.sync_queue.reset_stuck_tasks": {"queue": "default"},
    },

    beat_schedule=_build_beat_schedule(),

    # Result expiration
    result_expires=3600,  # 1 hour

    worker_pool="solo" if IS_WINDOWS else "prefork",

    broker_transport_options={"visibility_timeout": 3600},

    # Custom log format
    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s] [%(task_name)s] %(message)s",
)
