"""
Base task class — lifecycle logging and the async bridge for queue tasks.

Queue tasks are thin: they fetch a service from the container and run one
coroutine. Retry policy is declared per task (autoretry_for), never here.
Version: 1.0.0
"""
import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from celery import Task

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Counters reported by a queue pass, logged in this order
PASS_COUNTERS = ("claimed", "completed", "failed", "requeued", "deferred")


class BaseTask(Task):
    """Base task for the sync queue workers."""

    abstract = True

    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True
    max_retries = 3

    track_started = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Task {self.name}[{task_id}] failed kwargs={kwargs}: {exc}")

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(f"Task {self.name}[{task_id}] retry {self.request.retries}/{self.max_retries}: {exc}")

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(f"Task {self.name}[{task_id}] done {_summarize(retval)}")


def _summarize(retval: Any) -> str:
    if not isinstance(retval, dict):
        return str(retval)
    counters = [f"{key}={retval[key]}" for key in PASS_COUNTERS if key in retval]
    if not counters:
        return str(retval)
    return f"status={retval.get('status')} " + " ".join(counters)


def run_async(coro: Awaitable[T]) -> T:
    """
    Run a coroutine to completion from a sync Celery task.

    A fresh event loop per call; prefork workers never share one.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        asyncio.set_event_loop(None)
        loop.close()
