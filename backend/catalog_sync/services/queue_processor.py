"""
Queue processor — one admission-controlled pass over the sync queue.

For each claimed task (already interleaved across tenants):
1. Skip tenants found exhausted earlier in this batch (defer the task)
2. Check the request budget of every tenant the task spends
   (source and destination); defer when any is short
3. Hold the mapping write lock of the tenant pair; defer when held.
   The lock is renewed while the dispatch runs; if renewal fails the
   dispatch is cancelled and the task deferred like a held lock
4. Dispatch and record the outcome

Outcomes:
- success                 -> completed
- RateLimitError (429)    -> deferred by retry_after, not an attempt;
                             the tenant is treated as exhausted for the batch
- LockUnavailableError    -> deferred by the lock interval, not an attempt
- NonRetryableError       -> failed immediately
- anything else           -> attempt counted, requeued with backoff
                             until max_attempts
Version: 1.0.0
"""

import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from catalog_sync.core.exceptions import (
    LockUnavailableError,
    NonRetryableError,
    RateLimitError,
)
from catalog_sync.core.entity_registry import EntityRegistry
from catalog_sync.schemas.sync import SyncTask
from catalog_sync.services.rate_limit_coordinator import RateLimitCoordinator
from catalog_sync.services.task_dispatcher import TaskDispatcher
from catalog_sync.services.task_queue import TaskQueue
from catalog_sync.utils.mapping_lock import MappingWriteLock

logger = logging.getLogger("queue_processor")

DEFAULT_BATCH_SIZE = 50
DEFAULT_LOCK_DEFER_SECONDS = 15
MIN_DEFER_SECONDS = 1


class QueueProcessor:
    """Claims a batch of due tasks and runs each one under admission control."""

    def __init__(
        self,
        queue: TaskQueue,
        dispatcher: TaskDispatcher,
        rate_limits: RateLimitCoordinator,
        lock: MappingWriteLock,
        registry: EntityRegistry,
        batch_size: int = DEFAULT_BATCH_SIZE,
        lock_defer_seconds: int = DEFAULT_LOCK_DEFER_SECONDS,
    ) -> None:
        self._queue = queue
        self._dispatcher = dispatcher
        self._rate_limits = rate_limits
        self._lock = lock
        self._registry = registry
        self._batch_size = batch_size
        self._lock_defer_seconds = lock_defer_seconds

    async def process_batch(self) -> Dict[str, Any]:
        """Run one pass; returns counters for the task result."""
        tasks = self._queue.claim_ready(self._batch_size)
        stats = {"claimed": len(tasks), "completed": 0, "failed": 0, "requeued": 0, "deferred": 0}
        if not tasks:
            return stats

        # tenant -> seconds until its budget is expected back
        exhausted: Dict[str, int] = {}

        for task in tasks:
            outcome = await self._process_task(task, exhausted)
            stats[outcome] += 1

        logger.info(
            "batch done claimed=%s completed=%s failed=%s requeued=%s deferred=%s exhausted_tenants=%s",
            stats["claimed"], stats["completed"], stats["failed"], stats["requeued"],
            stats["deferred"], len(exhausted),
        )
        return stats

    async def _process_task(self, task: SyncTask, exhausted: Dict[str, int]) -> str:
        blocked = next((t for t in task.budget_tenants if t in exhausted), None)
        if blocked is not None:
            self._queue.defer(task, exhausted[blocked], f"rate limit exhausted for tenant {blocked}")
            return "deferred"

        retry_after = self._admit(task, exhausted)
        if retry_after is not None:
            self._queue.defer(task, retry_after, "insufficient rate limit budget")
            return "deferred"

        source_tenant = task.source_tenant or task.tenant_key
        try:
            result = await self._dispatch_locked(task, source_tenant)
        except LockUnavailableError as e:
            self._queue.defer(task, self._lock_defer_seconds, str(e))
            return "deferred"
        except RateLimitError as e:
            tenant = e.tenant_id or source_tenant
            self._mark_exhausted(tenant, e.retry_after, exhausted)
            self._queue.defer(task, max(e.retry_after, MIN_DEFER_SECONDS), str(e), e.rate_limit_info)
            return "deferred"
        except NonRetryableError as e:
            self._queue.record_failure(task, str(e), retryable=False)
            return "failed"
        except Exception as e:
            logger.exception("task error id=%s type=%s entity=%s", task.id, task.entity_type, task.entity_id)
            updated = self._queue.record_failure(task, str(e), retryable=True)
            return "failed" if updated is not None and updated.is_failed() else "requeued"

        self._queue.complete(task)
        logger.debug("task result id=%s result=%s", task.id, result)
        return "completed"

    async def _dispatch_locked(self, task: SyncTask, source_tenant: str) -> Dict[str, Any]:
        destination_tenant = task.tenant_key
        with self._lock.hold(source_tenant, destination_tenant) as token:
            dispatch = asyncio.ensure_future(self._dispatcher.dispatch(task))
            keeper = asyncio.ensure_future(self._keep_lock(source_tenant, destination_tenant, token))
            try:
                await asyncio.wait({dispatch, keeper}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                keeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await keeper
                if not dispatch.done():
                    dispatch.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await dispatch

            if dispatch.cancelled():
                raise LockUnavailableError(self._lock.lock_key(source_tenant, destination_tenant))
            return dispatch.result()

    async def _keep_lock(self, source_tenant: str, destination_tenant: str, token: str) -> None:
        """Renew the pair lock until cancelled. Returns once the lock is lost."""
        while True:
            await asyncio.sleep(self._lock.renew_interval)
            if not self._lock.extend(source_tenant, destination_tenant, token):
                logger.error(
                    "mapping lock lost source=%s destination=%s", source_tenant, destination_tenant
                )
                return

    def _admit(self, task: SyncTask, exhausted: Dict[str, int]) -> Optional[int]:
        """None when every tenant has budget, else seconds to wait."""
        config = self._registry.get(task.entity_type) if task.entity_type in self._registry else None
        cost = self._rate_limits.estimate_cost(
            task.entity_type, 1, config.include_subresource if config else False
        )

        wait: Optional[int] = None
        for tenant in task.budget_tenants:
            availability = self._rate_limits.check_availability(tenant, cost)
            if availability.available:
                continue
            seconds = max(availability.retry_after_seconds, MIN_DEFER_SECONDS)
            self._mark_exhausted(tenant, seconds, exhausted)
            wait = seconds if wait is None else max(wait, seconds)
        return wait

    def _mark_exhausted(self, tenant: str, seconds: int, exhausted: Dict[str, int]) -> None:
        if tenant in exhausted:
            return
        seconds = max(seconds, MIN_DEFER_SECONDS)
        exhausted[tenant] = seconds
        postponed = self._queue.postpone_tenant(tenant, seconds)
        logger.warning(
            "tenant exhausted tenant=%s retry_after=%s postponed_tasks=%s",
            tenant, seconds, postponed,
        )
