"""
Rate-limit coordinator — per-tenant request budgets shared by all workers.

Every platform response is recorded here (latest limit / remaining / reset
per tenant) and every task asks here before it is dispatched. Budgets live
in the shared TTL cache, so all worker processes see the same state.

This is a read-then-decide admission check, not a token bucket: two
workers can both see enough budget and both proceed. SAFETY_THRESHOLD
requests are held back to absorb that overshoot and the measurement lag
between a response and the next check.

Budgets expire after RATE_LIMIT_CACHE_TTL (longer than the platform's own
60s window) so a stale reading never keeps granting or denying admission.
Version: 1.0.0
"""
import logging
import math
import time
from typing import Callable, Iterable, List, Optional

from catalog_sync.core.constants.sync import (
    BASE_PREFETCH_COST,
    CRITICAL_REMAINING,
    DEFAULT_RETRY_AFTER_SECONDS,
    PAGE_SIZE,
    RATE_LIMIT_CACHE_TTL,
    RATE_LIMIT_EXHAUSTED_REMAINING,
    RATE_LIMIT_WARNING_REMAINING,
    SAFETY_THRESHOLD,
)
from catalog_sync.schemas.rate_limit import (
    AvailabilityResult,
    RateBudget,
    RateLimitInfo,
    RateLimitStatus,
)
from catalog_sync.utils.cache import KeyValueCache

logger = logging.getLogger("rate_limit_coordinator")

_STATUS_ORDER = {"exhausted": 1, "warning": 2, "ok": 3, "unknown": 4}


def _short(tenant_key: str) -> str:
    return f"{tenant_key[:8]}..."


class RateLimitCoordinator:
    """Tracks the latest observed request budget per tenant."""

    def __init__(
        self,
        cache: KeyValueCache,
        ttl: int = RATE_LIMIT_CACHE_TTL,
        safety_threshold: int = SAFETY_THRESHOLD,
        default_retry_after: int = DEFAULT_RETRY_AFTER_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self._ttl = ttl
        self._safety_threshold = safety_threshold
        self._default_retry_after = default_retry_after
        self._clock = clock

    @staticmethod
    def cache_key(tenant_key: str) -> str:
        return f"rate_limit:{tenant_key}"

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_response(
        self,
        tenant_key: str,
        info: RateLimitInfo,
        observed_at: Optional[float] = None,
    ) -> Optional[RateBudget]:
        """
        Overwrite the cached budget for tenant_key and refresh its TTL.

        Responses without budget headers are ignored. A reading older than
        the cached one (a slow response that finished late) is dropped:
        the newest last_updated wins.

        Returns:
            The stored budget, or None if nothing was written
        """
        if not info.has_budget():
            return None

        observed_at = self._clock() if observed_at is None else observed_at
        current = self.get_state(tenant_key)
        if current is not None and current.last_updated > observed_at:
            logger.debug(
                "rate limit update skipped (stale) tenant=%s observed_at=%s cached_at=%s",
                _short(tenant_key), observed_at, current.last_updated,
            )
            return current

        budget = RateBudget(
            tenant_key=tenant_key,
            limit=info.limit,
            remaining=info.remaining,
            reset_at=info.reset,
            retry_interval_ms=info.retry_interval,
            last_updated=observed_at,
        )
        self._cache.put(self.cache_key(tenant_key), budget.model_dump(), self._ttl)

        logger.debug(
            "rate limit updated tenant=%s remaining=%s limit=%s",
            _short(tenant_key), budget.remaining, budget.limit,
        )
        return budget

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def check_availability(self, tenant_key: str, cost: int = 1) -> AvailabilityResult:
        """
        Is there budget for `cost` more requests to tenant_key?

        available iff remaining >= cost + safety threshold. No data is
        treated as available so a cold cache never stalls the queue.
        """
        budget = self.get_state(tenant_key)
        if budget is None or budget.remaining is None:
            return AvailabilityResult(available=True, remaining=None, retry_after_seconds=0)

        available = budget.remaining >= cost + self._safety_threshold

        retry_after = 0
        if not available:
            if budget.reset_at is not None:
                retry_after = max(0, int(budget.reset_at - self._clock()))
            else:
                retry_after = self._default_retry_after

        logger.debug(
            "rate limit check tenant=%s cost=%s remaining=%s available=%s retry_after=%s",
            _short(tenant_key), cost, budget.remaining, available, retry_after,
        )
        return AvailabilityResult(
            available=available,
            remaining=budget.remaining,
            retry_after_seconds=retry_after,
        )

    def estimate_cost(self, entity_type: str, count: int, include_subresource: bool = False) -> int:
        """
        Requests a batch of `count` entities will spend on the source tenant.

        Base prefetch (attributes, price types) plus one page fetch per
        PAGE_SIZE entities, plus the same again for subresources (variants).
        """
        pages = int(math.ceil(max(count, 0) / PAGE_SIZE))
        cost = BASE_PREFETCH_COST + pages
        if include_subresource:
            cost += pages
        return cost

    def is_critical(self, tenant_key: str) -> bool:
        budget = self.get_state(tenant_key)
        if budget is None or budget.remaining is None:
            return False
        return budget.remaining <= CRITICAL_REMAINING

    def usage_percent(self, tenant_key: str) -> Optional[float]:
        budget = self.get_state(tenant_key)
        if budget is None or budget.limit is None or budget.remaining is None:
            return None
        if budget.limit == 0:
            return 100.0
        return (budget.limit - budget.remaining) / budget.limit * 100

    # ------------------------------------------------------------------
    # State / monitoring
    # ------------------------------------------------------------------

    def get_state(self, tenant_key: str) -> Optional[RateBudget]:
        data = self._cache.get(self.cache_key(tenant_key))
        if not data:
            return None
        try:
            return RateBudget.model_validate(data)
        except ValueError:
            logger.warning("discarding malformed rate limit entry tenant=%s", _short(tenant_key))
            return None

    def clear(self, tenant_key: str) -> None:
        self._cache.forget(self.cache_key(tenant_key))
        logger.info("rate limit cache cleared tenant=%s", _short(tenant_key))

    def get_status(self, tenant_keys: Iterable[str]) -> List[RateLimitStatus]:
        """Operator view of budgets, exhausted tenants first."""
        statuses = []
        now = self._clock()
        for tenant_key in dict.fromkeys(tenant_keys):
            budget = self.get_state(tenant_key)
            if budget is None or budget.remaining is None:
                statuses.append(RateLimitStatus(tenant_key=tenant_key, status="unknown"))
                continue

            if budget.remaining <= RATE_LIMIT_EXHAUSTED_REMAINING:
                status = "exhausted"
            elif budget.remaining <= RATE_LIMIT_WARNING_REMAINING:
                status = "warning"
            else:
                status = "ok"

            statuses.append(RateLimitStatus(
                tenant_key=tenant_key,
                status=status,
                limit=budget.limit,
                remaining=budget.remaining,
                reset_at=budget.reset_at,
                retry_interval_ms=budget.retry_interval_ms,
                last_updated=budget.last_updated,
                usage_percent=self.usage_percent(tenant_key),
                seconds_until_reset=(
                    max(0, int(budget.reset_at - now)) if budget.reset_at else None
                ),
            ))

        statuses.sort(key=lambda s: _STATUS_ORDER.get(s.status, 5))
        return statuses
