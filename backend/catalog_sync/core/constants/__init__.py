"""
Constants package — re-exports from domain-specific modules.

Usage:
    from catalog_sync.core.constants.sync import SAFETY_THRESHOLD
    # or:
    from catalog_sync.core.constants import sync
Version: 1.0.0
"""

from catalog_sync.core.constants import sync
from catalog_sync.core.constants.sync import (
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_COMPLETED,
    STATUS_FAILED,
    TASK_STATUSES,
    DELETABLE_STATUSES,
    DEFAULT_PRIORITY,
    SAFETY_THRESHOLD,
    CRITICAL_REMAINING,
    DEFAULT_RETRY_AFTER_SECONDS,
    RATE_LIMIT_CACHE_TTL,
    BASE_PREFETCH_COST,
    PAGE_SIZE,
)

__all__ = [
    "sync",
    "STATUS_PENDING",
    "STATUS_PROCESSING",
    "STATUS_COMPLETED",
    "STATUS_FAILED",
    "TASK_STATUSES",
    "DELETABLE_STATUSES",
    "DEFAULT_PRIORITY",
    "SAFETY_THRESHOLD",
    "CRITICAL_REMAINING",
    "DEFAULT_RETRY_AFTER_SECONDS",
    "RATE_LIMIT_CACHE_TTL",
    "BASE_PREFETCH_COST",
    "PAGE_SIZE",
]
