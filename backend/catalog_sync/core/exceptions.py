"""
Custom exception hierarchy for Catalog Sync.

Exceptions are categorized as:
- RetryableError: Transient errors; the queue requeues the task (or defers it
  for rate limits) instead of failing it
- NonRetryableError: Permanent errors that fail the task immediately

The queue processor branches on these two bases, and Celery tasks use
them for autoretry_for / dont_autoretry_for.
"""
from typing import Any, Dict, Optional


class CatalogSyncException(Exception):
    """Base exception for Catalog Sync."""
    pass


# ============================================
# RETRYABLE ERRORS
# ============================================
class RetryableError(CatalogSyncException):
    """
    Base class for errors that should trigger retry.

    Use this for transient errors where retrying might succeed:
    - Network timeouts
    - 5xx responses from the platform
    - Rate limits (with deferral)
    """
    pass


class ExternalAPIError(RetryableError):
    """
    Transient error from the remote platform (5xx or transport failure).

    Counts as an attempt; the task is requeued until max_attempts.
    """
    def __init__(self, service: str, message: str, status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API error: {message}")


class RateLimitError(RetryableError):
    """
    Rate limit exceeded (HTTP 429 or negative admission check).

    Never counted as a failed attempt; the task is deferred by retry_after.
    """
    def __init__(
        self,
        service: str,
        retry_after: int = 60,
        rate_limit_info: Optional[Dict[str, Any]] = None,
        tenant_id: Optional[str] = None,
    ):
        self.service = service
        self.retry_after = retry_after
        self.rate_limit_info = rate_limit_info or {}
        self.tenant_id = tenant_id
        super().__init__(f"{service} rate limited. Retry after {retry_after}s")

    @property
    def remaining(self) -> Optional[int]:
        return self.rate_limit_info.get("remaining")


class DatabaseTransientError(RetryableError):
    """
    Transient database error.

    Examples: connection pool exhausted, deadlock, temporary unavailability
    """
    pass


class LockUnavailableError(RetryableError):
    """Another worker holds the mapping write lock for this tenant pair."""
    def __init__(self, lock_key: str, holder: Optional[str] = None):
        self.lock_key = lock_key
        self.holder = holder
        super().__init__(f"Lock {lock_key} held by {holder or 'unknown'}")


# ============================================
# NON-RETRYABLE ERRORS
# ============================================
class NonRetryableError(CatalogSyncException):
    """
    Base class for errors that should NOT trigger retry.

    Use this for permanent errors where retrying won't help:
    - Missing source entities or mappings
    - Unsupported entity types
    - Rejected requests (4xx)
    """
    pass


class ValidationError(NonRetryableError):
    """Invalid input data - retrying won't help."""
    pass


class NotFoundError(NonRetryableError):
    """Referenced source entity or required mapping is missing."""
    def __init__(self, entity_type: str, entity_id: str, tenant_id: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.tenant_id = tenant_id
        where = f" in tenant {tenant_id}" if tenant_id else ""
        super().__init__(f"{entity_type} {entity_id} not found{where}")


class ConfigurationError(NonRetryableError):
    """Unsupported entity type or missing configuration."""
    pass


class RemoteRequestError(NonRetryableError):
    """
    The platform rejected the request (4xx other than 404/429).

    Sending the same payload again cannot succeed.
    """
    def __init__(self, service: str, message: str, status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} rejected request [HTTP {status_code}]: {message}")


class MappingConflictError(NonRetryableError):
    """A mapping for this key already exists (check-then-create was bypassed)."""
    pass


class TaskNotFoundError(NonRetryableError):
    """Sync task id does not exist."""
    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__(f"Sync task {task_id} not found")


class InvalidTaskStateError(NonRetryableError):
    """Operation not permitted for the task's current status."""
    def __init__(self, task_id: int, status: str, operation: str):
        self.task_id = task_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} task {task_id} in status '{status}'")
