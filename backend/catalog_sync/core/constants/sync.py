"""
Sync constants — queue statuses, priorities, and rate-limit defaults.

Version: 1.0.0
"""

# Task lifecycle
STATUS_PENDING: str = "pending"
STATUS_PROCESSING: str = "processing"
STATUS_COMPLETED: str = "completed"
STATUS_FAILED: str = "failed"

TASK_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)

# Only these states may be removed by an operator
DELETABLE_STATUSES = (STATUS_PENDING, STATUS_FAILED)

DEFAULT_PRIORITY: int = 5
HIGH_PRIORITY: int = 10
MIN_PRIORITY: int = 1
MAX_PRIORITY: int = HIGH_PRIORITY

# Operations a sync task may carry
SUPPORTED_OPERATIONS = ("create", "update")

# Requests kept in reserve so admission never drains the upstream budget
SAFETY_THRESHOLD: int = 5

# Remaining requests at or below which a tenant is considered exhausted
CRITICAL_REMAINING: int = 1

# Fallback wait when the platform gives no reset time
DEFAULT_RETRY_AFTER_SECONDS: int = 60

# Must exceed the platform's 60s reporting window
RATE_LIMIT_CACHE_TTL: int = 120

# Prefetch of shared dependencies (attributes, price types) per batch
BASE_PREFETCH_COST: int = 5

# Platform page size for list endpoints
PAGE_SIZE: int = 100

# Operator dashboard thresholds
RATE_LIMIT_WARNING_REMAINING: int = 15
RATE_LIMIT_EXHAUSTED_REMAINING: int = 5

RECENT_FAILURES_LIMIT: int = 10

SYNC_DIRECTION_MAIN_TO_CHILD: str = "main_to_child"
