"""
Rate-limit schemas — parsed response headers, cached budgets, admission results.

Version: 1.0.0
"""
from typing import Optional

from pydantic import BaseModel


class RateLimitInfo(BaseModel):
    """Rate-limit signal extracted from one platform response."""
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset: Optional[int] = None            # epoch seconds
    retry_interval: Optional[int] = None   # milliseconds
    retry_after: Optional[int] = None      # milliseconds, only on 429

    def has_budget(self) -> bool:
        return self.limit is not None or self.remaining is not None


class RateBudget(BaseModel):
    """Latest observed request budget for one tenant (cached with TTL)."""
    tenant_key: str
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[int] = None
    retry_interval_ms: Optional[int] = None
    last_updated: float


class AvailabilityResult(BaseModel):
    available: bool
    remaining: Optional[int] = None
    retry_after_seconds: int = 0


class RateLimitStatus(BaseModel):
    """Operator view of one tenant's budget."""
    tenant_key: str
    status: str  # 'exhausted', 'warning', 'ok', 'unknown'
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[int] = None
    retry_interval_ms: Optional[int] = None
    last_updated: Optional[float] = None
    usage_percent: Optional[float] = None
    seconds_until_reset: Optional[int] = None
