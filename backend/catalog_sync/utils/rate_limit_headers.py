"""
Rate-limit header parsing for platform responses.

Header contract:
- X-RateLimit-Limit: request ceiling for the window
- X-RateLimit-Remaining: requests left in the window
- X-Lognex-Reset: window reset time, epoch MILLISECONDS
- X-Lognex-Retry-TimeInterval: window length in milliseconds
- X-Lognex-Retry-After: wait before retrying, milliseconds (429 only)

Usage:
    from catalog_sync.utils.rate_limit_headers import extract_rate_limit_info

    info = extract_rate_limit_info(response.headers)
    coordinator.record_response(tenant_id, info)
Version: 1.0.0
"""
import logging
import math
import time
from typing import Any, Mapping, Optional

from catalog_sync.core.constants.sync import DEFAULT_RETRY_AFTER_SECONDS
from catalog_sync.schemas.rate_limit import RateLimitInfo

logger = logging.getLogger("rate_limit_headers")

HEADER_LIMIT = "x-ratelimit-limit"
HEADER_REMAINING = "x-ratelimit-remaining"
HEADER_RESET = "x-lognex-reset"
HEADER_RETRY_INTERVAL = "x-lognex-retry-timeinterval"
HEADER_RETRY_AFTER = "x-lognex-retry-after"


def _header_value(value: Any) -> str:
    """Headers may arrive as lists (multi-value) or plain strings."""
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else ""
    return str(value)


def _parse_int(headers: Mapping[str, Any], name: str) -> Optional[int]:
    if name not in headers:
        return None
    raw = _header_value(headers[name]).strip()
    try:
        return int(raw)
    except ValueError:
        logger.warning("rate limit header unparsable name=%s value=%r", name, raw)
        return None


def extract_rate_limit_info(headers: Optional[Mapping[str, Any]]) -> RateLimitInfo:
    """Build RateLimitInfo from response headers (case-insensitive)."""
    if not headers:
        return RateLimitInfo()

    normalized = {str(key).lower(): value for key, value in headers.items()}

    reset_ms = _parse_int(normalized, HEADER_RESET)
    info = RateLimitInfo(
        limit=_parse_int(normalized, HEADER_LIMIT),
        remaining=_parse_int(normalized, HEADER_REMAINING),
        reset=reset_ms // 1000 if reset_ms and reset_ms > 0 else None,
        retry_interval=_parse_int(normalized, HEADER_RETRY_INTERVAL),
        retry_after=_parse_int(normalized, HEADER_RETRY_AFTER),
    )
    logger.debug("rate limit info extracted %s", info.model_dump())
    return info


def calculate_delay(info: RateLimitInfo, now: Optional[float] = None) -> int:
    """
    Seconds to wait before the next attempt.

    Retry-After (429) wins, then time until reset, then the 60s default.
    """
    if info.retry_after is not None and info.retry_after > 0:
        return int(math.ceil(info.retry_after / 1000))

    if info.reset is not None and info.reset > 0:
        current = time.time() if now is None else now
        return max(0, int(info.reset - current))

    return DEFAULT_RETRY_AFTER_SECONDS
