"""
Health routes — liveness and readiness probes.

Readiness requires Redis: without it there are no shared rate-limit
budgets and no mapping write locks, so workers must not claim tasks.
Version: 1.0.0
"""
import logging

import redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from catalog_sync.container import get_redis

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Liveness: the process is up."""
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(client: redis.Redis = Depends(get_redis)):
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Readiness check failed, Redis unreachable: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "redis": "unreachable"})
    return {"status": "ready", "redis": "ok"}
