import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_sync.core.config import settings
from catalog_sync.routes.health import router as health_router
from catalog_sync.routes.queue import router as queue_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler.

    On startup, build the entity registry and verify Redis is reachable
    for the rate-limit coordinator. Workers and beat run as separate
    Celery processes.
    """
    logger.info("=== Catalog Sync Starting ===")

    from catalog_sync.container import get_entity_registry, get_redis
    registry = get_entity_registry()
    logger.info(f"Entity registry loaded: {', '.join(registry.supported_types)}")

    try:
        get_redis().ping()
        logger.info("Redis reachable, rate-limit coordination enabled")
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed (rate limits and locks unavailable): {e}")

    logger.info("=== Catalog Sync Ready ===")

    yield

    logger.info("=== Catalog Sync Shutting Down ===")


app = FastAPI(title="Catalog Sync Backend", lifespan=lifespan)
logging.basicConfig(level=settings.log_level or logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(queue_router)
