import os
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


class Settings(BaseModel):
    # Supabase (sync queue + mapping tables)
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_service_role_key: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    supabase_timeout_seconds: int = int(os.getenv("SUPABASE_TIMEOUT_SECONDS", "30"))

    # Remote inventory platform
    platform_api_url: str = os.getenv(
        "PLATFORM_API_URL",
        "https://api.moysklad.ru/api/remap/1.2",
    )
    platform_timeout_seconds: float = float(os.getenv("PLATFORM_TIMEOUT_SECONDS", "30"))

    # Redis (rate-limit budgets, mapping write locks)
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    celery_sync_concurrency: int = int(os.getenv("CELERY_SYNC_CONCURRENCY", "4"))

    # Rate-limit coordination
    rate_limit_cache_ttl: int = int(os.getenv("RATE_LIMIT_CACHE_TTL", "120"))
    rate_limit_safety_threshold: int = int(os.getenv("RATE_LIMIT_SAFETY_THRESHOLD", "5"))
    rate_limit_default_retry_after: int = int(os.getenv("RATE_LIMIT_DEFAULT_RETRY_AFTER", "60"))

    # Sync queue
    sync_queue_enabled: bool = os.getenv("SYNC_QUEUE_ENABLED", "true").lower() == "true"
    sync_queue_batch_size: int = int(os.getenv("SYNC_QUEUE_BATCH_SIZE", "50"))
    sync_queue_interval_seconds: int = int(os.getenv("SYNC_QUEUE_INTERVAL_SECONDS", "30"))
    sync_task_max_attempts: int = int(os.getenv("SYNC_TASK_MAX_ATTEMPTS", "3"))
    sync_retry_backoff_minutes: int = int(os.getenv("SYNC_RETRY_BACKOFF_MINUTES", "5"))
    sync_stuck_threshold_minutes: int = int(os.getenv("SYNC_STUCK_THRESHOLD_MINUTES", "30"))

    # Per tenant-pair mapping write lock
    mapping_lock_ttl: int = int(os.getenv("MAPPING_LOCK_TTL", "300"))
    mapping_lock_defer_seconds: int = int(os.getenv("MAPPING_LOCK_DEFER_SECONDS", "15"))

    # Operator API
    cors_allow_origins: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
        if origin.strip()
    ]
    log_level: Optional[str] = os.getenv("LOG_LEVEL", "INFO")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = Settings()
