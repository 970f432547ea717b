"""
Lazy DI container — singleton access to clients, stores, and services.

Works in both FastAPI (async) and Celery (sync) contexts. The entity
registry is built once here and passed by reference to every consumer.
Import individual getters to avoid circular imports.
Version: 1.0.0
"""

from functools import lru_cache

import redis

from catalog_sync.core.config import settings
from catalog_sync.core.entity_registry import build_default_registry
from catalog_sync.clients.supabase_client import SupabaseClient
from catalog_sync.clients.platform_client import PlatformClient
from catalog_sync.db.account_store import AccountStore
from catalog_sync.db.mapping_store import EntityIdentityStore
from catalog_sync.db.task_store import TaskStore
from catalog_sync.services.custom_entity_resolver import CustomEntityResolver
from catalog_sync.services.folder_resolver import FolderResolver
from catalog_sync.services.name_lookup_service import NameLookupService
from catalog_sync.services.queue_monitor import QueueMonitor
from catalog_sync.services.queue_processor import QueueProcessor
from catalog_sync.services.rate_limit_coordinator import RateLimitCoordinator
from catalog_sync.services.task_dispatcher import TaskDispatcher
from catalog_sync.services.task_queue import TaskQueue
from catalog_sync.utils.cache import RedisCache
from catalog_sync.utils.mapping_lock import MappingWriteLock


# -- Infrastructure --------------------------------------------------------

@lru_cache(maxsize=1)
def get_entity_registry():
    return build_default_registry()


@lru_cache(maxsize=1)
def get_redis():
    return redis.from_url(settings.redis_url)


@lru_cache(maxsize=1)
def get_supabase_client():
    return SupabaseClient(settings)


@lru_cache(maxsize=1)
def get_rate_limit_coordinator():
    return RateLimitCoordinator(
        cache=RedisCache(get_redis()),
        ttl=settings.rate_limit_cache_ttl,
        safety_threshold=settings.rate_limit_safety_threshold,
        default_retry_after=settings.rate_limit_default_retry_after,
    )


@lru_cache(maxsize=1)
def get_mapping_lock():
    return MappingWriteLock(get_redis(), ttl=settings.mapping_lock_ttl)


# -- DB Stores -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_account_store():
    return AccountStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_identity_store():
    return EntityIdentityStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_task_store():
    return TaskStore(get_supabase_client())


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_platform_client():
    return PlatformClient(
        settings,
        token_provider=get_account_store().get_access_token,
        rate_limits=get_rate_limit_coordinator(),
    )


# -- Resolvers -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_folder_resolver():
    return FolderResolver(get_platform_client(), get_identity_store())


@lru_cache(maxsize=1)
def get_custom_entity_resolver():
    return CustomEntityResolver(get_platform_client(), get_identity_store())


@lru_cache(maxsize=1)
def get_name_lookup_service():
    return NameLookupService(get_platform_client(), get_entity_registry())


# -- Queue -----------------------------------------------------------------

@lru_cache(maxsize=1)
def get_task_queue():
    return TaskQueue(
        get_task_store(),
        max_attempts=settings.sync_task_max_attempts,
        backoff_minutes=settings.sync_retry_backoff_minutes,
    )


@lru_cache(maxsize=1)
def get_task_dispatcher():
    return TaskDispatcher(
        client=get_platform_client(),
        registry=get_entity_registry(),
        identity_store=get_identity_store(),
        folder_resolver=get_folder_resolver(),
        custom_entity_resolver=get_custom_entity_resolver(),
    )


@lru_cache(maxsize=1)
def get_queue_processor():
    return QueueProcessor(
        queue=get_task_queue(),
        dispatcher=get_task_dispatcher(),
        rate_limits=get_rate_limit_coordinator(),
        lock=get_mapping_lock(),
        registry=get_entity_registry(),
        batch_size=settings.sync_queue_batch_size,
        lock_defer_seconds=settings.mapping_lock_defer_seconds,
    )


@lru_cache(maxsize=1)
def get_queue_monitor():
    return QueueMonitor(get_task_store(), get_rate_limit_coordinator())
