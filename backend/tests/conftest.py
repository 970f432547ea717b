"""
Pytest configuration and shared fixtures for Catalog Sync tests.

Provides in-memory fakes for the cache, the identity store and the remote
platform, mocked Supabase clients, and sample tasks.
Version: 1.0.0
"""
from unittest.mock import MagicMock

import pytest

from catalog_sync.core.entity_registry import build_default_registry

from fakes import API_URL, FakeCache, FakePlatform, InMemoryIdentityStore, make_task


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_settings():
    """Settings object with test defaults (no real credentials)."""
    from catalog_sync.core.config import Settings
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-supabase-key",
        platform_api_url=API_URL,
        platform_timeout_seconds=5,
        redis_url="redis://localhost:6379/15",
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def identity_store():
    return InMemoryIdentityStore()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def registry():
    return build_default_registry()


# ---------------------------------------------------------------------------
# Supabase (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_client():
    """Mocked SupabaseClient whose table() chain returns itself."""
    client = MagicMock()
    mock_table = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "lt", "gt", "gte", "lte",
                   "or_", "order", "limit", "range", "is_"):
        getattr(mock_table, method).return_value = mock_table
    mock_table.not_ = mock_table
    mock_table.execute.return_value = MagicMock(data=[], count=0)
    client.client.table.return_value = mock_table
    return client


@pytest.fixture
def mock_table(mock_supabase_client):
    return mock_supabase_client.client.table.return_value


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_task():
    return make_task()
