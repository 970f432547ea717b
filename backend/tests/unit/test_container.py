"""
Unit tests for the lazy DI container.
Version: 1.0.0
"""
import pytest
from unittest.mock import patch

from catalog_sync import container


GETTERS = [
    name for name in dir(container)
    if name.startswith("get_") and hasattr(getattr(container, name), "cache_clear")
]


@pytest.fixture(autouse=True)
def fresh_container(mock_settings):
    for name in GETTERS:
        getattr(container, name).cache_clear()
    with patch("catalog_sync.container.settings", mock_settings):
        yield
    for name in GETTERS:
        getattr(container, name).cache_clear()


@pytest.mark.unit
class TestContainer:
    """Tests for container.py DI factory functions."""

    def test_singleton_behavior(self):
        """Calling same getter twice returns identical instance."""
        assert container.get_task_queue() is container.get_task_queue()

    def test_registry_shared_by_reference(self):
        registry = container.get_entity_registry()
        assert container.get_queue_processor()._registry is registry
        assert container.get_task_dispatcher()._registry is registry
        assert container.get_name_lookup_service()._registry is registry

    def test_resolvers_share_client_and_store(self):
        client = container.get_platform_client()
        store = container.get_identity_store()

        for resolver in (container.get_folder_resolver(), container.get_custom_entity_resolver()):
            assert resolver._client is client
            assert resolver._store is store

    def test_platform_client_uses_settings(self, mock_settings):
        client = container.get_platform_client()
        assert client.api_url == mock_settings.platform_api_url
        assert client._rate_limits is container.get_rate_limit_coordinator()

    def test_processor_settings(self, mock_settings):
        processor = container.get_queue_processor()
        assert processor._batch_size == mock_settings.sync_queue_batch_size
        assert processor._lock_defer_seconds == mock_settings.mapping_lock_defer_seconds
        assert processor._lock is container.get_mapping_lock()

    def test_monitor_and_queue_share_store(self):
        assert container.get_queue_monitor()._store is container.get_task_store()
        assert container.get_task_queue()._store is container.get_task_store()
