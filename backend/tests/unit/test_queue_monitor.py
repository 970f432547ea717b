"""
Unit tests for QueueMonitor — listing, statistics and rate-limit status.
Version: 1.0.0
"""
import pytest
from unittest.mock import MagicMock

from catalog_sync.schemas.sync import TaskFilters
from catalog_sync.services.queue_monitor import QueueMonitor
from catalog_sync.services.rate_limit_coordinator import RateLimitCoordinator
from catalog_sync.schemas.rate_limit import RateLimitInfo

from fakes import CHILD, MAIN, make_task


pytestmark = pytest.mark.unit


@pytest.fixture
def store():
    store = MagicMock()
    store.fetch_status_rows.return_value = []
    store.fetch_recent_failed.return_value = []
    store.count_scheduled.return_value = 0
    return store


@pytest.fixture
def coordinator(fake_cache):
    return RateLimitCoordinator(fake_cache, clock=lambda: 1_700_000_000.0)


@pytest.fixture
def monitor(store, coordinator):
    return QueueMonitor(store, coordinator)


class TestListTasks:

    def test_wraps_page(self, monitor, store):
        store.query.return_value = ([make_task(id=1), make_task(id=2)], 12)
        filters = TaskFilters(status="pending", page=2, per_page=2)

        response = monitor.list_tasks(filters)

        store.query.assert_called_once_with(filters)
        assert response.total == 12
        assert response.page == 2
        assert response.per_page == 2
        assert [t.id for t in response.tasks] == [1, 2]


class TestStatistics:

    def test_empty_queue_has_every_status(self, monitor):
        stats = monitor.get_statistics()

        assert stats.total == 0
        assert stats.by_status == {"pending": 0, "processing": 0, "completed": 0, "failed": 0}
        assert stats.by_source_tenant == {}
        assert stats.recent_failed == []

    def test_breakdowns(self, monitor, store):
        store.fetch_status_rows.return_value = [
            {"status": "pending", "source_tenant": MAIN, "entity_type": "product"},
            {"status": "pending", "source_tenant": MAIN, "entity_type": "productfolder"},
            {"status": "failed", "source_tenant": MAIN, "entity_type": "product"},
            {"status": "completed", "source_tenant": None, "entity_type": "product"},
        ]
        store.fetch_recent_failed.return_value = [make_task(id=9, status="failed", error="boom")]
        store.count_scheduled.return_value = 3

        stats = monitor.get_statistics()

        assert stats.total == 4
        assert stats.by_status["pending"] == 2
        assert stats.by_status["processing"] == 0
        assert stats.by_source_tenant == {
            MAIN: {"pending": 2, "failed": 1},
            "unknown": {"completed": 1},
        }
        assert stats.by_entity_type["product"] == {"pending": 1, "failed": 1, "completed": 1}
        assert stats.recent_failed[0].id == 9
        assert stats.recent_failed[0].error == "boom"
        assert stats.scheduled_count == 3


class TestRateLimitStatus:

    def test_explicit_tenants(self, monitor, coordinator, store):
        coordinator.record_response(MAIN, RateLimitInfo(limit=45, remaining=2))

        statuses = monitor.get_rate_limit_status([CHILD, MAIN])

        assert [(s.tenant_key, s.status) for s in statuses] == [(MAIN, "exhausted"), (CHILD, "unknown")]
        store.distinct_tenants.assert_not_called()

    def test_defaults_to_queued_tenants(self, monitor, store):
        store.distinct_tenants.return_value = [MAIN]

        statuses = monitor.get_rate_limit_status()

        assert [s.tenant_key for s in statuses] == [MAIN]
