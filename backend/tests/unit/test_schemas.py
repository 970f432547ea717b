"""
Unit tests for Pydantic schemas.

Tests valid construction and validation errors for the sync queue,
mapping and rate-limit schemas.

Version: 1.0.0
"""
import pytest

from pydantic import ValidationError

from catalog_sync.schemas.mappings import CustomEntityMapping, EntityMapping
from catalog_sync.schemas.rate_limit import RateLimitInfo
from catalog_sync.schemas.sync import EnqueueTaskRequest, SyncTask, TaskFilters

from fakes import CHILD, MAIN, make_task


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Sync queue schemas
# ---------------------------------------------------------------------------

class TestSyncTask:

    def test_defaults(self):
        task = SyncTask(id=1, tenant_key=CHILD, entity_type="product", operation="create")
        assert task.is_pending()
        assert task.priority == 5
        assert task.max_attempts == 3
        assert task.payload == {}

    def test_budget_tenants_source_then_destination(self):
        assert make_task().budget_tenants == [MAIN, CHILD]

    def test_budget_tenants_without_source(self):
        assert make_task(source_tenant=None).budget_tenants == [CHILD]

    def test_budget_tenants_same_tenant_once(self):
        assert make_task(source_tenant=CHILD).budget_tenants == [CHILD]

    def test_can_retry(self):
        assert make_task(attempts=2, max_attempts=3).can_retry()
        assert not make_task(attempts=3, max_attempts=3).can_retry()

    def test_iso_timestamps_parsed(self):
        task = make_task(scheduled_at="2026-03-01T12:00:00+00:00")
        assert task.scheduled_at.year == 2026


class TestRequestsAndFilters:

    def test_enqueue_defaults(self):
        request = EnqueueTaskRequest(tenant_key=CHILD, entity_type="product")
        assert request.operation == "create"
        assert request.delay_seconds == 0

    def test_enqueue_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            EnqueueTaskRequest(tenant_key=CHILD, entity_type="product", delay_seconds=-1)

    @pytest.mark.parametrize("entity_type", ["bogus", "organization", "state"])
    def test_enqueue_rejects_unsyncable_entity_type(self, entity_type):
        with pytest.raises(ValidationError):
            EnqueueTaskRequest(tenant_key=CHILD, entity_type=entity_type)

    def test_enqueue_rejects_unsupported_operation(self):
        with pytest.raises(ValidationError):
            EnqueueTaskRequest(tenant_key=CHILD, entity_type="product", operation="delete")

    @pytest.mark.parametrize("priority", [0, 11])
    def test_enqueue_priority_bounds(self, priority):
        with pytest.raises(ValidationError):
            EnqueueTaskRequest(tenant_key=CHILD, entity_type="product", priority=priority)

    def test_enqueue_accepts_update_of_folder(self):
        request = EnqueueTaskRequest(tenant_key=CHILD, entity_type="productfolder", operation="update", priority=10)
        assert request.priority == 10

    def test_filters_defaults(self):
        filters = TaskFilters()
        assert (filters.sort_by, filters.sort_order) == ("priority", "desc")
        assert (filters.page, filters.per_page) == (1, 50)

    @pytest.mark.parametrize("page,per_page", [(0, 50), (1, 0), (1, 501)])
    def test_filters_pagination_bounds(self, page, per_page):
        with pytest.raises(ValidationError):
            TaskFilters(page=page, per_page=per_page)


# ---------------------------------------------------------------------------
# Mapping and rate-limit schemas
# ---------------------------------------------------------------------------

class TestMappingSchemas:

    def test_entity_mapping_direction_default(self):
        mapping = EntityMapping(
            source_tenant=MAIN, destination_tenant=CHILD, entity_type="product",
            source_entity_id="a", destination_entity_id="b",
        )
        assert mapping.sync_direction == "main_to_child"

    def test_custom_entity_mapping_requires_name(self):
        with pytest.raises(ValidationError):
            CustomEntityMapping(
                source_tenant=MAIN, destination_tenant=CHILD,
                source_custom_entity_id="L1", destination_custom_entity_id="DL",
            )


class TestRateLimitInfo:

    def test_has_budget(self):
        assert RateLimitInfo(remaining=0).has_budget()
        assert RateLimitInfo(limit=45).has_budget()
        assert not RateLimitInfo(retry_after=1000).has_budget()
