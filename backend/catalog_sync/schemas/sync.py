"""
Sync queue schemas — tasks, filters, statistics, operator responses.

Version: 1.0.0
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from catalog_sync.core.constants.sync import (
    DEFAULT_PRIORITY,
    MAX_PRIORITY,
    MIN_PRIORITY,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    SUPPORTED_OPERATIONS,
)
from catalog_sync.core.entity_registry import SYNCABLE_ENTITY_TYPES


class SyncTask(BaseModel):
    """One row of the sync_queue table."""
    id: int
    tenant_key: str
    source_tenant: Optional[str] = None
    entity_type: str
    entity_id: Optional[str] = None
    operation: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: int = DEFAULT_PRIORITY
    status: str = STATUS_PENDING
    attempts: int = 0
    max_attempts: int = 3
    scheduled_at: Optional[datetime] = None
    error: Optional[str] = None
    rate_limit_info: Optional[Dict[str, Any]] = None
    retry_of_task_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    def is_processing(self) -> bool:
        return self.status == STATUS_PROCESSING

    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def is_failed(self) -> bool:
        return self.status == STATUS_FAILED

    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts

    @property
    def budget_tenants(self) -> List[str]:
        """Tenants whose request budget this task spends."""
        tenants = [self.source_tenant] if self.source_tenant else []
        if self.tenant_key not in tenants:
            tenants.append(self.tenant_key)
        return tenants


class EnqueueTaskRequest(BaseModel):
    tenant_key: str
    source_tenant: Optional[str] = None
    entity_type: str
    entity_id: Optional[str] = None
    operation: str = "create"
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: int = Field(default=DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    delay_seconds: int = Field(default=0, ge=0)

    @field_validator("entity_type")
    @classmethod
    def validate_entity_type(cls, v: str) -> str:
        if v not in SYNCABLE_ENTITY_TYPES:
            raise ValueError(f"Entity type {v} cannot be synced. Allowed: {', '.join(SYNCABLE_ENTITY_TYPES)}")
        return v

    @field_validator("operation")
    @classmethod
    def validate_operation(cls, v: str) -> str:
        if v not in SUPPORTED_OPERATIONS:
            raise ValueError(f"Unsupported operation: {v}")
        return v


class TaskFilters(BaseModel):
    """Conjunctive filters for the queue query surface."""
    tenant_key: Optional[str] = None
    source_tenant: Optional[str] = None
    status: Optional[str] = None
    entity_type: Optional[str] = None
    operation: Optional[str] = None
    priority: Optional[int] = None
    scheduled_only: bool = False
    errors_only: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: str = "priority"
    sort_order: str = "desc"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=50, ge=1, le=500)


class TaskListResponse(BaseModel):
    tasks: List[SyncTask]
    total: int
    page: int
    per_page: int


class FailedTaskSummary(BaseModel):
    id: int
    tenant_key: str
    source_tenant: Optional[str] = None
    entity_type: str
    entity_id: Optional[str] = None
    error: Optional[str] = None
    updated_at: Optional[datetime] = None


class QueueStatistics(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_source_tenant: Dict[str, Dict[str, int]]
    by_entity_type: Dict[str, Dict[str, int]]
    recent_failed: List[FailedTaskSummary]
    scheduled_count: int
