"""
Mapping schemas — persisted source-to-destination identity correlations.

Version: 1.0.0
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from catalog_sync.core.constants.sync import SYNC_DIRECTION_MAIN_TO_CHILD


class EntityMapping(BaseModel):
    """One row of entity_mappings; unique per (source, destination, type, source id)."""
    id: Optional[int] = None
    source_tenant: str
    destination_tenant: str
    entity_type: str
    source_entity_id: str
    destination_entity_id: str
    sync_direction: str = SYNC_DIRECTION_MAIN_TO_CHILD
    match_field: Optional[str] = None
    match_value: Optional[str] = None
    created_at: Optional[datetime] = None


class CustomEntityMapping(BaseModel):
    """Custom reference list correlated by exact name."""
    id: Optional[int] = None
    source_tenant: str
    destination_tenant: str
    source_custom_entity_id: str
    destination_custom_entity_id: str
    custom_entity_name: str
    auto_created: bool = True
    created_at: Optional[datetime] = None


class CustomEntityElementMapping(BaseModel):
    """Element of a custom list, scoped to its (already mapped) list."""
    id: Optional[int] = None
    source_tenant: str
    destination_tenant: str
    source_custom_entity_id: str
    destination_custom_entity_id: str
    source_element_id: str
    destination_element_id: str
    element_name: str
    auto_created: bool = True
    created_at: Optional[datetime] = None
