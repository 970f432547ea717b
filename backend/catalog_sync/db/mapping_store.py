"""
Entity identity store — source entity id to destination entity id, per tenant pair.

Tables:
    entity_mappings                 unique (source, destination, type, source id)
    custom_entity_mappings          unique (source, destination, list name)
    custom_entity_element_mappings  unique (source, destination, source list id, source element id)

There is no atomic get-or-create. Callers run check-then-create while
holding the MappingWriteLock for the tenant pair; if that discipline is
bypassed the unique key turns the second insert into MappingConflictError.
Version: 1.0.0
"""

import logging
from typing import Optional

from catalog_sync.core.constants.sync import SYNC_DIRECTION_MAIN_TO_CHILD
from catalog_sync.db.base_store import BaseStore
from catalog_sync.schemas.mappings import (
    CustomEntityElementMapping,
    CustomEntityMapping,
    EntityMapping,
)

logger = logging.getLogger("mapping_store")

ENTITY_MAPPINGS_TABLE = "entity_mappings"
CUSTOM_ENTITY_MAPPINGS_TABLE = "custom_entity_mappings"
ELEMENT_MAPPINGS_TABLE = "custom_entity_element_mappings"


class EntityIdentityStore(BaseStore):
    """Persisted identity correlations between a source and a destination tenant."""

    # ------------------------------------------------------------------
    # Generic entity mappings
    # ------------------------------------------------------------------

    def get_mapping(
        self, source_tenant: str, destination_tenant: str, entity_type: str, source_entity_id: str
    ) -> Optional[EntityMapping]:
        rows = self._select(
            ENTITY_MAPPINGS_TABLE,
            {
                "source_tenant": source_tenant,
                "destination_tenant": destination_tenant,
                "entity_type": entity_type,
                "source_entity_id": source_entity_id,
            },
            limit=1,
        )
        return EntityMapping.model_validate(rows[0]) if rows else None

    def get(
        self, source_tenant: str, destination_tenant: str, entity_type: str, source_entity_id: str
    ) -> Optional[str]:
        """Destination id mapped to source_entity_id, or None."""
        mapping = self.get_mapping(source_tenant, destination_tenant, entity_type, source_entity_id)
        return mapping.destination_entity_id if mapping else None

    def put(
        self,
        source_tenant: str,
        destination_tenant: str,
        entity_type: str,
        source_entity_id: str,
        destination_entity_id: str,
        match_field: Optional[str] = None,
        match_value: Optional[str] = None,
        sync_direction: str = SYNC_DIRECTION_MAIN_TO_CHILD,
    ) -> EntityMapping:
        """
        Record a new mapping.

        Raises:
            MappingConflictError: a mapping for this key already exists
        """
        mapping = EntityMapping(
            source_tenant=source_tenant,
            destination_tenant=destination_tenant,
            entity_type=entity_type,
            source_entity_id=source_entity_id,
            destination_entity_id=destination_entity_id,
            sync_direction=sync_direction,
            match_field=match_field,
            match_value=match_value,
        )
        row = self._insert(
            ENTITY_MAPPINGS_TABLE,
            mapping.model_dump(exclude={"id", "created_at"}),
        )
        logger.info(
            "mapping created type=%s source=%s destination=%s source_id=%s destination_id=%s",
            entity_type, source_tenant, destination_tenant, source_entity_id, destination_entity_id,
        )
        return EntityMapping.model_validate(row)

    def delete(
        self, source_tenant: str, destination_tenant: str, entity_type: str, source_entity_id: str
    ) -> bool:
        """Drop a stale mapping. Returns True if a row was removed."""
        removed = self._delete(
            ENTITY_MAPPINGS_TABLE,
            {
                "source_tenant": source_tenant,
                "destination_tenant": destination_tenant,
                "entity_type": entity_type,
                "source_entity_id": source_entity_id,
            },
        )
        logger.info(
            "mapping deleted type=%s source=%s destination=%s source_id=%s removed=%s",
            entity_type, source_tenant, destination_tenant, source_entity_id, removed,
        )
        return removed > 0

    # ------------------------------------------------------------------
    # Custom lists
    # ------------------------------------------------------------------

    def get_custom_entity_by_name(
        self, source_tenant: str, destination_tenant: str, name: str
    ) -> Optional[CustomEntityMapping]:
        rows = self._select(
            CUSTOM_ENTITY_MAPPINGS_TABLE,
            {
                "source_tenant": source_tenant,
                "destination_tenant": destination_tenant,
                "custom_entity_name": name,
            },
            limit=1,
        )
        return CustomEntityMapping.model_validate(rows[0]) if rows else None

    def get_custom_entity_by_source_id(
        self, source_tenant: str, destination_tenant: str, source_custom_entity_id: str
    ) -> Optional[CustomEntityMapping]:
        rows = self._select(
            CUSTOM_ENTITY_MAPPINGS_TABLE,
            {
                "source_tenant": source_tenant,
                "destination_tenant": destination_tenant,
                "source_custom_entity_id": source_custom_entity_id,
            },
            limit=1,
        )
        return CustomEntityMapping.model_validate(rows[0]) if rows else None

    def put_custom_entity(self, mapping: CustomEntityMapping) -> CustomEntityMapping:
        row = self._insert(
            CUSTOM_ENTITY_MAPPINGS_TABLE,
            mapping.model_dump(exclude={"id", "created_at"}),
        )
        logger.info(
            "custom entity mapping created name=%s source=%s destination=%s "
            "source_id=%s destination_id=%s auto_created=%s",
            mapping.custom_entity_name, mapping.source_tenant, mapping.destination_tenant,
            mapping.source_custom_entity_id, mapping.destination_custom_entity_id,
            mapping.auto_created,
        )
        return CustomEntityMapping.model_validate(row)

    # ------------------------------------------------------------------
    # Custom list elements
    # ------------------------------------------------------------------

    def get_element(
        self,
        source_tenant: str,
        destination_tenant: str,
        source_custom_entity_id: str,
        source_element_id: str,
    ) -> Optional[CustomEntityElementMapping]:
        rows = self._select(
            ELEMENT_MAPPINGS_TABLE,
            {
                "source_tenant": source_tenant,
                "destination_tenant": destination_tenant,
                "source_custom_entity_id": source_custom_entity_id,
                "source_element_id": source_element_id,
            },
            limit=1,
        )
        return CustomEntityElementMapping.model_validate(rows[0]) if rows else None

    def put_element(self, mapping: CustomEntityElementMapping) -> CustomEntityElementMapping:
        row = self._insert(
            ELEMENT_MAPPINGS_TABLE,
            mapping.model_dump(exclude={"id", "created_at"}),
        )
        logger.info(
            "custom entity element mapping created name=%s list=%s source=%s destination=%s "
            "source_id=%s destination_id=%s",
            mapping.element_name, mapping.destination_custom_entity_id,
            mapping.source_tenant, mapping.destination_tenant,
            mapping.source_element_id, mapping.destination_element_id,
        )
        return CustomEntityElementMapping.model_validate(row)
