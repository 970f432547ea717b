"""
Name lookup — identity for entity classes that are never created in the
destination (organization, employee, sales channel, order state).

No mapping rows are written: the source record's name is read and the
destination record with exactly that name is used.
"""

import logging
from typing import Any, Dict, List, Optional

from catalog_sync.clients.platform_client import PlatformClient
from catalog_sync.core.entity_registry import IDENTITY_NAME, EntityRegistry, EntityTypeConfig
from catalog_sync.core.exceptions import ConfigurationError, NotFoundError

logger = logging.getLogger("name_lookup_service")

STATES_SUFFIX = "/states"


class NameLookupService:
    """Exact-name correlation between tenants."""

    def __init__(self, client: PlatformClient, registry: EntityRegistry) -> None:
        self._client = client
        self._registry = registry

    def _config(self, entity_type: str) -> EntityTypeConfig:
        config = self._registry.get(entity_type)
        if config.identity != IDENTITY_NAME:
            raise ConfigurationError(f"{entity_type} is not resolved by name")
        return config

    async def _list(self, tenant: str, config: EntityTypeConfig) -> List[Dict[str, Any]]:
        # states are embedded in the document metadata, not a paged collection
        if config.endpoint.endswith(STATES_SUFFIX):
            response = await self._client.get(tenant, config.endpoint[: -len(STATES_SUFFIX)])
            return response.data.get("states", [])
        response = await self._client.get(tenant, config.endpoint)
        return response.data.get("rows", [])

    async def find_by_name(self, tenant: str, entity_type: str, name: str) -> Optional[Dict[str, Any]]:
        """Record of entity_type in tenant whose name equals `name` exactly."""
        config = self._config(entity_type)
        for row in await self._list(tenant, config):
            if row.get("name") == name:
                return row
        return None

    async def resolve(
        self, source_tenant: str, destination_tenant: str, entity_type: str, source_id: str
    ) -> str:
        """
        Destination id of the record with the same name as source_id.

        Raises:
            NotFoundError: no destination record carries that name
        """
        config = self._config(entity_type)
        response = await self._client.get(source_tenant, f"{config.endpoint}/{source_id}")
        name = response.data.get("name")
        if not name:
            raise NotFoundError(entity_type, source_id, source_tenant)

        match = await self.find_by_name(destination_tenant, entity_type, name)
        if match is None:
            logger.warning(
                "no destination match type=%s source=%s destination=%s source_id=%s name=%s",
                entity_type, source_tenant, destination_tenant, source_id, name,
            )
            raise NotFoundError(entity_type, name, destination_tenant)

        logger.info(
            "resolved by name type=%s source=%s destination=%s source_id=%s destination_id=%s",
            entity_type, source_tenant, destination_tenant, source_id, match["id"],
        )
        return match["id"]
