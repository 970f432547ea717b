"""
Task dispatcher — executes one claimed sync task against the platform.

Handlers by identity strategy of the task's entity type:
- productfolder: resolve the folder chain
- customentity: resolve a custom list (by payload name or source id)
- product / service / bundle: fetch from source, resolve the folder and
  custom-entity attribute values, then create or update the destination
  counterpart and record its mapping

Name-resolved and unknown entity types are not syncable and fail fast
with ConfigurationError.
Version: 1.0.0
"""

import logging
from typing import Any, Dict, List, Optional

from catalog_sync.clients.platform_client import PlatformClient
from catalog_sync.core.constants.sync import SUPPORTED_OPERATIONS
from catalog_sync.core.entity_registry import (
    IDENTITY_CUSTOM_ENTITY,
    IDENTITY_MAPPING,
    EntityRegistry,
    EntityTypeConfig,
)
from catalog_sync.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from catalog_sync.db.mapping_store import EntityIdentityStore
from catalog_sync.schemas.sync import SyncTask
from catalog_sync.services.custom_entity_resolver import CustomEntityResolver
from catalog_sync.services.folder_resolver import FolderResolver
from catalog_sync.utils.locators import build_reference, extract_entity_id, reference_href
from catalog_sync.utils.platform_filters import lookup_params

logger = logging.getLogger("task_dispatcher")

# Plain fields copied as-is from the source entity
COPIED_FIELDS = (
    "name",
    "code",
    "article",
    "externalCode",
    "description",
    "vat",
    "vatEnabled",
    "useParentVat",
    "weight",
    "volume",
    "archived",
)

ATTRIBUTE_ENTITY_TYPE = "attribute"
CUSTOM_ENTITY_TYPE = "customentity"


class TaskDispatcher:
    """Routes a SyncTask to the handler for its entity type."""

    def __init__(
        self,
        client: PlatformClient,
        registry: EntityRegistry,
        identity_store: EntityIdentityStore,
        folder_resolver: FolderResolver,
        custom_entity_resolver: CustomEntityResolver,
    ) -> None:
        self._client = client
        self._registry = registry
        self._store = identity_store
        self._folders = folder_resolver
        self._custom_entities = custom_entity_resolver

    def config_for(self, task: SyncTask) -> EntityTypeConfig:
        config = self._registry.get(task.entity_type)
        if not config.syncable:
            raise ConfigurationError(f"Entity type {task.entity_type} is not syncable")
        return config

    async def dispatch(self, task: SyncTask) -> Dict[str, Any]:
        """
        Execute task and return a summary of what was done.

        Raises:
            ConfigurationError: unsupported entity type or operation
            ValidationError: task is missing its source tenant or entity id
        """
        config = self.config_for(task)
        if task.operation not in SUPPORTED_OPERATIONS:
            raise ConfigurationError(f"Unsupported operation: {task.operation}")
        if not task.source_tenant:
            raise ValidationError(f"Task {task.id} has no source tenant")

        if config.entity_type == "productfolder":
            return await self._sync_folder(task)
        if config.identity == IDENTITY_CUSTOM_ENTITY:
            return await self._sync_custom_entity(task)
        if config.identity == IDENTITY_MAPPING:
            return await self._sync_entity(task, config)
        raise ConfigurationError(f"No handler for entity type {task.entity_type}")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _sync_folder(self, task: SyncTask) -> Dict[str, Any]:
        folder_id = self._require_entity_id(task)
        destination_id = await self._folders.resolve(task.source_tenant, task.tenant_key, folder_id)
        return {"entity_type": task.entity_type, "destination_id": destination_id, "action": "resolved"}

    async def _sync_custom_entity(self, task: SyncTask) -> Dict[str, Any]:
        name = task.payload.get("name")
        if name:
            mapping = await self._custom_entities.resolve_custom_entity(
                task.source_tenant, task.tenant_key, name
            )
        else:
            mapping = await self._custom_entities.resolve_list(
                task.source_tenant, task.tenant_key, self._require_entity_id(task)
            )
        return {
            "entity_type": task.entity_type,
            "destination_id": mapping.destination_custom_entity_id,
            "action": "resolved",
        }

    async def _sync_entity(self, task: SyncTask, config: EntityTypeConfig) -> Dict[str, Any]:
        source_tenant, destination_tenant = task.source_tenant, task.tenant_key
        source_id = self._require_entity_id(task)

        params = {"expand": config.expand} if config.expand else None
        response = await self._client.get(source_tenant, f"{config.endpoint}/{source_id}", params=params)
        source = response.data

        body = await self._build_body(source_tenant, destination_tenant, config, source)

        destination_id = self._store.get(source_tenant, destination_tenant, config.entity_type, source_id)
        if destination_id:
            try:
                await self._client.put(destination_tenant, f"{config.endpoint}/{destination_id}", body)
                logger.info(
                    "entity updated type=%s source=%s destination=%s source_id=%s destination_id=%s",
                    config.entity_type, source_tenant, destination_tenant, source_id, destination_id,
                )
                return {"entity_type": config.entity_type, "destination_id": destination_id, "action": "updated"}
            except NotFoundError:
                logger.warning(
                    "stale mapping type=%s destination=%s source_id=%s stale_id=%s",
                    config.entity_type, destination_tenant, source_id, destination_id,
                )
                self._store.delete(source_tenant, destination_tenant, config.entity_type, source_id)

        match_value = source.get(config.match_field)
        existing = await self._find_existing(destination_tenant, config, match_value)
        if existing:
            destination_id = existing["id"]
            await self._client.put(destination_tenant, f"{config.endpoint}/{destination_id}", body)
            action = "matched"
        else:
            created = await self._client.post(destination_tenant, config.endpoint, body)
            destination_id = created.data["id"]
            action = "created"

        self._store.put(
            source_tenant,
            destination_tenant,
            config.entity_type,
            source_id,
            destination_id,
            match_field=config.match_field,
            match_value=match_value,
        )
        logger.info(
            "entity %s type=%s source=%s destination=%s source_id=%s destination_id=%s",
            action, config.entity_type, source_tenant, destination_tenant, source_id, destination_id,
        )
        return {"entity_type": config.entity_type, "destination_id": destination_id, "action": action}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_entity_id(task: SyncTask) -> str:
        entity_id = task.entity_id or task.payload.get("entity_id")
        if not entity_id:
            raise ValidationError(f"Task {task.id} has no entity id")
        return entity_id

    async def _build_body(
        self,
        source_tenant: str,
        destination_tenant: str,
        config: EntityTypeConfig,
        source: Dict[str, Any],
    ) -> Dict[str, Any]:
        body = {field: source[field] for field in COPIED_FIELDS if field in source}

        folder_id = extract_entity_id(reference_href(source.get("productFolder")))
        if folder_id:
            destination_folder = await self._folders.resolve(source_tenant, destination_tenant, folder_id)
            body["productFolder"] = build_reference(
                self._client.api_url, f"entity/productfolder/{destination_folder}", "productfolder"
            )

        attributes = await self._map_attributes(
            source_tenant, destination_tenant, config, source.get("attributes") or []
        )
        if attributes:
            body["attributes"] = attributes
        return body

    async def _map_attributes(
        self,
        source_tenant: str,
        destination_tenant: str,
        config: EntityTypeConfig,
        attributes: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """
        Attributes whose definition is mapped in the destination, with
        custom-entity values rewritten. Unmapped definitions are dropped.
        """
        mapped = []
        for attribute in attributes:
            source_attribute_id = attribute.get("id")
            destination_attribute_id = self._store.get(
                source_tenant, destination_tenant, ATTRIBUTE_ENTITY_TYPE, source_attribute_id
            ) if source_attribute_id else None
            if not destination_attribute_id:
                logger.debug(
                    "attribute skipped (unmapped) source=%s destination=%s attribute_id=%s",
                    source_tenant, destination_tenant, source_attribute_id,
                )
                continue

            value = attribute.get("value")
            if attribute.get("type") == CUSTOM_ENTITY_TYPE and isinstance(value, dict):
                value = await self._custom_entities.resolve_value(source_tenant, destination_tenant, value)

            mapped.append({
                **build_reference(
                    self._client.api_url,
                    f"{config.endpoint}/metadata/attributes/{destination_attribute_id}",
                    "attributemetadata",
                ),
                "value": value,
            })
        return mapped

    async def _find_existing(
        self, destination_tenant: str, config: EntityTypeConfig, match_value: Optional[str]
    ) -> Optional[Dict[str, Any]]:
        if not match_value:
            return None
        response = await self._client.get(
            destination_tenant,
            config.endpoint,
            params=lookup_params({config.match_field: match_value}, limit=1),
        )
        for row in response.data.get("rows", []):
            if row.get(config.match_field) == match_value:
                return row
        return None
