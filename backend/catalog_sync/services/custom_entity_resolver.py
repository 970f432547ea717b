"""
Custom entity resolver — rewrites attribute values that point at an element
of a custom reference list so they point at the destination counterpart.

Two-level identity: the list is correlated by exact name, then the element
by exact name within the resolved destination list. Existing destination
lists / elements with the same name are reused before anything is created.

Must run under the MappingWriteLock of the tenant pair.
Version: 1.0.0
"""

import logging
from typing import Any, Dict, List, Optional

from catalog_sync.clients.platform_client import PlatformClient
from catalog_sync.core.exceptions import NotFoundError
from catalog_sync.db.mapping_store import EntityIdentityStore
from catalog_sync.schemas.mappings import CustomEntityElementMapping, CustomEntityMapping
from catalog_sync.utils.locators import build_reference, locator_segments, reference_href

logger = logging.getLogger("custom_entity_resolver")

ENTITY_TYPE = "customentity"
ENDPOINT = "entity/customentity"


def _find_by_name(rows: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    for row in rows:
        if row.get("name") == name:
            return row
    return None


def _find_by_id(rows: List[Dict[str, Any]], entity_id: str) -> Optional[Dict[str, Any]]:
    for row in rows:
        if row.get("id") == entity_id:
            return row
    return None


class CustomEntityResolver:
    """Resolves custom lists and their elements between two tenants."""

    def __init__(self, client: PlatformClient, identity_store: EntityIdentityStore) -> None:
        self._client = client
        self._store = identity_store

    async def resolve_value(
        self, source_tenant: str, destination_tenant: str, value: Any
    ) -> Any:
        """
        Destination reference for an attribute value pointing at a list element.

        Values without a locator, or whose locator has fewer than two path
        segments, are returned unchanged and nothing is written.
        """
        href = reference_href(value)
        if not href:
            return value

        segments = locator_segments(href)
        if len(segments) < 2:
            return value

        source_element_id = segments[-1]
        source_list_id = segments[-2]

        list_mapping = await self.resolve_list(
            source_tenant, destination_tenant, source_list_id
        )
        element_id = await self._resolve_element(
            source_tenant, destination_tenant, list_mapping, source_element_id
        )

        reference = build_reference(
            self._client.api_url,
            f"{ENDPOINT}/{list_mapping.destination_custom_entity_id}/{element_id}",
            ENTITY_TYPE,
        )
        return {"id": element_id, **reference}

    async def resolve_custom_entity(
        self, source_tenant: str, destination_tenant: str, name: str
    ) -> CustomEntityMapping:
        """List mapping for the list called `name`, reusing or creating on both sides."""
        mapping = self._store.get_custom_entity_by_name(source_tenant, destination_tenant, name)
        if mapping:
            return mapping

        source_list = await self._get_or_create_list(source_tenant, name)
        return await self._map_list(source_tenant, destination_tenant, source_list["id"], name)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def resolve_list(
        self, source_tenant: str, destination_tenant: str, source_list_id: str
    ) -> CustomEntityMapping:
        mapping = self._store.get_custom_entity_by_source_id(
            source_tenant, destination_tenant, source_list_id
        )
        if mapping:
            return mapping

        source_lists = await self._list_lists(source_tenant)
        source_list = _find_by_id(source_lists, source_list_id)
        if source_list is None:
            raise NotFoundError(ENTITY_TYPE, source_list_id, source_tenant)

        return await self._map_list(source_tenant, destination_tenant, source_list_id, source_list["name"])

    async def _map_list(
        self, source_tenant: str, destination_tenant: str, source_list_id: str, name: str
    ) -> CustomEntityMapping:
        destination_list = await self._get_or_create_list(destination_tenant, name)
        return self._store.put_custom_entity(CustomEntityMapping(
            source_tenant=source_tenant,
            destination_tenant=destination_tenant,
            source_custom_entity_id=source_list_id,
            destination_custom_entity_id=destination_list["id"],
            custom_entity_name=name,
        ))

    async def _list_lists(self, tenant: str) -> List[Dict[str, Any]]:
        response = await self._client.get(tenant, ENDPOINT)
        return response.data.get("rows", [])

    async def _get_or_create_list(self, tenant: str, name: str) -> Dict[str, Any]:
        existing = _find_by_name(await self._list_lists(tenant), name)
        if existing:
            logger.info("custom entity exists tenant=%s id=%s name=%s", tenant, existing["id"], name)
            return existing

        response = await self._client.post(tenant, ENDPOINT, {"name": name})
        logger.info("custom entity created tenant=%s id=%s name=%s", tenant, response.data.get("id"), name)
        return response.data

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    async def _resolve_element(
        self,
        source_tenant: str,
        destination_tenant: str,
        list_mapping: CustomEntityMapping,
        source_element_id: str,
    ) -> str:
        mapping = self._store.get_element(
            source_tenant,
            destination_tenant,
            list_mapping.source_custom_entity_id,
            source_element_id,
        )
        if mapping:
            return mapping.destination_element_id

        source_elements = await self._list_elements(source_tenant, list_mapping.source_custom_entity_id)
        source_element = _find_by_id(source_elements, source_element_id)
        if source_element is None:
            raise NotFoundError(f"{ENTITY_TYPE} element", source_element_id, source_tenant)

        name = source_element["name"]
        destination_list_id = list_mapping.destination_custom_entity_id
        destination_element = _find_by_name(
            await self._list_elements(destination_tenant, destination_list_id), name
        )
        if destination_element is None:
            response = await self._client.post(
                destination_tenant, f"{ENDPOINT}/{destination_list_id}", {"name": name}
            )
            destination_element = response.data
            logger.info(
                "custom entity element created tenant=%s list=%s id=%s name=%s",
                destination_tenant, destination_list_id, destination_element.get("id"), name,
            )

        self._store.put_element(CustomEntityElementMapping(
            source_tenant=source_tenant,
            destination_tenant=destination_tenant,
            source_custom_entity_id=list_mapping.source_custom_entity_id,
            destination_custom_entity_id=destination_list_id,
            source_element_id=source_element_id,
            destination_element_id=destination_element["id"],
            element_name=name,
        ))
        return destination_element["id"]

    async def _list_elements(self, tenant: str, list_id: str) -> List[Dict[str, Any]]:
        response = await self._client.get(tenant, f"{ENDPOINT}/{list_id}")
        return response.data.get("rows", [])
