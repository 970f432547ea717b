"""
Folder resolver — maps a source product folder (and its ancestor chain)
to a destination folder, creating what is missing top-down.

resolve() is idempotent: a second call for the same folder finds the
persisted mapping and returns the same destination id without writes.
A failure anywhere in the chain propagates; ancestors resolved before the
failure keep their mappings, the failing node and its descendants get none.

Must run under the MappingWriteLock of the tenant pair.
Version: 1.0.0
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from catalog_sync.clients.platform_client import PlatformClient
from catalog_sync.core.exceptions import NotFoundError
from catalog_sync.db.mapping_store import EntityIdentityStore
from catalog_sync.utils.locators import build_reference, extract_entity_id, reference_href
from catalog_sync.utils.platform_filters import lookup_params

logger = logging.getLogger("folder_resolver")

ENTITY_TYPE = "productfolder"
ENDPOINT = "entity/productfolder"


def parent_folder_id(folder: Dict[str, Any]) -> Optional[str]:
    """Source id of the folder's parent, None for a root folder."""
    return extract_entity_id(reference_href(folder.get("productFolder")))


def order_parents_first(folders: Dict[str, Dict[str, Any]]) -> List[str]:
    """Folder ids ordered so that every parent precedes its children."""
    ordered: List[str] = []
    seen: set = set()

    def visit(folder_id: str) -> None:
        if folder_id in seen or folder_id not in folders:
            return
        seen.add(folder_id)
        parent_id = parent_folder_id(folders[folder_id])
        if parent_id:
            visit(parent_id)
        ordered.append(folder_id)

    for folder_id in folders:
        visit(folder_id)
    return ordered


class FolderResolver:
    """Resolves product folder hierarchies between a source and destination tenant."""

    def __init__(self, client: PlatformClient, identity_store: EntityIdentityStore) -> None:
        self._client = client
        self._store = identity_store

    async def resolve(self, source_tenant: str, destination_tenant: str, folder_id: str) -> str:
        """Destination folder id for source folder_id, creating the chain as needed."""
        return await self._resolve(source_tenant, destination_tenant, folder_id, {})

    async def resolve_for_entities(
        self,
        source_tenant: str,
        destination_tenant: str,
        entities: Iterable[Dict[str, Any]],
    ) -> Dict[str, str]:
        """
        Resolve every folder referenced by a batch of entities.

        Distinct folders and their ancestors are loaded once, ordered
        parents first, then resolved one by one.

        Returns:
            Map of source folder id -> destination folder id
        """
        folder_ids = []
        for entity in entities:
            folder_id = extract_entity_id(reference_href(entity.get("productFolder")))
            if folder_id and folder_id not in folder_ids:
                folder_ids.append(folder_id)

        if not folder_ids:
            return {}

        loaded: Dict[str, Dict[str, Any]] = {}
        for folder_id in folder_ids:
            await self._load_with_ancestors(source_tenant, folder_id, loaded)

        logger.info(
            "resolving folders source=%s destination=%s referenced=%s loaded=%s",
            source_tenant, destination_tenant, len(folder_ids), len(loaded),
        )

        resolved: Dict[str, str] = {}
        for folder_id in order_parents_first(loaded):
            resolved[folder_id] = await self._resolve(source_tenant, destination_tenant, folder_id, loaded)
        return resolved

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _resolve(
        self,
        source_tenant: str,
        destination_tenant: str,
        folder_id: str,
        loaded: Dict[str, Dict[str, Any]],
    ) -> str:
        existing = self._store.get(source_tenant, destination_tenant, ENTITY_TYPE, folder_id)
        if existing:
            if await self._destination_exists(destination_tenant, existing):
                return existing
            logger.warning(
                "stale folder mapping source=%s destination=%s source_id=%s stale_id=%s",
                source_tenant, destination_tenant, folder_id, existing,
            )
            self._store.delete(source_tenant, destination_tenant, ENTITY_TYPE, folder_id)

        folder = await self._fetch_source(source_tenant, folder_id, loaded)

        destination_parent_id = None
        source_parent_id = parent_folder_id(folder)
        if source_parent_id:
            destination_parent_id = await self._resolve(
                source_tenant, destination_tenant, source_parent_id, loaded
            )

        name = folder["name"]
        match = await self._find_existing(destination_tenant, name, destination_parent_id)
        if match:
            destination_id = match["id"]
            logger.info(
                "folder matched by name source=%s destination=%s source_id=%s destination_id=%s name=%s",
                source_tenant, destination_tenant, folder_id, destination_id, name,
            )
        else:
            body: Dict[str, Any] = {"name": name}
            if folder.get("externalCode"):
                body["externalCode"] = folder["externalCode"]
            if destination_parent_id:
                body["productFolder"] = build_reference(
                    self._client.api_url, f"{ENDPOINT}/{destination_parent_id}", ENTITY_TYPE
                )
            response = await self._client.post(destination_tenant, ENDPOINT, body)
            destination_id = response.data["id"]
            logger.info(
                "folder created source=%s destination=%s source_id=%s destination_id=%s name=%s parent=%s",
                source_tenant, destination_tenant, folder_id, destination_id, name, destination_parent_id,
            )

        self._store.put(
            source_tenant,
            destination_tenant,
            ENTITY_TYPE,
            folder_id,
            destination_id,
            match_field="name",
            match_value=name,
        )
        return destination_id

    async def _destination_exists(self, destination_tenant: str, folder_id: str) -> bool:
        try:
            await self._client.get(destination_tenant, f"{ENDPOINT}/{folder_id}")
        except NotFoundError:
            return False
        return True

    async def _fetch_source(
        self, source_tenant: str, folder_id: str, loaded: Dict[str, Dict[str, Any]]
    ) -> Dict[str, Any]:
        if folder_id not in loaded:
            response = await self._client.get(source_tenant, f"{ENDPOINT}/{folder_id}")
            loaded[folder_id] = response.data
        return loaded[folder_id]

    async def _load_with_ancestors(
        self, source_tenant: str, folder_id: str, loaded: Dict[str, Dict[str, Any]]
    ) -> None:
        while folder_id and folder_id not in loaded:
            folder = await self._fetch_source(source_tenant, folder_id, loaded)
            folder_id = parent_folder_id(folder)

    async def _find_existing(
        self, destination_tenant: str, name: str, parent_id: Optional[str]
    ) -> Optional[Dict[str, Any]]:
        """Folder with exactly this name directly under parent_id (root if None)."""
        conditions = {"name": name}
        if parent_id:
            conditions["productFolder"] = f"{self._client.api_url}/{ENDPOINT}/{parent_id}"

        response = await self._client.get(
            destination_tenant, ENDPOINT, params=lookup_params(conditions, limit=100)
        )
        for folder in response.data.get("rows", []):
            if folder.get("name") != name:
                continue
            if parent_folder_id(folder) == parent_id:
                return folder
        return None
