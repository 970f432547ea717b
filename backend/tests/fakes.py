"""
In-memory test doubles shared by the unit and integration suites.

FakeCache, InMemoryIdentityStore and FakePlatform mirror the interfaces of
RedisCache, EntityIdentityStore and PlatformClient closely enough to run
the resolvers and dispatcher end to end without Redis, Supabase or HTTP.
Version: 1.0.0
"""
import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from catalog_sync.clients.platform_client import PlatformResponse
from catalog_sync.core.exceptions import MappingConflictError, NotFoundError
from catalog_sync.schemas.mappings import CustomEntityElementMapping, CustomEntityMapping
from catalog_sync.schemas.sync import SyncTask


API_URL = "https://api.test/api/remap/1.2"
MAIN = "main-tenant-0001"
CHILD = "child-tenant-0001"


class FakeCache:
    """Dict-backed KeyValueCache; records the TTL of each write."""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, key):
        return self.data.get(key)

    def put(self, key, value, ttl_seconds):
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    def forget(self, key):
        self.data.pop(key, None)
        self.ttls.pop(key, None)


class InMemoryIdentityStore:
    """EntityIdentityStore semantics (including unique keys) without a database."""

    def __init__(self):
        self.mappings: Dict[Tuple[str, str, str, str], str] = {}
        self.lists: List[CustomEntityMapping] = []
        self.elements: List[CustomEntityElementMapping] = []
        self.writes = 0

    def get(self, source_tenant, destination_tenant, entity_type, source_entity_id):
        return self.mappings.get((source_tenant, destination_tenant, entity_type, source_entity_id))

    def put(self, source_tenant, destination_tenant, entity_type, source_entity_id,
            destination_entity_id, match_field=None, match_value=None, sync_direction="main_to_child"):
        key = (source_tenant, destination_tenant, entity_type, source_entity_id)
        if key in self.mappings:
            raise MappingConflictError(f"duplicate {key}")
        self.mappings[key] = destination_entity_id
        self.writes += 1

    def delete(self, source_tenant, destination_tenant, entity_type, source_entity_id):
        return self.mappings.pop((source_tenant, destination_tenant, entity_type, source_entity_id), None) is not None

    def get_custom_entity_by_name(self, source_tenant, destination_tenant, name):
        return next((m for m in self.lists if (m.source_tenant, m.destination_tenant, m.custom_entity_name)
                     == (source_tenant, destination_tenant, name)), None)

    def get_custom_entity_by_source_id(self, source_tenant, destination_tenant, source_custom_entity_id):
        return next((m for m in self.lists if (m.source_tenant, m.destination_tenant, m.source_custom_entity_id)
                     == (source_tenant, destination_tenant, source_custom_entity_id)), None)

    def put_custom_entity(self, mapping):
        if self.get_custom_entity_by_name(mapping.source_tenant, mapping.destination_tenant,
                                          mapping.custom_entity_name):
            raise MappingConflictError(mapping.custom_entity_name)
        self.lists.append(mapping)
        self.writes += 1
        return mapping

    def get_element(self, source_tenant, destination_tenant, source_custom_entity_id, source_element_id):
        return next((m for m in self.elements
                     if (m.source_tenant, m.destination_tenant, m.source_custom_entity_id, m.source_element_id)
                     == (source_tenant, destination_tenant, source_custom_entity_id, source_element_id)), None)

    def put_element(self, mapping):
        if self.get_element(mapping.source_tenant, mapping.destination_tenant,
                            mapping.source_custom_entity_id, mapping.source_element_id):
            raise MappingConflictError(mapping.source_element_id)
        self.elements.append(mapping)
        self.writes += 1
        return mapping


class FakePlatform:
    """
    In-memory stand-in for PlatformClient.

    Records live in collections keyed by (tenant, collection path). A GET on
    a collection path (or a custom list's element path) returns {"rows": [...]};
    a GET on "<collection>/<id>" returns the record or raises NotFoundError.
    Filters are ignored: callers must match rows themselves.
    """

    COLLECTIONS = {
        "entity/productfolder",
        "entity/customentity",
        "entity/product",
        "entity/service",
        "entity/bundle",
        "entity/organization",
        "entity/employee",
        "entity/saleschannel",
    }

    api_url = API_URL

    def __init__(self):
        self.records: Dict[Tuple[str, str], Dict[str, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self._ids = itertools.count(1)

    @staticmethod
    def _is_collection(path: str) -> bool:
        if path in FakePlatform.COLLECTIONS:
            return True
        parts = path.split("/")
        return len(parts) == 3 and parts[:2] == ["entity", "customentity"]

    def add(self, tenant: str, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        self.records.setdefault((tenant, collection), {})[record["id"]] = record
        if collection == "entity/customentity":
            self.records.setdefault((tenant, f"{collection}/{record['id']}"), {})
        return record

    def rows(self, tenant: str, collection: str) -> List[Dict[str, Any]]:
        return list(self.records.get((tenant, collection), {}).values())

    def posts(self, tenant: Optional[str] = None) -> List[Tuple[str, str, str]]:
        return [c for c in self.calls if c[0] == "POST" and (tenant is None or c[1] == tenant)]

    async def get(self, tenant, path, params=None):
        self.calls.append(("GET", tenant, path))
        if self._is_collection(path):
            return PlatformResponse(data={"rows": self.rows(tenant, path)})
        collection, _, entity_id = path.rpartition("/")
        record = self.records.get((tenant, collection), {}).get(entity_id)
        if record is None:
            raise NotFoundError("resource", path, tenant)
        return PlatformResponse(data=record)

    async def post(self, tenant, path, body):
        self.calls.append(("POST", tenant, path))
        new_id = f"{tenant[:5]}-{next(self._ids)}"
        record = {"id": new_id, **body, "meta": {"href": f"{API_URL}/{path}/{new_id}"}}
        self.add(tenant, path, record)
        return PlatformResponse(data=record, status=200)

    async def put(self, tenant, path, body):
        self.calls.append(("PUT", tenant, path))
        collection, _, entity_id = path.rpartition("/")
        record = self.records.get((tenant, collection), {}).get(entity_id)
        if record is None:
            raise NotFoundError("resource", path, tenant)
        record.update(body)
        return PlatformResponse(data=record)


def folder(folder_id: str, name: str, parent_id: Optional[str] = None, **extra) -> Dict[str, Any]:
    """Source folder record, optionally under parent_id."""
    record = {"id": folder_id, "name": name, **extra}
    if parent_id:
        record["productFolder"] = {
            "meta": {"href": f"{API_URL}/entity/productfolder/{parent_id}", "type": "productfolder"}
        }
    return record


def make_task(**overrides) -> SyncTask:
    data = {
        "id": 1,
        "tenant_key": CHILD,
        "source_tenant": MAIN,
        "entity_type": "product",
        "entity_id": "prod-1",
        "operation": "create",
        "priority": 5,
        "status": "processing",
        "attempts": 0,
        "max_attempts": 3,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return SyncTask(**data)
