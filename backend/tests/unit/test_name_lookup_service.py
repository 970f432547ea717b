"""
Unit tests for NameLookupService (exact-name identity, no mapping rows).
Version: 1.0.0
"""
import pytest

from catalog_sync.core.exceptions import ConfigurationError, NotFoundError
from catalog_sync.services.name_lookup_service import NameLookupService

from fakes import CHILD, MAIN


pytestmark = pytest.mark.unit


@pytest.fixture
def service(platform, registry):
    return NameLookupService(platform, registry)


class TestFindByName:

    @pytest.mark.asyncio
    async def test_exact_match_only(self, service, platform):
        platform.add(CHILD, "entity/organization", {"id": "o1", "name": "Acme Ltd"})
        platform.add(CHILD, "entity/organization", {"id": "o2", "name": "Acme"})

        assert (await service.find_by_name(CHILD, "organization", "Acme"))["id"] == "o2"
        assert await service.find_by_name(CHILD, "organization", "acme") is None

    @pytest.mark.asyncio
    async def test_states_read_from_metadata(self, service, platform):
        platform.add(CHILD, "entity/customerorder", {
            "id": "metadata",
            "states": [{"id": "s1", "name": "New"}, {"id": "s2", "name": "Shipped"}],
        })

        assert (await service.find_by_name(CHILD, "state", "Shipped"))["id"] == "s2"
        assert ("GET", CHILD, "entity/customerorder/metadata") in platform.calls

    @pytest.mark.asyncio
    async def test_mapping_types_rejected(self, service):
        with pytest.raises(ConfigurationError):
            await service.find_by_name(CHILD, "product", "Widget")


class TestResolve:

    @pytest.mark.asyncio
    async def test_resolves_destination_id(self, service, platform, identity_store):
        platform.add(MAIN, "entity/employee", {"id": "e-main", "name": "Jo Smith"})
        platform.add(CHILD, "entity/employee", {"id": "e-child", "name": "Jo Smith"})

        assert await service.resolve(MAIN, CHILD, "employee", "e-main") == "e-child"
        assert platform.posts() == []

    @pytest.mark.asyncio
    async def test_no_destination_match(self, service, platform):
        platform.add(MAIN, "entity/saleschannel", {"id": "sc1", "name": "Web"})

        with pytest.raises(NotFoundError):
            await service.resolve(MAIN, CHILD, "saleschannel", "sc1")

    @pytest.mark.asyncio
    async def test_source_without_name(self, service, platform):
        platform.add(MAIN, "entity/employee", {"id": "e-main"})

        with pytest.raises(NotFoundError):
            await service.resolve(MAIN, CHILD, "employee", "e-main")
