"""
Unit tests for CustomEntityResolver.

Covers locator passthrough, two-level list/element resolution, reuse of
destination lists and elements by name, and idempotence.
Version: 1.0.0
"""
import pytest

from catalog_sync.core.exceptions import NotFoundError
from catalog_sync.services.custom_entity_resolver import CustomEntityResolver

from fakes import API_URL, CHILD, MAIN


pytestmark = pytest.mark.unit

LISTS = "entity/customentity"


def element_value(list_id, element_id, name="Red"):
    return {
        "name": name,
        "meta": {
            "href": f"{API_URL}/{LISTS}/{list_id}/{element_id}",
            "type": "customentity",
        },
    }


@pytest.fixture
def resolver(platform, identity_store):
    return CustomEntityResolver(platform, identity_store)


@pytest.fixture
def source_list(platform):
    platform.add(MAIN, LISTS, {"id": "L1", "name": "Colours"})
    platform.add(MAIN, f"{LISTS}/L1", {"id": "E1", "name": "Red"})
    platform.add(MAIN, f"{LISTS}/L1", {"id": "E2", "name": "Blue"})


class TestPassthrough:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [
        "plain text",
        42,
        None,
        {"name": "no meta"},
        {"meta": {"type": "customentity"}},
        {"meta": {"href": "E1"}},
    ])
    async def test_value_returned_unchanged(self, resolver, platform, identity_store, value):
        assert await resolver.resolve_value(MAIN, CHILD, value) == value
        assert platform.calls == []
        assert identity_store.writes == 0


class TestResolveValue:

    @pytest.mark.asyncio
    async def test_creates_list_and_element(self, resolver, platform, identity_store, source_list):
        result = await resolver.resolve_value(MAIN, CHILD, element_value("L1", "E1"))

        destination_lists = platform.rows(CHILD, LISTS)
        assert [row["name"] for row in destination_lists] == ["Colours"]
        destination_list_id = destination_lists[0]["id"]

        destination_elements = platform.rows(CHILD, f"{LISTS}/{destination_list_id}")
        assert [row["name"] for row in destination_elements] == ["Red"]
        element_id = destination_elements[0]["id"]

        assert result["id"] == element_id
        assert result["meta"]["href"] == f"{API_URL}/{LISTS}/{destination_list_id}/{element_id}"
        assert result["meta"]["type"] == "customentity"

        list_mapping = identity_store.get_custom_entity_by_source_id(MAIN, CHILD, "L1")
        assert list_mapping.destination_custom_entity_id == destination_list_id
        assert list_mapping.custom_entity_name == "Colours"
        element_mapping = identity_store.get_element(MAIN, CHILD, "L1", "E1")
        assert element_mapping.destination_element_id == element_id
        assert element_mapping.element_name == "Red"

    @pytest.mark.asyncio
    async def test_second_call_is_idempotent(self, resolver, platform, identity_store, source_list):
        first = await resolver.resolve_value(MAIN, CHILD, element_value("L1", "E1"))
        calls_before = len(platform.calls)
        writes_before = identity_store.writes

        second = await resolver.resolve_value(MAIN, CHILD, element_value("L1", "E1"))

        assert second == first
        assert len(platform.calls) == calls_before
        assert identity_store.writes == writes_before

    @pytest.mark.asyncio
    async def test_second_element_reuses_list(self, resolver, platform, identity_store, source_list):
        red = await resolver.resolve_value(MAIN, CHILD, element_value("L1", "E1"))
        blue = await resolver.resolve_value(MAIN, CHILD, element_value("L1", "E2", "Blue"))

        assert red["id"] != blue["id"]
        assert len(platform.rows(CHILD, LISTS)) == 1
        assert len(identity_store.lists) == 1
        assert len(identity_store.elements) == 2

    @pytest.mark.asyncio
    async def test_reuses_existing_destination_list_and_element(
        self, resolver, platform, identity_store, source_list
    ):
        platform.add(CHILD, LISTS, {"id": "DL", "name": "Colours"})
        platform.add(CHILD, f"{LISTS}/DL", {"id": "DE", "name": "Red"})

        result = await resolver.resolve_value(MAIN, CHILD, element_value("L1", "E1"))

        assert result["id"] == "DE"
        assert result["meta"]["href"] == f"{API_URL}/{LISTS}/DL/DE"
        assert platform.posts() == []

    @pytest.mark.asyncio
    async def test_query_string_ignored(self, resolver, source_list):
        value = {"meta": {"href": f"{API_URL}/{LISTS}/L1/E1?expand=x"}}
        result = await resolver.resolve_value(MAIN, CHILD, value)
        assert result["meta"]["href"].endswith(result["id"])

    @pytest.mark.asyncio
    async def test_missing_source_element(self, resolver, identity_store, source_list):
        with pytest.raises(NotFoundError):
            await resolver.resolve_value(MAIN, CHILD, element_value("L1", "missing"))
        assert identity_store.elements == []

    @pytest.mark.asyncio
    async def test_missing_source_list(self, resolver, identity_store):
        with pytest.raises(NotFoundError):
            await resolver.resolve_value(MAIN, CHILD, element_value("nope", "E1"))
        assert identity_store.writes == 0


class TestResolveCustomEntity:

    @pytest.mark.asyncio
    async def test_maps_existing_source_list(self, resolver, platform, identity_store, source_list):
        mapping = await resolver.resolve_custom_entity(MAIN, CHILD, "Colours")

        assert mapping.source_custom_entity_id == "L1"
        assert platform.posts(MAIN) == []
        assert len(platform.posts(CHILD)) == 1

    @pytest.mark.asyncio
    async def test_creates_on_both_sides(self, resolver, platform):
        mapping = await resolver.resolve_custom_entity(MAIN, CHILD, "Sizes")

        assert [r["name"] for r in platform.rows(MAIN, LISTS)] == ["Sizes"]
        assert [r["name"] for r in platform.rows(CHILD, LISTS)] == ["Sizes"]
        assert mapping.custom_entity_name == "Sizes"

    @pytest.mark.asyncio
    async def test_existing_mapping_short_circuits(self, resolver, platform, source_list):
        first = await resolver.resolve_custom_entity(MAIN, CHILD, "Colours")
        calls_before = len(platform.calls)

        assert await resolver.resolve_custom_entity(MAIN, CHILD, "Colours") == first
        assert len(platform.calls) == calls_before


class TestResolveList:

    @pytest.mark.asyncio
    async def test_by_source_id(self, resolver, platform, identity_store, source_list):
        mapping = await resolver.resolve_list(MAIN, CHILD, "L1")
        assert mapping.custom_entity_name == "Colours"
        assert identity_store.get_custom_entity_by_name(MAIN, CHILD, "Colours") == mapping
