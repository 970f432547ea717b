"""
Entity registry — per entity-type endpoints and identity strategy.

Built once at startup (see container.get_entity_registry) and passed by
reference to every component that needs it. Entries are frozen; the
registry itself exposes a read-only view.

Identity strategies:
- "mapping": persisted EntityMapping rows (products, services, folders...)
- "custom_entity": two-level list/element mapping rows keyed by name
- "name": no mapping rows, exact-name lookup in the destination tenant
Version: 1.0.0
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Tuple

from catalog_sync.core.exceptions import ConfigurationError

IDENTITY_MAPPING = "mapping"
IDENTITY_CUSTOM_ENTITY = "custom_entity"
IDENTITY_NAME = "name"


@dataclass(frozen=True)
class EntityTypeConfig:
    """Static description of one synchronizable entity type."""
    entity_type: str
    endpoint: str
    identity: str = IDENTITY_MAPPING
    expand: str = ""
    include_subresource: bool = False
    match_field: str = "code"
    syncable: bool = True


class EntityRegistry:
    """Immutable lookup of EntityTypeConfig by entity type."""

    def __init__(self, configs: Iterable[EntityTypeConfig]) -> None:
        entries: Dict[str, EntityTypeConfig] = {}
        for config in configs:
            if config.entity_type in entries:
                raise ConfigurationError(f"Duplicate entity type: {config.entity_type}")
            entries[config.entity_type] = config
        self._configs: Mapping[str, EntityTypeConfig] = MappingProxyType(entries)

    def get(self, entity_type: str) -> EntityTypeConfig:
        """Return the config for entity_type or raise ConfigurationError."""
        config = self._configs.get(entity_type)
        if config is None:
            raise ConfigurationError(
                f"Unknown entity type: {entity_type}. "
                f"Supported types: {', '.join(self.supported_types)}"
            )
        return config

    def is_supported(self, entity_type: str) -> bool:
        return entity_type in self._configs

    @property
    def supported_types(self) -> Tuple[str, ...]:
        return tuple(self._configs.keys())

    def endpoint(self, entity_type: str) -> str:
        return self.get(entity_type).endpoint

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._configs

    def __len__(self) -> int:
        return len(self._configs)


DEFAULT_ENTITY_TYPES: Tuple[EntityTypeConfig, ...] = (
    EntityTypeConfig(
        entity_type="product",
        endpoint="entity/product",
        expand="attributes,productFolder,uom,country,salePrices",
        include_subresource=True,
    ),
    EntityTypeConfig(
        entity_type="service",
        endpoint="entity/service",
        expand="attributes,uom,salePrices",
    ),
    EntityTypeConfig(
        entity_type="bundle",
        endpoint="entity/bundle",
        expand="attributes,productFolder,components.product",
    ),
    EntityTypeConfig(
        entity_type="productfolder",
        endpoint="entity/productfolder",
        match_field="name",
    ),
    EntityTypeConfig(
        entity_type="customentity",
        endpoint="entity/customentity",
        identity=IDENTITY_CUSTOM_ENTITY,
        match_field="name",
    ),
    EntityTypeConfig(
        entity_type="organization",
        endpoint="entity/organization",
        identity=IDENTITY_NAME,
        match_field="name",
        syncable=False,
    ),
    EntityTypeConfig(
        entity_type="employee",
        endpoint="entity/employee",
        identity=IDENTITY_NAME,
        match_field="name",
        syncable=False,
    ),
    EntityTypeConfig(
        entity_type="saleschannel",
        endpoint="entity/saleschannel",
        identity=IDENTITY_NAME,
        match_field="name",
        syncable=False,
    ),
    EntityTypeConfig(
        entity_type="state",
        endpoint="entity/customerorder/metadata/states",
        identity=IDENTITY_NAME,
        match_field="name",
        syncable=False,
    ),
)


def build_default_registry() -> EntityRegistry:
    """Registry with every entity type the sync pipeline understands."""
    return EntityRegistry(DEFAULT_ENTITY_TYPES)


# Types a sync task may be enqueued for
SYNCABLE_ENTITY_TYPES: Tuple[str, ...] = tuple(
    config.entity_type for config in DEFAULT_ENTITY_TYPES if config.syncable
)
