"""Per-kind entity caches and the import context that owns them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Iterator, TypeVar

from sta_importer.core.constants import (
    DEFAULT_PAGE_SIZE,
    ENTITY_SET_DATASTREAMS,
    ENTITY_SET_FEATURES_OF_INTEREST,
    ENTITY_SET_LOCATIONS,
    ENTITY_SET_OBSERVED_PROPERTIES,
    ENTITY_SET_SENSORS,
    ENTITY_SET_THINGS,
)
from sta_importer.core.logging import get_logger
from sta_importer.templating import fill_template

if TYPE_CHECKING:
    from sta_importer.sta.store import EntityStore

LOGGER = get_logger(__name__)

E = TypeVar("E")


class EntityCache(Generic[E]):
    """Insertion ordered index of entities by cache key and by name.

    A cache without a key template is disabled: it is never bulk loaded and
    its key index stays empty, but entities are still indexed by name.
    """

    def __init__(
        self,
        entity_set: str,
        *,
        key_template: str | None = None,
        load_filter: str | None = None,
        select: str | None = None,
        expand: str | None = None,
    ) -> None:
        self.entity_set = entity_set
        self.key_template = key_template or None
        self.load_filter = load_filter or None
        self.select = select or None
        self.expand = expand or None
        self._by_key: dict[str, E] = {}
        self._by_name: dict[str, E] = {}

    @property
    def enabled(self) -> bool:
        return self.key_template is not None

    def key_for(self, entity: Any) -> str | None:
        """Evaluate the key template against an entity."""
        if not self.enabled:
            return None
        return fill_template(self.key_template, entity, False)

    def put(self, entity: E, key: str | None = None) -> None:
        """Index ``entity``; a second entity under the same key replaces the first."""
        if key is None:
            key = self.key_for(entity)
        if key:
            previous = self._by_key.get(key)
            if previous is not None and previous is not entity:
                LOGGER.debug("cache.key_overwritten", entity_set=self.entity_set, key=key)
            self._by_key[key] = entity
        name = getattr(entity, "name", None)
        if name:
            self._by_name[name] = entity

    def get(self, key: str | None) -> E | None:
        if not key:
            return None
        return self._by_key.get(key)

    def get_by_name(self, name: str | None) -> E | None:
        if not name:
            return None
        return self._by_name.get(name)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)

    def __iter__(self) -> Iterator[E]:
        return iter(self._by_key.values())

    def keys(self) -> list[str]:
        return list(self._by_key)

    def clear(self) -> None:
        self._by_key.clear()
        self._by_name.clear()

    def load(self, store: "EntityStore", page_size: int = DEFAULT_PAGE_SIZE) -> int:
        """Bulk load every remote entity matching the cache filter."""
        if not self.enabled:
            return 0
        count = 0
        for entity in store.query(
            self.entity_set,
            filter=self.load_filter,
            select=self.select,
            expand=self.expand,
            top=page_size,
        ):
            self.put(entity)
            count += 1
        LOGGER.info("cache.loaded", entity_set=self.entity_set, entities=count, keys=len(self._by_key))
        return count


@dataclass(slots=True)
class ImportContext:
    """One cache per entity kind, created for a single import run."""

    things: EntityCache[Any] = field(default_factory=lambda: EntityCache(ENTITY_SET_THINGS))
    locations: EntityCache[Any] = field(default_factory=lambda: EntityCache(ENTITY_SET_LOCATIONS))
    sensors: EntityCache[Any] = field(default_factory=lambda: EntityCache(ENTITY_SET_SENSORS))
    observed_properties: EntityCache[Any] = field(
        default_factory=lambda: EntityCache(ENTITY_SET_OBSERVED_PROPERTIES)
    )
    datastreams: EntityCache[Any] = field(default_factory=lambda: EntityCache(ENTITY_SET_DATASTREAMS))
    features_of_interest: EntityCache[Any] = field(
        default_factory=lambda: EntityCache(ENTITY_SET_FEATURES_OF_INTEREST)
    )

    def caches(self) -> list[EntityCache[Any]]:
        return [
            self.locations,
            self.things,
            self.sensors,
            self.observed_properties,
            self.datastreams,
            self.features_of_interest,
        ]

    def cache_for(self, entity_set: str) -> EntityCache[Any]:
        for cache in self.caches():
            if cache.entity_set == entity_set:
                return cache
        raise KeyError(entity_set)

    def load_all(self, store: "EntityStore", page_size: int = DEFAULT_PAGE_SIZE) -> int:
        """Bulk load every enabled cache. Remote failures propagate."""
        return sum(cache.load(store, page_size) for cache in self.caches())
