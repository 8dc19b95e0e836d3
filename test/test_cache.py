from __future__ import annotations

from conftest import FakeStore

from sta_importer.core.models import Location
from sta_importer.reconcile import EntityCache, ImportContext


def _nuts(name: str, nuts_id: str) -> Location:
    return Location(name=name, properties={"type": "NUTS", "nutsId": nuts_id})


def test_cache_key_collision_keeps_last_entity() -> None:
    cache: EntityCache[Location] = EntityCache("Locations", key_template="{properties/type}-{properties/nutsId}")
    first = _nuts("first", "DE1")
    second = _nuts("second", "DE1")
    cache.put(first)
    cache.put(second)
    assert cache.get("NUTS-DE1") is second
    assert cache.get_by_name("first") is first
    assert cache.get_by_name("second") is second
    assert len(cache) == 1


def test_cache_preserves_insertion_order() -> None:
    cache: EntityCache[Location] = EntityCache("Locations", key_template="{name}")
    for name in ("b", "a", "c"):
        cache.put(Location(name=name))
    assert cache.keys() == ["b", "a", "c"]


def test_cache_without_key_template_is_disabled(store: FakeStore) -> None:
    store.add(_nuts("DE1", "DE1"))
    cache: EntityCache[Location] = EntityCache("Locations", load_filter="properties/type eq 'NUTS'")
    assert not cache.enabled
    assert cache.load(store) == 0
    assert store.queries == []
    location = Location(name="DE2")
    cache.put(location)
    assert len(cache) == 0
    assert cache.get_by_name("DE2") is location


def test_cache_load_applies_filter(store: FakeStore) -> None:
    store.add(_nuts("DE1", "DE1"))
    store.add(Location(name="other", properties={"type": "LAU"}))
    cache: EntityCache[Location] = EntityCache(
        "Locations",
        key_template="{properties/type}-{properties/nutsId}",
        load_filter="properties/type eq 'NUTS'",
    )
    assert cache.load(store) == 1
    assert cache.keys() == ["NUTS-DE1"]
    assert store.queries == [("Locations", "properties/type eq 'NUTS'")]


def test_cache_load_with_duplicate_keys_keeps_last(store: FakeStore) -> None:
    store.add(_nuts("one", "DE1"))
    store.add(_nuts("two", "DE1"))
    cache: EntityCache[Location] = EntityCache("Locations", key_template="{properties/type}-{properties/nutsId}")
    assert cache.load(store) == 2
    assert cache.get("NUTS-DE1").name == "two"


def test_import_context_loads_every_enabled_cache(store: FakeStore) -> None:
    store.add(_nuts("DE1", "DE1"))
    context = ImportContext(locations=EntityCache("Locations", key_template="{name}"))
    assert context.load_all(store) == 1
    assert context.cache_for("Locations").get("DE1").name == "DE1"
    assert [entity_set for entity_set, _ in store.queries] == ["Locations"]
