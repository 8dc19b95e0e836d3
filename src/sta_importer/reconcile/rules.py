"""Per-kind rules that fold a freshly built entity into an existing one."""

from __future__ import annotations

from typing import Any, Callable

from sta_importer.core.constants import DEFAULT_MERGE_DEPTH, LOCATION_MERGE_DEPTH
from sta_importer.core.models import (
    Datastream,
    FeatureOfInterest,
    Location,
    ObservedProperty,
    PropertyMap,
    Sensor,
    Thing,
)
from sta_importer.geometry import canonical_geometry_json

from .compare import values_equal
from .merge import merge_properties

UpdateRule = Callable[..., bool]


def _merge_entity_properties(existing: Any, new: Any, max_depth: int) -> bool:
    incoming: PropertyMap | None = new.properties
    if existing.properties is None:
        if incoming:
            existing.properties = dict(incoming)
            return True
        return False
    return merge_properties(existing.properties, incoming, max_depth)


def _update_field(existing: Any, new: Any, attribute: str) -> bool:
    current = getattr(existing, attribute)
    incoming = getattr(new, attribute)
    if current == incoming:
        return False
    setattr(existing, attribute, incoming)
    return True


def _update_name_description(existing: Any, new: Any) -> bool:
    changed = _update_field(existing, new, "name")
    if _update_field(existing, new, "description"):
        changed = True
    return changed


def _update_geometry(existing: Any, new: Any, attribute: str) -> bool:
    current = canonical_geometry_json(getattr(existing, attribute))
    incoming = canonical_geometry_json(getattr(new, attribute))
    if current == incoming:
        return False
    setattr(existing, attribute, getattr(new, attribute))
    return True


def update_location(existing: Location, new: Location) -> bool:
    changed = _update_name_description(existing, new)
    if _update_geometry(existing, new, "location"):
        changed = True
    if _merge_entity_properties(existing, new, LOCATION_MERGE_DEPTH):
        changed = True
    return changed


def _location_ids(locations: list[Location]) -> set[Any]:
    return {location.id for location in locations}


def update_thing(existing: Thing, new: Thing, *, keep_locations: bool = False) -> bool:
    """Merge a Thing; locations are added to or replaced depending on ``keep_locations``."""
    changed = _update_name_description(existing, new)
    if _merge_entity_properties(existing, new, DEFAULT_MERGE_DEPTH):
        changed = True
    if keep_locations:
        known = _location_ids(existing.locations)
        for location in new.locations:
            if location.id not in known:
                existing.locations.append(location)
                known.add(location.id)
                changed = True
    elif new.locations and _location_ids(existing.locations) != _location_ids(new.locations):
        existing.locations = list(new.locations)
        changed = True
    return changed


def update_sensor(existing: Sensor, new: Sensor) -> bool:
    changed = _update_name_description(existing, new)
    if _update_field(existing, new, "encoding_type"):
        changed = True
    if not values_equal(existing.metadata, new.metadata):
        existing.metadata = new.metadata
        changed = True
    if _merge_entity_properties(existing, new, DEFAULT_MERGE_DEPTH):
        changed = True
    return changed


def update_observed_property(existing: ObservedProperty, new: ObservedProperty) -> bool:
    changed = _update_name_description(existing, new)
    if _update_field(existing, new, "definition"):
        changed = True
    if _merge_entity_properties(existing, new, DEFAULT_MERGE_DEPTH):
        changed = True
    return changed


def update_datastream(existing: Datastream, new: Datastream) -> bool:
    changed = _update_name_description(existing, new)
    if _update_field(existing, new, "unit_of_measurement"):
        changed = True
    if _merge_entity_properties(existing, new, DEFAULT_MERGE_DEPTH):
        changed = True
    return changed


def update_feature_of_interest(existing: FeatureOfInterest, new: FeatureOfInterest) -> bool:
    changed = _update_name_description(existing, new)
    if _update_geometry(existing, new, "feature"):
        changed = True
    if _merge_entity_properties(existing, new, DEFAULT_MERGE_DEPTH):
        changed = True
    return changed


UPDATE_RULES: dict[type, UpdateRule] = {
    Location: update_location,
    Thing: update_thing,
    Sensor: update_sensor,
    ObservedProperty: update_observed_property,
    Datastream: update_datastream,
    FeatureOfInterest: update_feature_of_interest,
}


def rule_for(entity: Any) -> UpdateRule:
    try:
        return UPDATE_RULES[type(entity)]
    except KeyError as exc:
        raise TypeError(f"No update rule for {type(entity).__name__}") from exc
