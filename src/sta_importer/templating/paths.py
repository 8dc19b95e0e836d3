"""Resolve ``/``-separated field paths against records and entities."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from sta_importer.core.models import (
    Datastream,
    Feature,
    FeatureOfInterest,
    Location,
    Observation,
    ObservedProperty,
    Sensor,
    Thing,
    TimeValue,
    UnitOfMeasurement,
)


class _Absent:
    """Marker for a path that does not resolve."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

Getter = Callable[[Any], Any]

_COMMON: dict[str, Getter] = {
    "id": lambda entity: entity.id,
    "name": lambda entity: entity.name,
    "description": lambda entity: entity.description,
    "properties": lambda entity: entity.properties,
}

ACCESSORS: dict[type, dict[str, Getter]] = {
    Feature: {
        "id": lambda feature: feature.id,
        "type": lambda feature: feature.type,
        "geometry": lambda feature: feature.geometry,
        "properties": lambda feature: feature.properties,
    },
    Location: {
        **_COMMON,
        "encodingType": lambda location: location.encoding_type,
        "location": lambda location: location.location,
    },
    Thing: {
        **_COMMON,
        "locations": lambda thing: thing.locations,
    },
    Sensor: {
        **_COMMON,
        "encodingType": lambda sensor: sensor.encoding_type,
        "metadata": lambda sensor: sensor.metadata,
    },
    ObservedProperty: {
        **_COMMON,
        "definition": lambda prop: prop.definition,
    },
    Datastream: {
        **_COMMON,
        "observationType": lambda stream: stream.observation_type,
        "unitOfMeasurement": lambda stream: stream.unit_of_measurement,
        "thing": lambda stream: stream.thing,
        "sensor": lambda stream: stream.sensor,
        "observedProperty": lambda stream: stream.observed_property,
    },
    FeatureOfInterest: {
        **_COMMON,
        "encodingType": lambda foi: foi.encoding_type,
        "feature": lambda foi: foi.feature,
    },
    Observation: {
        "id": lambda obs: obs.id,
        "result": lambda obs: obs.result,
        "phenomenonTime": lambda obs: obs.phenomenon_time,
        "parameters": lambda obs: obs.parameters,
        "datastream": lambda obs: obs.datastream,
        "featureOfInterest": lambda obs: obs.feature_of_interest,
    },
    UnitOfMeasurement: {
        "name": lambda unit: unit.name,
        "symbol": lambda unit: unit.symbol,
        "definition": lambda unit: unit.definition,
    },
    TimeValue: {
        "start": lambda value: value.start,
        "end": lambda value: value.end,
    },
}


def decode_segment(segment: str) -> str:
    """Undo the ``~1`` and ``~0`` escapes of a single path segment."""
    return segment.replace("~1", "/").replace("~0", "~")


def split_path(path: str, delimiter: str = "/") -> list[str]:
    return [decode_segment(part) for part in path.split(delimiter) if part]


def get_from(value: Any, segment: str) -> Any:
    """Step one segment into ``value``; return ``ABSENT`` when it cannot."""
    if value is None or value is ABSENT:
        return ABSENT
    if isinstance(value, Mapping):
        return value[segment] if segment in value else ABSENT
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        if not (segment.isascii() and segment.isdigit()):
            return ABSENT
        index = int(segment)
        return value[index] if index < len(value) else ABSENT
    getter = ACCESSORS.get(type(value), {}).get(segment)
    if getter is None:
        return ABSENT
    return getter(value)


def resolve(path: str, root: Any, delimiter: str = "/") -> Any:
    """Walk ``path`` from ``root``.

    Maps are indexed by key, sequences by non-negative integer and entity
    dataclasses through their accessor table. Any miss yields ``ABSENT``.
    """
    current = root
    for segment in split_path(path, delimiter):
        current = get_from(current, segment)
        if current is ABSENT:
            return ABSENT
    return current
