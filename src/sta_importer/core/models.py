"""Shared data models: input records and the SensorThings entity kinds."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, TypeAlias, Union

from .constants import ENCODING_GEOJSON, OBSERVATION_TYPE_OBSERVATION
from .exceptions import MalformedPayloadError

# Property trees are plain JSON values: None, bool, int, float, Decimal, str,
# lists of values and str-keyed dicts of values.
JsonValue: TypeAlias = Union[None, bool, int, float, str, list["JsonValue"], dict[str, "JsonValue"]]
PropertyMap: TypeAlias = dict[str, JsonValue]


@dataclass(slots=True)
class Feature:
    """One input record: an optional GeoJSON geometry plus a nested property tree."""

    geometry: dict[str, Any] | None = None
    properties: PropertyMap = field(default_factory=dict)
    id: Any = None
    type: str = "Feature"


class NamedEntity(Protocol):
    """Capabilities the reconciler needs from every entity kind."""

    id: Any
    name: str
    properties: PropertyMap | None


@dataclass(slots=True, frozen=True)
class UnitOfMeasurement:
    name: str | None = None
    symbol: str | None = None
    definition: str | None = None


@dataclass(slots=True)
class Location:
    name: str
    description: str = ""
    encoding_type: str = ENCODING_GEOJSON
    location: dict[str, Any] | None = None
    properties: PropertyMap | None = None
    id: Any = None


@dataclass(slots=True)
class Thing:
    name: str
    description: str = ""
    properties: PropertyMap | None = None
    locations: list[Location] = field(default_factory=list)
    id: Any = None


@dataclass(slots=True)
class Sensor:
    name: str
    description: str = ""
    encoding_type: str = ""
    metadata: Any = None
    properties: PropertyMap | None = None
    id: Any = None


@dataclass(slots=True)
class ObservedProperty:
    name: str
    definition: str = ""
    description: str = ""
    properties: PropertyMap | None = None
    id: Any = None


@dataclass(slots=True)
class Datastream:
    name: str
    description: str = ""
    observation_type: str = OBSERVATION_TYPE_OBSERVATION
    unit_of_measurement: UnitOfMeasurement = field(default_factory=UnitOfMeasurement)
    properties: PropertyMap | None = None
    thing: Thing | None = None
    sensor: Sensor | None = None
    observed_property: ObservedProperty | None = None
    id: Any = None


@dataclass(slots=True)
class FeatureOfInterest:
    name: str
    description: str = ""
    encoding_type: str = ENCODING_GEOJSON
    feature: dict[str, Any] | None = None
    properties: PropertyMap | None = None
    id: Any = None


@dataclass(slots=True, frozen=True)
class TimeValue:
    """An instant, or an interval when ``end`` is set."""

    start: datetime
    end: datetime | None = None

    @property
    def is_interval(self) -> bool:
        return self.end is not None

    @classmethod
    def parse(cls, text: str) -> "TimeValue":
        """Parse an ISO 8601 instant or ``start/end`` interval, normalised to UTC."""
        raw = (text or "").strip()
        if not raw:
            raise MalformedPayloadError("Empty time value")
        try:
            if "/" in raw:
                start_text, _, end_text = raw.partition("/")
                return cls(start=_parse_instant(start_text), end=_parse_instant(end_text))
            return cls(start=_parse_instant(raw))
        except ValueError as exc:
            raise MalformedPayloadError(f"Failed to parse '{raw}' as time value") from exc

    def isoformat(self) -> str:
        if self.end is None:
            return _format_instant(self.start)
        return f"{_format_instant(self.start)}/{_format_instant(self.end)}"

    def __str__(self) -> str:
        return self.isoformat()


@dataclass(slots=True)
class Observation:
    result: Any
    phenomenon_time: TimeValue
    parameters: PropertyMap | None = None
    datastream: Datastream | None = None
    feature_of_interest: FeatureOfInterest | None = None
    id: Any = None


def _parse_instant(text: str) -> datetime:
    value = datetime.fromisoformat(text.strip())
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_instant(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")
