"""Shared constant values used across the importer."""

from __future__ import annotations

from typing import Final

ENCODING_GEOJSON: Final[str] = "application/geo+json"
CONTENT_TYPE_GEOJSON: Final[str] = ENCODING_GEOJSON

OBSERVATION_TYPE_MEASUREMENT: Final[str] = "http://www.opengis.net/def/observationType/OGC-OM/2.0/OM_Measurement"
OBSERVATION_TYPE_OBSERVATION: Final[str] = "http://www.opengis.net/def/observationType/OGC-OM/2.0/OM_Observation"

CANONICAL_CRS: Final[str] = "EPSG:4326"

DEFAULT_EQUALS_FILTER: Final[str] = "name eq '{name|-}'"
DEFAULT_MERGE_DEPTH: Final[int] = 5
LOCATION_MERGE_DEPTH: Final[int] = 10
DEFAULT_NUMBER_SCALE: Final[int] = 6
DEFAULT_PAGE_SIZE: Final[int] = 1000

ENTITY_SET_THINGS: Final[str] = "Things"
ENTITY_SET_LOCATIONS: Final[str] = "Locations"
ENTITY_SET_SENSORS: Final[str] = "Sensors"
ENTITY_SET_OBSERVED_PROPERTIES: Final[str] = "ObservedProperties"
ENTITY_SET_DATASTREAMS: Final[str] = "Datastreams"
ENTITY_SET_FEATURES_OF_INTEREST: Final[str] = "FeaturesOfInterest"
ENTITY_SET_OBSERVATIONS: Final[str] = "Observations"

# Things are compared by their linked location ids.
THING_LOCATIONS_EXPAND: Final[str] = "Locations($select=id)"
