"""Shared core utilities for the feature importer."""

from .config import Settings, get_settings
from .exceptions import (
    AmbiguousMatchError,
    ConfigurationError,
    ImporterError,
    MalformedPayloadError,
    ProjectionError,
    RemoteCallError,
)
from .logging import configure_logging, get_logger
from .models import (
    Datastream,
    Feature,
    FeatureOfInterest,
    Location,
    NamedEntity,
    Observation,
    ObservedProperty,
    Sensor,
    Thing,
    TimeValue,
    UnitOfMeasurement,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "ImporterError",
    "ConfigurationError",
    "AmbiguousMatchError",
    "MalformedPayloadError",
    "ProjectionError",
    "RemoteCallError",
    "Feature",
    "NamedEntity",
    "UnitOfMeasurement",
    "Location",
    "Thing",
    "Sensor",
    "ObservedProperty",
    "Datastream",
    "FeatureOfInterest",
    "Observation",
    "TimeValue",
]
