"""Import definitions: templates per entity kind, cache and CSV options."""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sta_importer.core.constants import (
    DEFAULT_EQUALS_FILTER,
    DEFAULT_NUMBER_SCALE,
    OBSERVATION_TYPE_OBSERVATION,
)
from sta_importer.core.exceptions import ConfigurationError
from sta_importer.reconcile.cache import EntityCache


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CacheConfig(_ConfigModel):
    """How the cache of one entity kind is keyed and bulk loaded."""

    key_template: str = ""
    load_filter: str = ""
    select: str = ""
    expand: str = ""

    def build(self, entity_set: str) -> EntityCache[Any]:
        return EntityCache(
            entity_set,
            key_template=self.key_template,
            load_filter=self.load_filter,
            select=self.select,
            expand=self.expand,
        )


class _CreatorConfig(_ConfigModel):
    name: str = ""
    description: str = ""
    properties: str = ""
    equals_filter: str = DEFAULT_EQUALS_FILTER
    if_not_empty: str = ""
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @property
    def configured(self) -> bool:
        return bool(self.name)


class _GeometryOptions(_ConfigModel):
    crs: str = ""
    flip_coordinates: bool = False
    number_scale: int = Field(default=DEFAULT_NUMBER_SCALE, ge=0, le=15)


class LocationCreatorConfig(_CreatorConfig, _GeometryOptions):
    pass


class ThingCreatorConfig(_CreatorConfig):
    keep_locations: bool = False
    location_key: str = ""


class SensorCreatorConfig(_CreatorConfig):
    encoding_type: str = ""
    metadata: str = ""
    evaluate_once: bool = False


class ObservedPropertyCreatorConfig(_CreatorConfig):
    definition: str = ""
    evaluate_once: bool = False


class DatastreamCreatorConfig(_CreatorConfig):
    uom_name: str = ""
    uom_symbol: str = ""
    uom_definition: str = ""
    observation_type: str = OBSERVATION_TYPE_OBSERVATION
    thing_key: str = ""
    sensor_key: str = ""
    observed_property_key: str = ""


class FeatureOfInterestCreatorConfig(_CreatorConfig, _GeometryOptions):
    pass


class ObservationCreatorConfig(_ConfigModel):
    result: str = ""
    phenomenon_time: str = ""
    parameters: str = ""
    datastream_key: str = ""
    feature_key: str = ""
    if_not_empty: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.result)


class CsvOptions(_ConfigModel):
    """Options for turning CSV rows into point features."""

    delimiter: str = ","
    tab_delimited: bool = False
    comment_marker: str = ""
    has_header: bool = True
    row_skip: int = Field(default=0, ge=0)
    axis_one: str = ""
    axis_two: str = ""
    crs: str = ""
    number_scale: int = Field(default=DEFAULT_NUMBER_SCALE, ge=0, le=15)

    @field_validator("delimiter")
    @classmethod
    def _single_character(cls, value: str) -> str:
        if value == "\\t":
            return "\t"
        if len(value) != 1:
            raise ValueError("delimiter must be a single character")
        return value

    @property
    def effective_delimiter(self) -> str:
        return "\t" if self.tab_delimited else self.delimiter


class ImportConfig(_ConfigModel):
    """A complete import definition. Unset creators are skipped."""

    locations: LocationCreatorConfig | None = None
    things: ThingCreatorConfig | None = None
    sensors: SensorCreatorConfig | None = None
    observed_properties: ObservedPropertyCreatorConfig | None = None
    datastreams: DatastreamCreatorConfig | None = None
    features_of_interest: FeatureOfInterestCreatorConfig | None = None
    observations: ObservationCreatorConfig | None = None
    csv: CsvOptions | None = None


def load_import_config(path: str | Path) -> ImportConfig:
    """Read an import definition from a ``.json`` or ``.toml`` file."""
    config_path = Path(path)
    try:
        if config_path.suffix.lower() == ".toml":
            with config_path.open("rb") as handle:
                data = tomllib.load(handle)
        else:
            data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Import definition not found: {config_path}") from exc
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Import definition {config_path} is not valid: {exc}") from exc
    return parse_import_config(data)


def parse_import_config(data: Any) -> ImportConfig:
    try:
        return ImportConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid import definition: {exc}") from exc
