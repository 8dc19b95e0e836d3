"""Build entities from a feature with the configured templates and reconcile them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from sta_importer.core.exceptions import ImporterError, MalformedPayloadError
from sta_importer.core.json_utils import canonical_json, dumps, parse_json_object, parse_json_value
from sta_importer.core.logging import get_logger
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
from sta_importer.geometry import reproject
from sta_importer.reconcile import EntityCache, ImportContext, Reconciler
from sta_importer.templating import build_equals_filter, fill_template

from .config import (
    DatastreamCreatorConfig,
    FeatureOfInterestCreatorConfig,
    LocationCreatorConfig,
    ObservationCreatorConfig,
    ObservedPropertyCreatorConfig,
    SensorCreatorConfig,
    ThingCreatorConfig,
)

LOGGER = get_logger(__name__)

C = TypeVar("C")
E = TypeVar("E")


def _render(template: str, feature: Any) -> str:
    return fill_template(template, feature, False)


def _preview_properties(text: str) -> tuple[dict[str, Any] | None, str]:
    try:
        properties = parse_json_object(text)
    except MalformedPayloadError as exc:
        return {}, str(exc)
    return properties, dumps(properties) if properties is not None else text


def _preview_geometry(geometry: Any) -> str:
    return canonical_json(geometry) if geometry is not None else ""


def lookup(cache: EntityCache[Any], key: str) -> Any | None:
    """Find an entity by cache key, falling back to its name."""
    return cache.get(key) or cache.get_by_name(key)


class _Creator(Generic[C, E]):
    """Shared template handling for one entity kind."""

    label = "Entity"

    def __init__(self, config: C) -> None:
        self.config = config

    @property
    def configured(self) -> bool:
        return self.config.configured

    def skipped_by_gate(self, feature: Any) -> bool:
        gate = self.config.if_not_empty
        return bool(gate.strip()) and not _render(gate, feature).strip()

    def _preview_guard(self, feature: Any) -> str | None:
        if not self.configured:
            return f"{self.label} not configured.\n"
        if self.skipped_by_gate(feature):
            return f"{self.label}:\n  ifNotEmpty Template is empty.\n"
        return None

    def _keys(self, cache: EntityCache[Any], entity: Any) -> tuple[str, str]:
        return build_equals_filter(self.config.equals_filter, entity), cache.key_for(entity) or ""


class _GeometryMixin:
    config: LocationCreatorConfig | FeatureOfInterestCreatorConfig

    def geometry_for(self, feature: Feature) -> dict[str, Any] | None:
        """Reproject the feature geometry when a CRS or flip is configured."""
        crs = _render(self.config.crs, feature)
        if not crs and not self.config.flip_coordinates:
            return feature.geometry
        return reproject(feature.geometry, crs, self.config.number_scale, self.config.flip_coordinates)


class LocationCreator(_GeometryMixin, _Creator[LocationCreatorConfig, Location]):
    label = "Location"

    def build(self, feature: Feature) -> Location:
        return Location(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            location=self.geometry_for(feature),
            properties=parse_json_object(_render(self.config.properties, feature)),
        )

    def create(self, feature: Feature, context: ImportContext, reconciler: Reconciler) -> Location | None:
        if not self.configured or self.skipped_by_gate(feature):
            return None
        return reconciler.reconcile(
            self.build(feature), cache=context.locations, equals_filter=self.config.equals_filter
        )

    def preview(self, feature: Feature, context: ImportContext) -> str:
        guard = self._preview_guard(feature)
        if guard is not None:
            return guard
        properties, properties_text = _preview_properties(_render(self.config.properties, feature))
        geometry = self.geometry_for(feature)
        location = Location(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            location=geometry,
            properties=properties,
        )
        equals_filter, cache_key = self._keys(context.locations, location)
        return (
            "Location:\n"
            f"  name: {location.name}\n"
            f"  description: {location.description}\n"
            f"  properties: {properties_text}\n"
            f"  location: {_preview_geometry(geometry)}\n"
            "\n"
            f"  Equals Filter: {equals_filter}\n"
            f"  Cache Load Filter: {context.locations.load_filter or ''}\n"
            f"  Cache Key: {cache_key}\n"
        )


class ThingCreator(_Creator[ThingCreatorConfig, Thing]):
    label = "Thing"

    def _location_for(self, feature: Feature, context: ImportContext, location: Location | None) -> Location | None:
        if self.config.location_key:
            return lookup(context.locations, _render(self.config.location_key, feature))
        return location

    def build(self, feature: Feature, location: Location | None) -> Thing:
        return Thing(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            properties=parse_json_object(_render(self.config.properties, feature)),
            locations=[location] if location is not None else [],
        )

    def create(
        self,
        feature: Feature,
        context: ImportContext,
        reconciler: Reconciler,
        location: Location | None = None,
    ) -> Thing | None:
        if not self.configured or self.skipped_by_gate(feature):
            return None
        thing = self.build(feature, self._location_for(feature, context, location))
        return reconciler.reconcile(
            thing,
            cache=context.things,
            equals_filter=self.config.equals_filter,
            keep_locations=self.config.keep_locations,
        )

    def preview(self, feature: Feature, context: ImportContext) -> str:
        guard = self._preview_guard(feature)
        if guard is not None:
            return guard
        properties, properties_text = _preview_properties(_render(self.config.properties, feature))
        location_key = _render(self.config.location_key, feature) if self.config.location_key else ""
        thing = Thing(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            properties=properties,
        )
        equals_filter, cache_key = self._keys(context.things, thing)
        return (
            "Thing:\n"
            f"  name: {thing.name}\n"
            f"  description: {thing.description}\n"
            f"  properties: {properties_text}\n"
            "\n"
            f"  Equals Filter: {equals_filter}\n"
            f"  Cache Key: {cache_key}\n"
            f"  Location Cache Key: {location_key}\n"
        )


class _OnceCreator(_Creator[C, E], ABC):
    """Creator whose result can be computed for the first feature only."""

    def __init__(self, config: C) -> None:
        super().__init__(config)
        self._evaluated = False
        self._result: E | None = None

    def reset(self) -> None:
        self._evaluated = False
        self._result = None

    def create(self, feature: Feature, context: ImportContext, reconciler: Reconciler) -> E | None:
        if self.config.evaluate_once and self._evaluated:
            return self._result
        result = self._create(feature, context, reconciler)
        self._evaluated = True
        self._result = result
        return result

    @abstractmethod
    def _create(self, feature: Feature, context: ImportContext, reconciler: Reconciler) -> E | None:
        """Build and reconcile the entity for ``feature``."""


class SensorCreator(_OnceCreator[SensorCreatorConfig, Sensor]):
    label = "Sensor"

    def build(self, feature: Feature) -> Sensor:
        return Sensor(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            encoding_type=_render(self.config.encoding_type, feature),
            metadata=_render(self.config.metadata, feature),
            properties=parse_json_object(_render(self.config.properties, feature)),
        )

    def _create(self, feature: Feature, context: ImportContext, reconciler: Reconciler) -> Sensor | None:
        if not self.configured or self.skipped_by_gate(feature):
            return None
        return reconciler.reconcile(
            self.build(feature), cache=context.sensors, equals_filter=self.config.equals_filter
        )

    def preview(self, feature: Feature, context: ImportContext) -> str:
        guard = self._preview_guard(feature)
        if guard is not None:
            return guard
        properties, properties_text = _preview_properties(_render(self.config.properties, feature))
        sensor = Sensor(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            encoding_type=_render(self.config.encoding_type, feature),
            metadata=_render(self.config.metadata, feature),
            properties=properties,
        )
        equals_filter, cache_key = self._keys(context.sensors, sensor)
        return (
            "Sensor:\n"
            f"  name: {sensor.name}\n"
            f"  description: {sensor.description}\n"
            f"  properties: {properties_text}\n"
            f"  encoding: {sensor.encoding_type}\n"
            f"  metadata: {sensor.metadata}\n"
            "\n"
            f"  Equals Filter: {equals_filter}\n"
            f"  Cache Key: {cache_key}\n"
        )


class ObservedPropertyCreator(_OnceCreator[ObservedPropertyCreatorConfig, ObservedProperty]):
    label = "ObservedProperty"

    def build(self, feature: Feature) -> ObservedProperty:
        return ObservedProperty(
            name=_render(self.config.name, feature),
            definition=_render(self.config.definition, feature),
            description=_render(self.config.description, feature),
            properties=parse_json_object(_render(self.config.properties, feature)),
        )

    def _create(
        self, feature: Feature, context: ImportContext, reconciler: Reconciler
    ) -> ObservedProperty | None:
        if not self.configured or self.skipped_by_gate(feature):
            return None
        return reconciler.reconcile(
            self.build(feature), cache=context.observed_properties, equals_filter=self.config.equals_filter
        )

    def preview(self, feature: Feature, context: ImportContext) -> str:
        guard = self._preview_guard(feature)
        if guard is not None:
            return guard
        properties, properties_text = _preview_properties(_render(self.config.properties, feature))
        prop = ObservedProperty(
            name=_render(self.config.name, feature),
            definition=_render(self.config.definition, feature),
            description=_render(self.config.description, feature),
            properties=properties,
        )
        equals_filter, cache_key = self._keys(context.observed_properties, prop)
        return (
            "ObservedProperty:\n"
            f"  name: {prop.name}\n"
            f"  definition: {prop.definition}\n"
            f"  description: {prop.description}\n"
            f"  properties: {properties_text}\n"
            "\n"
            f"  Equals Filter: {equals_filter}\n"
            f"  Cache Key: {cache_key}\n"
        )


class DatastreamCreator(_Creator[DatastreamCreatorConfig, Datastream]):
    label = "Datastream"

    def _unit(self, feature: Feature) -> UnitOfMeasurement:
        return UnitOfMeasurement(
            name=_render(self.config.uom_name, feature),
            symbol=_render(self.config.uom_symbol, feature),
            definition=_render(self.config.uom_definition, feature),
        )

    def build(self, feature: Feature, context: ImportContext) -> Datastream:
        return Datastream(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            observation_type=_render(self.config.observation_type, feature),
            unit_of_measurement=self._unit(feature),
            properties=parse_json_object(_render(self.config.properties, feature)),
            thing=lookup(context.things, _render(self.config.thing_key, feature)),
            sensor=lookup(context.sensors, _render(self.config.sensor_key, feature)),
            observed_property=lookup(
                context.observed_properties, _render(self.config.observed_property_key, feature)
            ),
        )

    def create(self, feature: Feature, context: ImportContext, reconciler: Reconciler) -> Datastream | None:
        if not self.configured or self.skipped_by_gate(feature):
            return None
        datastream = self.build(feature, context)
        return reconciler.reconcile(datastream, cache=context.datastreams, equals_filter=self.config.equals_filter)

    def preview(self, feature: Feature, context: ImportContext) -> str:
        guard = self._preview_guard(feature)
        if guard is not None:
            return guard
        properties, properties_text = _preview_properties(_render(self.config.properties, feature))
        unit = self._unit(feature)
        datastream = Datastream(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            observation_type=_render(self.config.observation_type, feature),
            unit_of_measurement=unit,
            properties=properties,
        )
        equals_filter, cache_key = self._keys(context.datastreams, datastream)
        return (
            "Datastream:\n"
            f"  Name: {datastream.name}\n"
            f"  Description: {datastream.description}\n"
            "  Unit: {\n"
            f"    {unit.name},\n"
            f"    {unit.symbol},\n"
            f"    {unit.definition}}}\n"
            f"  ObservationType: {datastream.observation_type}\n"
            f"  Properties: {properties_text}\n"
            "\n"
            f"  Equals Filter: {equals_filter}\n"
            f"  Cache Key: {cache_key}\n"
            f"  Thing Cache Key: {_render(self.config.thing_key, feature)}\n"
            f"  Sensor Cache Key: {_render(self.config.sensor_key, feature)}\n"
            f"  ObsProp Cache Key: {_render(self.config.observed_property_key, feature)}\n"
        )


class FeatureOfInterestCreator(_GeometryMixin, _Creator[FeatureOfInterestCreatorConfig, FeatureOfInterest]):
    label = "FeatureOfInterest"

    def build(self, feature: Feature) -> FeatureOfInterest:
        return FeatureOfInterest(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            feature=self.geometry_for(feature),
            properties=parse_json_object(_render(self.config.properties, feature)),
        )

    def create(
        self, feature: Feature, context: ImportContext, reconciler: Reconciler
    ) -> FeatureOfInterest | None:
        if not self.configured or self.skipped_by_gate(feature):
            return None
        return reconciler.reconcile(
            self.build(feature), cache=context.features_of_interest, equals_filter=self.config.equals_filter
        )

    def preview(self, feature: Feature, context: ImportContext) -> str:
        guard = self._preview_guard(feature)
        if guard is not None:
            return guard
        properties, properties_text = _preview_properties(_render(self.config.properties, feature))
        geometry = self.geometry_for(feature)
        foi = FeatureOfInterest(
            name=_render(self.config.name, feature),
            description=_render(self.config.description, feature),
            feature=geometry,
            properties=properties,
        )
        equals_filter, cache_key = self._keys(context.features_of_interest, foi)
        return (
            "FeatureOfInterest:\n"
            f"  name: {foi.name}\n"
            f"  description: {foi.description}\n"
            f"  properties: {properties_text}\n"
            f"  feature: {_preview_geometry(geometry)}\n"
            "\n"
            f"  Equals Filter: {equals_filter}\n"
            f"  Cache Key: {cache_key}\n"
        )


class ObservationCreator(_Creator[ObservationCreatorConfig, Observation]):
    """Build observations; they are uploaded in bulk rather than reconciled."""

    label = "Observation"

    def create(self, feature: Feature, context: ImportContext) -> Observation | None:
        if not self.configured or self.skipped_by_gate(feature):
            return None
        result = parse_json_value(_render(self.config.result, feature))
        phenomenon_time = TimeValue.parse(_render(self.config.phenomenon_time, feature))
        parameters = parse_json_object(_render(self.config.parameters, feature), what="parameters")

        datastream_key = _render(self.config.datastream_key, feature)
        datastream = lookup(context.datastreams, datastream_key)
        if datastream is None:
            raise ImporterError(f"No datastream found for key '{datastream_key}'")
        feature_of_interest = None
        if self.config.feature_key:
            feature_of_interest = lookup(context.features_of_interest, _render(self.config.feature_key, feature))
        return Observation(
            result=result,
            phenomenon_time=phenomenon_time,
            parameters=parameters,
            datastream=datastream,
            feature_of_interest=feature_of_interest,
        )

    def preview(self, feature: Feature, context: ImportContext) -> str:
        guard = self._preview_guard(feature)
        if guard is not None:
            return guard
        result_text = _render(self.config.result, feature)
        try:
            parse_json_value(result_text)
        except MalformedPayloadError as exc:
            result_text = f"Failed to parse result: {exc}"
        time_text = _render(self.config.phenomenon_time, feature)
        try:
            time_text = TimeValue.parse(time_text).isoformat()
        except MalformedPayloadError:
            time_text = f"Failed to parse '{time_text}' as Time Object."
        _, parameters_text = _preview_properties(_render(self.config.parameters, feature))
        feature_key = _render(self.config.feature_key, feature) if self.config.feature_key else ""
        return (
            "Observation:\n"
            f"  Result: {result_text}\n"
            f"  PhenomenonTime: {time_text}\n"
            f"  Parameters: {parameters_text}\n"
            "\n"
            f"  Datastream Cache Key: {_render(self.config.datastream_key, feature)}\n"
            f"  Feature Cache Key: {feature_key}\n"
        )
