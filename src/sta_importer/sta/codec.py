"""Conversion between entity dataclasses and SensorThings JSON."""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Iterable, Mapping

from sta_importer.core.constants import (
    ENCODING_GEOJSON,
    ENTITY_SET_DATASTREAMS,
    ENTITY_SET_FEATURES_OF_INTEREST,
    ENTITY_SET_LOCATIONS,
    ENTITY_SET_OBSERVATIONS,
    ENTITY_SET_OBSERVED_PROPERTIES,
    ENTITY_SET_SENSORS,
    ENTITY_SET_THINGS,
    OBSERVATION_TYPE_OBSERVATION,
)
from sta_importer.core.exceptions import ImporterError, MalformedPayloadError
from sta_importer.core.models import (
    Datastream,
    FeatureOfInterest,
    Location,
    Observation,
    ObservedProperty,
    Sensor,
    Thing,
    TimeValue,
    UnitOfMeasurement,
)

ID_KEY = "@iot.id"

ENTITY_SETS: dict[type, str] = {
    Thing: ENTITY_SET_THINGS,
    Location: ENTITY_SET_LOCATIONS,
    Sensor: ENTITY_SET_SENSORS,
    ObservedProperty: ENTITY_SET_OBSERVED_PROPERTIES,
    Datastream: ENTITY_SET_DATASTREAMS,
    FeatureOfInterest: ENTITY_SET_FEATURES_OF_INTEREST,
    Observation: ENTITY_SET_OBSERVATIONS,
}


def entity_set_for(entity: Any) -> str:
    try:
        return ENTITY_SETS[type(entity)]
    except KeyError as exc:
        raise TypeError(f"Unsupported entity type {type(entity).__name__}") from exc


def _with_properties(payload: dict[str, Any], properties: Mapping[str, Any] | None) -> dict[str, Any]:
    if properties is not None:
        payload["properties"] = properties
    return payload


def reference(entity: Any) -> dict[str, Any]:
    """Link to an existing entity by id, or deep insert a new one."""
    if entity.id is not None:
        return {ID_KEY: entity.id}
    return encode(entity, include_links=True)


# Encoding -------------------------------------------------------------------
def encode_location(location: Location, *, include_links: bool = True) -> dict[str, Any]:
    payload = {
        "name": location.name,
        "description": location.description,
        "encodingType": location.encoding_type,
        "location": location.location,
    }
    return _with_properties(payload, location.properties)


def encode_thing(thing: Thing, *, include_links: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": thing.name, "description": thing.description}
    _with_properties(payload, thing.properties)
    if thing.locations:
        payload["Locations"] = [reference(location) for location in thing.locations]
    return payload


def encode_sensor(sensor: Sensor, *, include_links: bool = True) -> dict[str, Any]:
    payload = {
        "name": sensor.name,
        "description": sensor.description,
        "encodingType": sensor.encoding_type,
        "metadata": sensor.metadata,
    }
    return _with_properties(payload, sensor.properties)


def encode_observed_property(prop: ObservedProperty, *, include_links: bool = True) -> dict[str, Any]:
    payload = {"name": prop.name, "definition": prop.definition, "description": prop.description}
    return _with_properties(payload, prop.properties)


def encode_unit(unit: UnitOfMeasurement) -> dict[str, Any]:
    return {"name": unit.name, "symbol": unit.symbol, "definition": unit.definition}


def encode_datastream(datastream: Datastream, *, include_links: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": datastream.name,
        "description": datastream.description,
        "observationType": datastream.observation_type,
        "unitOfMeasurement": encode_unit(datastream.unit_of_measurement),
    }
    _with_properties(payload, datastream.properties)
    if include_links:
        for key, linked in (
            ("Thing", datastream.thing),
            ("Sensor", datastream.sensor),
            ("ObservedProperty", datastream.observed_property),
        ):
            if linked is not None:
                payload[key] = reference(linked)
    return payload


def encode_feature_of_interest(foi: FeatureOfInterest, *, include_links: bool = True) -> dict[str, Any]:
    payload = {
        "name": foi.name,
        "description": foi.description,
        "encodingType": foi.encoding_type,
        "feature": foi.feature,
    }
    return _with_properties(payload, foi.properties)


def encode_observation(observation: Observation, *, include_links: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "phenomenonTime": observation.phenomenon_time.isoformat(),
        "result": observation.result,
    }
    if observation.parameters is not None:
        payload["parameters"] = observation.parameters
    if include_links:
        if observation.datastream is not None:
            payload["Datastream"] = reference(observation.datastream)
        if observation.feature_of_interest is not None:
            payload["FeatureOfInterest"] = reference(observation.feature_of_interest)
    return payload


_ENCODERS: dict[type, Callable[..., dict[str, Any]]] = {
    Location: encode_location,
    Thing: encode_thing,
    Sensor: encode_sensor,
    ObservedProperty: encode_observed_property,
    Datastream: encode_datastream,
    FeatureOfInterest: encode_feature_of_interest,
    Observation: encode_observation,
}


def encode(entity: Any, *, include_links: bool = True) -> dict[str, Any]:
    """Encode an entity for POST (with links) or PATCH (``include_links=False``)."""
    try:
        encoder = _ENCODERS[type(entity)]
    except KeyError as exc:
        raise TypeError(f"Unsupported entity type {type(entity).__name__}") from exc
    return encoder(entity, include_links=include_links)


# Decoding -------------------------------------------------------------------
def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def decode_location(data: Mapping[str, Any]) -> Location:
    return Location(
        id=data.get(ID_KEY),
        name=_text(data, "name"),
        description=_text(data, "description"),
        encoding_type=data.get("encodingType") or ENCODING_GEOJSON,
        location=data.get("location"),
        properties=data.get("properties"),
    )


def decode_thing(data: Mapping[str, Any]) -> Thing:
    return Thing(
        id=data.get(ID_KEY),
        name=_text(data, "name"),
        description=_text(data, "description"),
        properties=data.get("properties"),
        locations=[decode_location(item) for item in data.get("Locations") or []],
    )


def decode_sensor(data: Mapping[str, Any]) -> Sensor:
    return Sensor(
        id=data.get(ID_KEY),
        name=_text(data, "name"),
        description=_text(data, "description"),
        encoding_type=_text(data, "encodingType"),
        metadata=data.get("metadata"),
        properties=data.get("properties"),
    )


def decode_observed_property(data: Mapping[str, Any]) -> ObservedProperty:
    return ObservedProperty(
        id=data.get(ID_KEY),
        name=_text(data, "name"),
        definition=_text(data, "definition"),
        description=_text(data, "description"),
        properties=data.get("properties"),
    )


def decode_unit(data: Mapping[str, Any] | None) -> UnitOfMeasurement:
    data = data or {}
    return UnitOfMeasurement(name=data.get("name"), symbol=data.get("symbol"), definition=data.get("definition"))


def decode_datastream(data: Mapping[str, Any]) -> Datastream:
    thing = data.get("Thing")
    sensor = data.get("Sensor")
    prop = data.get("ObservedProperty")
    return Datastream(
        id=data.get(ID_KEY),
        name=_text(data, "name"),
        description=_text(data, "description"),
        observation_type=data.get("observationType") or OBSERVATION_TYPE_OBSERVATION,
        unit_of_measurement=decode_unit(data.get("unitOfMeasurement")),
        properties=data.get("properties"),
        thing=decode_thing(thing) if isinstance(thing, Mapping) else None,
        sensor=decode_sensor(sensor) if isinstance(sensor, Mapping) else None,
        observed_property=decode_observed_property(prop) if isinstance(prop, Mapping) else None,
    )


def decode_feature_of_interest(data: Mapping[str, Any]) -> FeatureOfInterest:
    return FeatureOfInterest(
        id=data.get(ID_KEY),
        name=_text(data, "name"),
        description=_text(data, "description"),
        encoding_type=data.get("encodingType") or ENCODING_GEOJSON,
        feature=data.get("feature"),
        properties=data.get("properties"),
    )


def decode_observation(data: Mapping[str, Any]) -> Observation:
    phenomenon_time = data.get("phenomenonTime")
    if not phenomenon_time:
        raise MalformedPayloadError("Observation without phenomenonTime")
    return Observation(
        id=data.get(ID_KEY),
        result=data.get("result"),
        phenomenon_time=TimeValue.parse(str(phenomenon_time)),
        parameters=data.get("parameters"),
    )


DECODERS: dict[str, Callable[[Mapping[str, Any]], Any]] = {
    ENTITY_SET_THINGS: decode_thing,
    ENTITY_SET_LOCATIONS: decode_location,
    ENTITY_SET_SENSORS: decode_sensor,
    ENTITY_SET_OBSERVED_PROPERTIES: decode_observed_property,
    ENTITY_SET_DATASTREAMS: decode_datastream,
    ENTITY_SET_FEATURES_OF_INTEREST: decode_feature_of_interest,
    ENTITY_SET_OBSERVATIONS: decode_observation,
}


def decode(entity_set: str, data: Mapping[str, Any]) -> Any:
    try:
        decoder = DECODERS[entity_set]
    except KeyError as exc:
        raise TypeError(f"Unsupported entity set {entity_set}") from exc
    return decoder(data)


# Bulk observations ----------------------------------------------------------
def encode_data_arrays(observations: Iterable[Observation]) -> list[dict[str, Any]]:
    """Group observations per datastream into ``CreateObservations`` data arrays."""
    grouped: "OrderedDict[Any, list[Observation]]" = OrderedDict()
    for observation in observations:
        datastream = observation.datastream
        if datastream is None or datastream.id is None:
            raise ImporterError("Observations can only be uploaded for datastreams that exist remotely")
        grouped.setdefault(datastream.id, []).append(observation)

    payload: list[dict[str, Any]] = []
    for datastream_id, items in grouped.items():
        with_foi = any(item.feature_of_interest is not None for item in items)
        with_parameters = any(item.parameters is not None for item in items)
        components = ["phenomenonTime", "result"]
        if with_foi:
            components.append("FeatureOfInterest/id")
        if with_parameters:
            components.append("parameters")
        rows = []
        for item in items:
            row: list[Any] = [item.phenomenon_time.isoformat(), item.result]
            if with_foi:
                foi = item.feature_of_interest
                row.append(foi.id if foi is not None else None)
            if with_parameters:
                row.append(item.parameters)
            rows.append(row)
        payload.append(
            {
                "Datastream": {ID_KEY: datastream_id},
                "components": components,
                "dataArray@iot.count": len(rows),
                "dataArray": rows,
            }
        )
    return payload
