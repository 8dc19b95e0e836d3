from __future__ import annotations

import pytest

from sta_importer.core.exceptions import ImporterError
from sta_importer.core.models import (
    Datastream,
    FeatureOfInterest,
    Observation,
    ObservedProperty,
    Sensor,
    Thing,
    TimeValue,
    UnitOfMeasurement,
)
from sta_importer.sta import codec


def test_datastream_links_existing_and_deep_inserts_new() -> None:
    datastream = Datastream(
        name="ds",
        unit_of_measurement=UnitOfMeasurement("degree Celsius", "°C", "ucum:Cel"),
        thing=Thing(name="station", id=1),
        sensor=Sensor(name="thermo", encoding_type="text/plain", metadata="none"),
        observed_property=ObservedProperty(name="temperature", definition="http://example.org/T", id="op-1"),
    )
    payload = codec.encode(datastream)
    assert payload["Thing"] == {"@iot.id": 1}
    assert payload["ObservedProperty"] == {"@iot.id": "op-1"}
    assert payload["Sensor"] == {"name": "thermo", "description": "", "encodingType": "text/plain", "metadata": "none"}
    assert payload["unitOfMeasurement"] == {"name": "degree Celsius", "symbol": "°C", "definition": "ucum:Cel"}
    assert "properties" not in payload


def test_update_payload_omits_links() -> None:
    datastream = Datastream(name="ds", thing=Thing(name="station", id=1), id=2)
    assert "Thing" not in codec.encode(datastream, include_links=False)


def test_data_arrays_group_by_datastream() -> None:
    first = Datastream(name="a", id=1)
    second = Datastream(name="b", id=2)
    foi = FeatureOfInterest(name="f", id=7)
    time = TimeValue.parse("2024-05-01T12:00:00+02:00/2024-05-01T13:00:00+02:00")
    observations = [
        Observation(result=1, phenomenon_time=time, datastream=first, feature_of_interest=foi),
        Observation(result={"v": 2}, phenomenon_time=time, datastream=second, parameters={"q": "good"}),
        Observation(result=3, phenomenon_time=time, datastream=first),
    ]
    payload = codec.encode_data_arrays(observations)
    assert [item["Datastream"] for item in payload] == [{"@iot.id": 1}, {"@iot.id": 2}]
    assert payload[0]["components"] == ["phenomenonTime", "result", "FeatureOfInterest/id"]
    assert payload[0]["dataArray"] == [
        ["2024-05-01T10:00:00Z/2024-05-01T11:00:00Z", 1, 7],
        ["2024-05-01T10:00:00Z/2024-05-01T11:00:00Z", 3, None],
    ]
    assert payload[1]["components"] == ["phenomenonTime", "result", "parameters"]
    assert payload[1]["dataArray@iot.count"] == 1


def test_data_arrays_require_created_datastreams() -> None:
    observation = Observation(result=1, phenomenon_time=TimeValue.parse("2024-01-01"), datastream=Datastream(name="x"))
    with pytest.raises(ImporterError):
        codec.encode_data_arrays([observation])


def test_decode_datastream_with_expanded_links() -> None:
    datastream = codec.decode(
        "Datastreams",
        {
            "@iot.id": 3,
            "name": "ds",
            "unitOfMeasurement": {"name": "m", "symbol": "m", "definition": None},
            "Thing": {"@iot.id": 1, "name": "station"},
        },
    )
    assert datastream.id == 3
    assert datastream.thing == Thing(name="station", id=1)
    assert datastream.unit_of_measurement == UnitOfMeasurement("m", "m", None)
    assert datastream.sensor is None
