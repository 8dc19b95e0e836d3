from __future__ import annotations

from typing import Any

import pytest
from conftest import FakeStore

from sta_importer.core.config import Settings
from sta_importer.core.exceptions import RemoteCallError
from sta_importer.core.models import Feature, Location
from sta_importer.importer import FeatureImporter
from sta_importer.importer.config import parse_import_config

NUTS_CONFIG = {
    "locations": {
        "name": "{properties/NUTS_ID}",
        "description": "Region {properties/NUTS_NAME}",
        "cache": {"key_template": "{name}"},
    }
}


def _nuts_feature(name: str = "Stuttgart") -> Feature:
    return Feature(
        geometry={"type": "Point", "coordinates": [9.18, 48.78]},
        properties={"NUTS_ID": "DE1", "NUTS_NAME": name},
    )


def _importer(config: dict[str, Any], store: FakeStore, settings: Settings, **kwargs: Any) -> FeatureImporter:
    return FeatureImporter(parse_import_config(config), store, settings=settings, **kwargs)


def test_nuts_import_is_idempotent_and_updates_only_changes(store: FakeStore, settings: Settings) -> None:
    first = _importer(NUTS_CONFIG, store, settings).run([_nuts_feature()])
    assert first.created == {"Locations": 1}
    assert [location.name for location in store.created] == ["DE1"]
    assert store.created[0].description == "Region Stuttgart"

    second = _importer(NUTS_CONFIG, store, settings).run([_nuts_feature()])
    assert second.updated == {}
    assert store.updated == []
    assert len(store.created) == 1

    third = _importer(NUTS_CONFIG, store, settings).run([_nuts_feature("Stuttgart Region")])
    assert third.updated == {"Locations": 1}
    assert len(store.updated) == 1
    updated = store.updated[0]
    first_created = store.created[0]
    assert updated.description == "Region Stuttgart Region"
    assert updated.name == first_created.name
    assert updated.location == first_created.location
    assert updated.properties == first_created.properties


def test_second_run_uses_loaded_cache(store: FakeStore, settings: Settings) -> None:
    _importer(NUTS_CONFIG, store, settings).run([_nuts_feature()])
    store.queries.clear()
    _importer(NUTS_CONFIG, store, settings).run([_nuts_feature()])
    assert store.queries == [("Locations", None)]


def test_dry_run_leaves_store_untouched(store: FakeStore, settings: Settings) -> None:
    report = _importer(NUTS_CONFIG, store, settings, dry_run=True).run([_nuts_feature()])
    assert report.dry_run is True
    assert report.created == {"Locations": 1}
    assert store.created == []


def test_thing_is_linked_to_feature_location(store: FakeStore, settings: Settings) -> None:
    config = {
        **NUTS_CONFIG,
        "things": {"name": "{properties/NUTS_ID}", "description": "Region {properties/NUTS_NAME}"},
    }
    _importer(config, store, settings).run([_nuts_feature()])
    location, thing = store.created
    assert isinstance(location, Location)
    assert [linked.id for linked in thing.locations] == [location.id]

    report = _importer(config, store, settings).run([_nuts_feature()])
    assert report.updated == {}
    assert report.unchanged == {"Locations": 1, "Things": 1}


def test_failed_feature_does_not_stop_the_run(store: FakeStore, settings: Settings) -> None:
    config = {
        "locations": {
            "name": "{properties/NUTS_ID}",
            "properties": '{"nuts": {properties/NUTS_LEVEL|}}',
        }
    }
    good = Feature(properties={"NUTS_ID": "DE1", "NUTS_LEVEL": 1})
    bad = Feature(properties={"NUTS_ID": "DE2"})
    report = _importer(config, store, settings).run([bad, good])
    assert report.features == 2
    assert report.failed == 1
    assert report.errors[0].startswith("feature 0: Failed to parse json")
    assert [location.name for location in store.created] == ["DE1"]
    assert store.created[0].properties == {"nuts": 1}


def test_ambiguous_match_fails_only_that_feature(store: FakeStore, settings: Settings) -> None:
    store.add(Location(name="DE1"))
    store.add(Location(name="DE1"))
    config = {"locations": {"name": "{properties/NUTS_ID}"}}
    report = _importer(config, store, settings).run([_nuts_feature()])
    assert report.failed == 1
    assert "more than one" in report.errors[0]


def test_cache_load_failure_aborts_run(settings: Settings) -> None:
    class FailingStore(FakeStore):
        def query(self, entity_set: str, **kwargs: Any):
            raise RemoteCallError("service down")

    with pytest.raises(RemoteCallError):
        _importer(NUTS_CONFIG, FailingStore(), settings).run([_nuts_feature()])


STATION_CONFIG = {
    "things": {"name": "{properties/station}", "description": "Station {properties/station}"},
    "sensors": {"name": "Thermometer", "encoding_type": "text/plain", "metadata": "none", "evaluate_once": True},
    "observed_properties": {"name": "Temperature", "definition": "http://example.org/temperature"},
    "datastreams": {
        "name": "{properties/station} temperature",
        "uom_name": "degree Celsius",
        "uom_symbol": "°C",
        "uom_definition": "ucum:Cel",
        "thing_key": "{properties/station}",
        "sensor_key": "Thermometer",
        "observed_property_key": "Temperature",
    },
    "observations": {
        "result": "{N:properties/value}",
        "phenomenon_time": "{properties/time}",
        "datastream_key": "{properties/station} temperature",
    },
}


def _reading(value: str, time: str) -> Feature:
    return Feature(properties={"station": "S1", "value": value, "time": time})


def test_observations_are_uploaded_after_all_features(store: FakeStore, settings: Settings) -> None:
    features = [_reading("21,5", "2024-01-01T00:00:00Z"), _reading("22", "2024-01-01T01:00:00+01:00")]
    report = _importer(STATION_CONFIG, store, settings).run(features)

    assert report.failed == 0
    assert report.created == {"Things": 1, "Sensors": 1, "ObservedProperties": 1, "Datastreams": 1}
    assert report.observations_submitted == 2
    assert len(store.observation_batches) == 1
    batch = store.observation_batches[0]
    assert [observation.result for observation in batch] == [21.5, 22]
    assert batch[1].phenomenon_time.isoformat() == "2024-01-01T00:00:00Z"
    datastream = batch[0].datastream
    assert datastream.name == "S1 temperature"
    assert datastream.thing.name == "S1"
    assert datastream.sensor.name == "Thermometer"
    assert datastream.observed_property.definition == "http://example.org/temperature"


def test_evaluate_once_reconciles_sensor_for_first_feature_only(store: FakeStore, settings: Settings) -> None:
    config = {"sensors": {"name": "{properties/station}", "evaluate_once": True}}
    _importer(config, store, settings).run([_reading("1", "2024-01-01"), Feature(properties={"station": "S2"})])
    assert [sensor.name for sensor in store.created] == ["S1"]
    assert store.queries == [("Sensors", "name eq 'S1'")]


def test_missing_datastream_fails_the_observation(store: FakeStore, settings: Settings) -> None:
    config = {"observations": STATION_CONFIG["observations"]}
    report = _importer(config, store, settings).run([_reading("1", "2024-01-01")])
    assert report.failed == 1
    assert report.observations_submitted == 0


def test_preview_renders_every_configured_creator(store: FakeStore, settings: Settings) -> None:
    config = {
        **NUTS_CONFIG,
        "things": {"name": "{properties/NUTS_ID}", "properties": "{broken"},
    }
    importer = _importer(config, store, settings)
    text = importer.preview(_nuts_feature())
    assert "Location:\n  name: DE1\n  description: Region Stuttgart\n" in text
    assert "  Equals Filter: name eq 'DE1'\n" in text
    assert "  Cache Key: DE1\n" in text
    assert "Thing:\n" in text
    assert "  properties: Failed to parse json:" in text
    assert store.queries == []
    assert store.created == []


def test_preview_reports_gated_and_unconfigured_creators(store: FakeStore, settings: Settings) -> None:
    config = {
        "sensors": {"name": "x", "if_not_empty": "{properties/missing}"},
        "datastreams": {},
    }
    text = _importer(config, store, settings).preview(_nuts_feature())
    assert "Sensor:\n  ifNotEmpty Template is empty.\n" in text
    assert "Datastream not configured.\n" in text


@pytest.mark.parametrize(
    ("options", "bad_geometry"),
    [
        ({"crs": "EPSG:3857"}, {"type": "Polygon", "coordinates": [1, 2]}),
        ({"flip_coordinates": True}, {"type": "Point", "coordinates": [float("inf"), 1.0]}),
    ],
)
def test_malformed_geometry_fails_only_that_feature(
    store: FakeStore, settings: Settings, options: dict[str, Any], bad_geometry: dict[str, Any]
) -> None:
    config = {"locations": {"name": "{properties/NUTS_ID}", **options}}
    bad = Feature(geometry=bad_geometry, properties={"NUTS_ID": "DE0"})
    good = Feature(geometry={"type": "Point", "coordinates": [1000.0, 2000.0]}, properties={"NUTS_ID": "DE1"})
    report = _importer(config, store, settings).run([bad, good])
    assert report.features == 2
    assert report.failed == 1
    assert report.errors[0].startswith("feature 0:")
    assert [location.name for location in store.created] == ["DE1"]
