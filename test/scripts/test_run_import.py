"""Tests covering the import and preview command line scripts."""

from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path
from typing import Any

import pytest
from conftest import FakeStore

from sta_importer.core.config import Settings

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

run_import = importlib.import_module("scripts.run_import")
preview_features = importlib.import_module("scripts.preview_features")

GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [9.18, 48.78]},
            "properties": {"NUTS_ID": "DE1", "NUTS_NAME": "Stuttgart"},
        }
    ],
}

IMPORT_CONFIG = {"locations": {"name": "{properties/NUTS_ID}", "description": "Region {properties/NUTS_NAME}"}}


class _FakeClient:
    def __init__(self, settings: Any = None) -> None:
        self.settings = settings

    def __enter__(self) -> "_FakeClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


@pytest.fixture
def inputs(tmp_path: Path) -> tuple[Path, Path]:
    config_path = tmp_path / "import.json"
    config_path.write_text(json.dumps(IMPORT_CONFIG), encoding="utf-8")
    input_path = tmp_path / "regions.geojson"
    input_path.write_text(json.dumps(GEOJSON), encoding="utf-8")
    return config_path, input_path


def _patch_remote(monkeypatch: pytest.MonkeyPatch, store: FakeStore) -> None:
    monkeypatch.setattr(run_import, "get_settings", lambda: Settings(sta_base_url="http://sta.test/v1.1/"))
    monkeypatch.setattr(run_import, "SensorThingsClient", _FakeClient)
    monkeypatch.setattr(run_import, "SensorThingsStore", lambda client: store)


def test_run_import_is_dry_run_without_commit(
    monkeypatch: pytest.MonkeyPatch, inputs: tuple[Path, Path], tmp_path: Path
) -> None:
    store = FakeStore()
    _patch_remote(monkeypatch, store)
    config_path, input_path = inputs
    report_path = tmp_path / "out" / "report.json"
    monkeypatch.setattr(
        sys,
        "argv",
        ["run_import", "--config", str(config_path), "--input", str(input_path), "--report", str(report_path)],
    )

    assert run_import.main() == 0
    assert store.created == []
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["dry_run"] is True
    assert report["created"] == {"Locations": 1}


def test_run_import_commit_writes_entities(monkeypatch: pytest.MonkeyPatch, inputs: tuple[Path, Path]) -> None:
    store = FakeStore()
    _patch_remote(monkeypatch, store)
    config_path, input_path = inputs
    monkeypatch.setattr(
        sys, "argv", ["run_import", "--config", str(config_path), "--input", str(input_path), "--commit"]
    )

    assert run_import.main() == 0
    assert [location.name for location in store.created] == ["DE1"]


def test_run_import_rejects_invalid_definition(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _patch_remote(monkeypatch, FakeStore())
    config_path = tmp_path / "import.json"
    config_path.write_text('{"locations": {"unknown_option": 1}}', encoding="utf-8")
    input_path = tmp_path / "regions.geojson"
    input_path.write_text(json.dumps(GEOJSON), encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["run_import", "--config", str(config_path), "--input", str(input_path)])

    assert run_import.main() == 2


def test_preview_prints_rendered_location(
    monkeypatch: pytest.MonkeyPatch, inputs: tuple[Path, Path], capsys: pytest.CaptureFixture[str]
) -> None:
    config_path, input_path = inputs
    monkeypatch.setattr(sys, "argv", ["preview_features", "--config", str(config_path), "--input", str(input_path)])

    assert preview_features.main() == 0
    output = capsys.readouterr().out
    assert "=== Feature 0 ===" in output
    assert "Location:\n  name: DE1\n  description: Region Stuttgart\n" in output
