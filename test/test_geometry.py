from __future__ import annotations

import pytest

from sta_importer.core.exceptions import ProjectionError
from sta_importer.geometry import canonical_geometry_json, reproject, reproject_position, round_half_even


def test_round_half_even_uses_exact_binary_value() -> None:
    # 1.005 is stored as 1.00499999..., so it rounds down.
    assert round_half_even(1.005, 2) == 1.0
    assert round_half_even(1.0051, 2) == 1.01
    assert round_half_even(0.125, 2) == 0.12
    assert round_half_even(0.375, 2) == 0.38
    assert round_half_even(-0.125, 2) == -0.12


def test_reproject_without_crs_only_rounds() -> None:
    point = {"type": "Point", "coordinates": [1.005, 2.0051]}
    assert reproject(point, "", 2) == {"type": "Point", "coordinates": [1.0, 2.01]}
    assert point["coordinates"] == [1.005, 2.0051]


def test_reproject_flips_axes() -> None:
    assert reproject_position([48.78, 9.18], None, 6, flip=True) == [9.18, 48.78]


def test_reproject_keeps_extra_dimensions() -> None:
    assert reproject_position([1.0, 2.0, 345.5], "", 3) == [1.0, 2.0, 345.5]


def test_reproject_web_mercator_to_wgs84() -> None:
    assert reproject({"type": "Point", "coordinates": [0.0, 0.0]}, "EPSG:3857", 6)["coordinates"] == [0.0, 0.0]
    result = reproject({"type": "Point", "coordinates": [1113194.9079327357, 0.0]}, "3857", 6)
    assert result["coordinates"] == [10.0, 0.0]


def test_reproject_preserves_polygon_structure() -> None:
    ring = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 0.0]]
    multi = {"type": "MultiPolygon", "coordinates": [[ring], [ring, ring]]}
    result = reproject(multi, "", 1)
    assert result["type"] == "MultiPolygon"
    assert [len(part) for part in result["coordinates"]] == [1, 2]
    assert result["coordinates"][1][1] == ring

    polygon = reproject({"type": "Polygon", "coordinates": [ring]}, "EPSG:4326", 4)
    assert polygon["coordinates"] == [ring]


def test_reproject_passes_other_geometries_through() -> None:
    line = {"type": "LineString", "coordinates": [[0.123456789, 1.0], [2.0, 3.0]]}
    assert reproject(line, "EPSG:3857", 2) == line
    assert reproject(None, "EPSG:3857") is None


@pytest.mark.parametrize("crs", ["EPSG:999999", "definitely not a crs"])
def test_reproject_with_unknown_crs_fails(crs: str) -> None:
    with pytest.raises(ProjectionError):
        reproject({"type": "Point", "coordinates": [1.0, 2.0]}, crs, 6)


def test_reproject_without_coordinates_fails() -> None:
    with pytest.raises(ProjectionError):
        reproject({"type": "Point"}, "", 6)


def test_canonical_geometry_json_ignores_key_order() -> None:
    left = {"type": "Point", "coordinates": [1.0, 2.0]}
    right = {"coordinates": [1.0, 2.0], "type": "Point"}
    assert canonical_geometry_json(left) == canonical_geometry_json(right)
    assert canonical_geometry_json({"type": "Point", "coordinates": [1, 2]}) != canonical_geometry_json(left)


@pytest.mark.parametrize(
    "geometry",
    [
        {"type": "Polygon", "coordinates": [1.0, 2.0]},
        {"type": "Point", "coordinates": 5},
        {"type": "Point", "coordinates": [float("inf"), 1.0]},
    ],
)
def test_reproject_malformed_coordinates_fails(geometry: dict) -> None:
    with pytest.raises(ProjectionError):
        reproject(geometry, "", 6, True)
