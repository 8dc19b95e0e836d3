"""Reprojection of GeoJSON coordinates into the canonical CRS."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_EVEN, Decimal
from functools import lru_cache
from typing import Any, Mapping, Sequence

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from sta_importer.core.constants import CANONICAL_CRS, DEFAULT_NUMBER_SCALE
from sta_importer.core.exceptions import ProjectionError
from sta_importer.core.json_utils import canonical_json
from sta_importer.core.logging import get_logger

LOGGER = get_logger(__name__)

# GeoJSON type -> nesting depth of its coordinate array above the positions.
_SUPPORTED_DEPTHS = {"Point": 0, "Polygon": 2, "MultiPolygon": 3}


def normalize_crs_id(crs_id: str | None) -> str:
    """Treat bare numeric codes as EPSG codes."""
    text = (crs_id or "").strip()
    if text.isdigit():
        return f"EPSG:{text}"
    return text


@lru_cache(maxsize=32)
def get_transformer(source_crs: str) -> Transformer:
    try:
        source = CRS.from_user_input(source_crs)
        return Transformer.from_crs(source, CANONICAL_CRS, always_xy=True)
    except (CRSError, ProjError) as exc:
        raise ProjectionError(f"Unable to resolve CRS '{source_crs}'") from exc


def _is_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def round_half_even(value: float, scale: int) -> float:
    """Round the exact binary value of ``value`` half-even to ``scale`` digits."""
    quantum = Decimal(1).scaleb(-scale)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_EVEN))


def reproject_position(
    position: Sequence[float],
    source_crs: str | None = None,
    scale: int = DEFAULT_NUMBER_SCALE,
    flip: bool = False,
) -> list[float]:
    """Transform one ``[x, y, ...]`` position; extra dimensions are kept as is."""
    if not _is_array(position) or len(position) < 2:
        raise ProjectionError(f"Position needs at least two coordinates, got {position!r}")
    try:
        x, y = float(position[0]), float(position[1])
    except (TypeError, ValueError) as exc:
        raise ProjectionError(f"Non numeric coordinate in {list(position)}") from exc
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ProjectionError(f"Non finite coordinate in {list(position)}")
    if flip:
        x, y = y, x

    crs_id = normalize_crs_id(source_crs)
    if crs_id:
        transformer = get_transformer(crs_id)
        try:
            x, y = transformer.transform(x, y, errcheck=True)
        except ProjError as exc:
            raise ProjectionError(f"Failed to transform {list(position)} from {crs_id}") from exc
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ProjectionError(f"Failed to transform {list(position)} from {crs_id}")

    return [round_half_even(x, scale), round_half_even(y, scale), *position[2:]]


def _reproject_nested(coordinates: Any, depth: int, source_crs: str | None, scale: int, flip: bool) -> list[Any]:
    if depth == 0:
        return reproject_position(coordinates, source_crs, scale, flip)
    if not _is_array(coordinates):
        raise ProjectionError(f"Expected a coordinate array, got {coordinates!r}")
    return [_reproject_nested(item, depth - 1, source_crs, scale, flip) for item in coordinates]


def reproject(
    geometry: Mapping[str, Any] | None,
    source_crs: str | None = None,
    scale: int = DEFAULT_NUMBER_SCALE,
    flip: bool = False,
) -> dict[str, Any] | None:
    """Return a copy of ``geometry`` in the canonical CRS.

    Point, Polygon and MultiPolygon are transformed position by position with
    their ring and part structure preserved. Other geometry types are passed
    through unchanged. With an empty ``source_crs`` positions are only
    rounded and optionally flipped.
    """
    if geometry is None:
        return None
    geometry_type = geometry.get("type")
    depth = _SUPPORTED_DEPTHS.get(geometry_type)
    if depth is None:
        LOGGER.debug("geometry.passthrough", geometry_type=geometry_type)
        return dict(geometry)
    coordinates = geometry.get("coordinates")
    if coordinates is None:
        raise ProjectionError(f"{geometry_type} geometry has no coordinates")
    result = dict(geometry)
    result["coordinates"] = _reproject_nested(coordinates, depth, source_crs, scale, flip)
    return result


def canonical_geometry_json(geometry: Any) -> str | None:
    """Serialise a geometry for string equality checks."""
    if geometry is None:
        return None
    return canonical_json(geometry)
