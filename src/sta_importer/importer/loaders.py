"""Turn GeoJSON and CSV input into feature records."""

from __future__ import annotations

import csv
import io
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterator

from sta_importer.core.exceptions import MalformedPayloadError
from sta_importer.core.logging import get_logger
from sta_importer.core.models import Feature
from sta_importer.geometry import reproject_position
from sta_importer.templating import convert_decimal_separator

from .config import CsvOptions

LOGGER = get_logger(__name__)


def parse_geojson(text: str) -> list[Feature]:
    """Parse a GeoJSON ``FeatureCollection`` (or a single ``Feature``)."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(f"Failed to parse json: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedPayloadError("GeoJSON input must be an object")
    if data.get("type") == "Feature":
        items = [data]
    elif data.get("type") == "FeatureCollection":
        items = data.get("features") or []
    else:
        raise MalformedPayloadError(f"Unsupported GeoJSON type {data.get('type')!r}")
    return [_feature_from_json(item) for item in items if isinstance(item, dict)]


def _feature_from_json(item: dict[str, Any]) -> Feature:
    return Feature(
        id=item.get("id"),
        geometry=item.get("geometry"),
        properties=item.get("properties") or {},
    )


def parse_number(text: str) -> float:
    """Parse a coordinate written with either decimal separator."""
    try:
        return float(Decimal(convert_decimal_separator(text.strip())))
    except (InvalidOperation, ValueError) as exc:
        raise MalformedPayloadError(f"Not a number: {text!r}") from exc


def _iter_rows(text: str, options: CsvOptions) -> Iterator[list[str]]:
    marker = options.comment_marker[:1]
    reader = csv.reader(io.StringIO(text), delimiter=options.effective_delimiter)
    for row in reader:
        if marker and row and row[0].startswith(marker):
            continue
        if not row:
            continue
        yield row


def parse_csv(text: str, options: CsvOptions) -> list[Feature]:
    """Read CSV rows as features; the two axis columns become a Point.

    The CRS option names a column when the header has one of that name and
    is used as a literal CRS otherwise.
    """
    rows = _iter_rows(text, options)
    header: list[str] | None = None
    if options.has_header:
        header = next(rows, None)
        if header is None:
            return []

    features: list[Feature] = []
    for index, row in enumerate(rows):
        if index < options.row_skip:
            continue
        if header is not None:
            properties: dict[str, Any] = dict(zip(header, row))
        else:
            properties = {str(position): value for position, value in enumerate(row)}
        features.append(Feature(geometry=_point_for(properties, options), properties=properties))
    LOGGER.info("loader.csv", features=len(features))
    return features


def _point_for(properties: dict[str, Any], options: CsvOptions) -> dict[str, Any] | None:
    if not options.axis_one or not options.axis_two:
        return None
    if options.axis_one not in properties or options.axis_two not in properties:
        return None
    crs = properties.get(options.crs, options.crs) if options.crs else ""
    position = [parse_number(properties[options.axis_one]), parse_number(properties[options.axis_two])]
    return {"type": "Point", "coordinates": reproject_position(position, crs, options.number_scale)}


def load_features(path: str | Path, csv_options: CsvOptions | None = None) -> list[Feature]:
    """Load a GeoJSON or CSV file, chosen by ``csv_options`` or the file suffix."""
    file_path = Path(path)
    text = file_path.read_text(encoding="utf-8")
    if csv_options is not None or file_path.suffix.lower() in {".csv", ".tsv"}:
        return parse_csv(text, csv_options or CsvOptions())
    return parse_geojson(text)
