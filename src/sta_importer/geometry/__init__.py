"""Coordinate reprojection helpers."""

from .transform import canonical_geometry_json, normalize_crs_id, reproject, reproject_position, round_half_even

__all__ = [
    "canonical_geometry_json",
    "normalize_crs_id",
    "reproject",
    "reproject_position",
    "round_half_even",
]
