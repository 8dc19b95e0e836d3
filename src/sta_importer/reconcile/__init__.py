"""Equality, merging, caching and reconciliation of remote entities."""

from .cache import EntityCache, ImportContext
from .compare import values_equal
from .merge import merge_properties
from .service import EntityWriter, Reconciler, WriteStats

__all__ = [
    "EntityCache",
    "EntityWriter",
    "ImportContext",
    "Reconciler",
    "WriteStats",
    "merge_properties",
    "values_equal",
]
