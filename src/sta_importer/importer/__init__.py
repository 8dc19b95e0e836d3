"""Import definitions, input loaders and the import run."""

from .config import ImportConfig, load_import_config
from .loaders import load_features, parse_csv, parse_geojson
from .service import FeatureImporter, ImportReport

__all__ = [
    "FeatureImporter",
    "ImportConfig",
    "ImportReport",
    "load_features",
    "load_import_config",
    "parse_csv",
    "parse_geojson",
]
