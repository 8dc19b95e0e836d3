"""Command line entry points for importing features into a SensorThings service.

``run_import`` performs an import (dry run unless ``--commit``) and
``preview_features`` renders what an import definition builds per feature.
"""

__all__ = ["preview_features", "run_import"]
