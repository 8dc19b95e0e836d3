"""Template-driven import of feature records into a SensorThings entity graph."""

__version__ = "0.1.0"
