"""SensorThings API client, wire codec and entity store."""

from .client import SensorThingsClient
from .store import EntityStore, SensorThingsStore

__all__ = ["EntityStore", "SensorThingsClient", "SensorThingsStore"]
