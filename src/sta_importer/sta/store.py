"""Typed entity store used by the caches and the reconciler."""

from __future__ import annotations

from typing import Any, Iterator, Protocol, Sequence

from sta_importer.core.logging import get_logger
from sta_importer.core.models import Observation

from . import codec
from .client import SensorThingsClient

LOGGER = get_logger(__name__)


class EntityStore(Protocol):
    """Remote operations the importer depends on."""

    def query(
        self,
        entity_set: str,
        *,
        filter: str | None = None,
        select: str | None = None,
        expand: str | None = None,
        top: int | None = None,
        limit: int | None = None,
    ) -> Iterator[Any]: ...

    def create(self, entity: Any) -> Any: ...

    def update(self, entity: Any) -> None: ...

    def create_observations(self, observations: Sequence[Observation]) -> list[str]: ...


class SensorThingsStore:
    """Decode query results into entities and encode entities for writes."""

    def __init__(self, client: SensorThingsClient) -> None:
        self._client = client

    def query(
        self,
        entity_set: str,
        *,
        filter: str | None = None,
        select: str | None = None,
        expand: str | None = None,
        top: int | None = None,
        limit: int | None = None,
    ) -> Iterator[Any]:
        for raw in self._client.query(
            entity_set, filter=filter, select=select, expand=expand, top=top, limit=limit
        ):
            yield codec.decode(entity_set, raw)

    def create(self, entity: Any) -> Any:
        """Create ``entity`` remotely and store the assigned id on it."""
        entity_set = codec.entity_set_for(entity)
        entity.id = self._client.create(entity_set, codec.encode(entity, include_links=True))
        return entity

    def update(self, entity: Any) -> None:
        entity_set = codec.entity_set_for(entity)
        self._client.update(entity_set, entity.id, codec.encode(entity, include_links=False))

    def create_observations(self, observations: Sequence[Observation]) -> list[str]:
        if not observations:
            return []
        results = self._client.create_observations(codec.encode_data_arrays(observations))
        failures = [item for item in results if item.lower().startswith("error")]
        if failures:
            LOGGER.warning("sta.observations_failed", failed=len(failures), first=failures[0])
        return results

    def close(self) -> None:
        self._client.close()
