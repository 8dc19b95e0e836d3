from __future__ import annotations

import copy
import re
from collections import defaultdict
from typing import Any, Iterator, Sequence

import pytest

from sta_importer.core.config import Settings
from sta_importer.core.models import Observation
from sta_importer.sta import codec
from sta_importer.templating.engine import stringify
from sta_importer.templating.paths import ABSENT, resolve

_EQ_FILTER = re.compile(r"^\s*([\w/]+)\s+eq\s+'((?:[^']|'')*)'\s*$")


def _matches(entity: Any, filter: str | None) -> bool:
    if not filter:
        return True
    match = _EQ_FILTER.match(filter)
    if match is None:
        raise AssertionError(f"FakeStore cannot evaluate filter {filter!r}")
    value = resolve(match.group(1), entity)
    if value is ABSENT or value is None:
        return False
    return stringify(value) == match.group(2).replace("''", "'")


class FakeStore:
    """In-memory entity store that records every call."""

    def __init__(self) -> None:
        self.entities: dict[str, list[Any]] = defaultdict(list)
        self.created: list[Any] = []
        self.updated: list[Any] = []
        self.queries: list[tuple[str, str | None]] = []
        self.observation_batches: list[list[Observation]] = []
        self._next_id = 1

    def add(self, entity: Any) -> Any:
        """Seed an entity as if it already existed remotely."""
        if entity.id is None:
            entity.id = self._next_id
            self._next_id += 1
        self.entities[codec.entity_set_for(entity)].append(copy.deepcopy(entity))
        return entity

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
        self.queries.append((entity_set, filter))
        matches = [copy.deepcopy(item) for item in self.entities[entity_set] if _matches(item, filter)]
        if limit is not None:
            matches = matches[:limit]
        return iter(matches)

    def create(self, entity: Any) -> Any:
        self.add(entity)
        self.created.append(copy.deepcopy(entity))
        return entity

    def update(self, entity: Any) -> None:
        stored = self.entities[codec.entity_set_for(entity)]
        for index, item in enumerate(stored):
            if item.id == entity.id:
                stored[index] = copy.deepcopy(entity)
                break
        else:
            raise AssertionError(f"update of unknown entity {entity.id}")
        self.updated.append(copy.deepcopy(entity))

    def create_observations(self, observations: Sequence[Observation]) -> list[str]:
        self.observation_batches.append(list(observations))
        results = []
        for observation in observations:
            observation.id = self._next_id
            results.append(f"http://sta.test/v1.1/Observations({self._next_id})")
            self._next_id += 1
        return results


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(sta_base_url="http://sta.test/v1.1/", max_retries=1, upload_chunk_size=100)
