"""Find, create or update entities against the remote store."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, TypeVar

from sta_importer.core.constants import ENTITY_SET_THINGS, THING_LOCATIONS_EXPAND
from sta_importer.core.exceptions import AmbiguousMatchError
from sta_importer.core.logging import get_logger
from sta_importer.sta import codec
from sta_importer.sta.store import EntityStore
from sta_importer.templating import build_equals_filter

from .cache import EntityCache
from .rules import rule_for

LOGGER = get_logger(__name__)

E = TypeVar("E")

REMOTE_EXPAND: dict[str, str] = {ENTITY_SET_THINGS: THING_LOCATIONS_EXPAND}


@dataclass(slots=True)
class WriteStats:
    created: Counter[str] = field(default_factory=Counter)
    updated: Counter[str] = field(default_factory=Counter)
    unchanged: Counter[str] = field(default_factory=Counter)

    @property
    def total_created(self) -> int:
        return sum(self.created.values())

    @property
    def total_updated(self) -> int:
        return sum(self.updated.values())


class EntityWriter:
    """Issue create and update calls, or only log them in dry-run mode."""

    def __init__(self, store: EntityStore, *, dry_run: bool = False, stats: WriteStats | None = None) -> None:
        self._store = store
        self._dry_run = dry_run
        self.stats = stats or WriteStats()

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def create(self, entity: E) -> E:
        entity_set = codec.entity_set_for(entity)
        self.stats.created[entity_set] += 1
        if self._dry_run:
            LOGGER.info("reconcile.create.dry_run", entity_set=entity_set, name=getattr(entity, "name", None))
            return entity
        self._store.create(entity)
        LOGGER.info("reconcile.create", entity_set=entity_set, name=getattr(entity, "name", None), id=entity.id)
        return entity

    def update(self, entity: E) -> E:
        entity_set = codec.entity_set_for(entity)
        self.stats.updated[entity_set] += 1
        if self._dry_run:
            LOGGER.info("reconcile.update.dry_run", entity_set=entity_set, id=entity.id, name=entity.name)
            return entity
        self._store.update(entity)
        LOGGER.info("reconcile.update", entity_set=entity_set, id=entity.id, name=entity.name)
        return entity


class Reconciler:
    """Resolve a freshly built entity to the one entity that represents it remotely."""

    def __init__(self, store: EntityStore, writer: EntityWriter) -> None:
        self._store = store
        self._writer = writer

    @property
    def stats(self) -> WriteStats:
        return self._writer.stats

    def find_remote(self, entity_set: str, equals_filter: str) -> Any | None:
        """Return the single remote match for ``equals_filter``, or None.

        More than one match means the filter does not identify an entity and
        raises ``AmbiguousMatchError``.
        """
        matches = list(
            self._store.query(
                entity_set,
                filter=equals_filter,
                expand=REMOTE_EXPAND.get(entity_set),
                top=2,
                limit=2,
            )
        )
        if len(matches) > 1:
            raise AmbiguousMatchError(
                f"Filter on {entity_set} matched more than one entity: {equals_filter}"
            )
        return matches[0] if matches else None

    def reconcile(
        self,
        new_entity: E,
        *,
        cache: EntityCache[E],
        key: str | None = None,
        cached: E | None = None,
        equals_filter: str | None = None,
        **rule_options: Any,
    ) -> E:
        """Find, create or update ``new_entity`` and record the result in ``cache``.

        The cache is consulted by ``key`` (computed from the new entity when
        omitted) and ``cached`` overrides that lookup; a hit skips the remote
        query. ``equals_filter`` is a filter template evaluated against the
        new entity and defaults to a name match.
        """
        entity_set = codec.entity_set_for(new_entity)
        if key is None:
            key = cache.key_for(new_entity)
        existing = cached if cached is not None else cache.get(key)
        if existing is None:
            rendered_filter = build_equals_filter(equals_filter, new_entity)
            existing = self.find_remote(entity_set, rendered_filter)

        if existing is None:
            result = self._writer.create(new_entity)
        else:
            if rule_for(existing)(existing, new_entity, **rule_options):
                self._writer.update(existing)
            else:
                self._writer.stats.unchanged[entity_set] += 1
                LOGGER.debug("reconcile.unchanged", entity_set=entity_set, id=existing.id)
            result = existing

        cache.put(result, key)
        return result
