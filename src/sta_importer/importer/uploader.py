"""Accumulate observations during a run and upload them in chunks at the end."""

from __future__ import annotations

from dataclasses import dataclass

from sta_importer.core.logging import get_logger
from sta_importer.core.models import Observation
from sta_importer.sta.store import EntityStore

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class UploadResult:
    submitted: int = 0
    created: int = 0
    failed: int = 0


class ObservationUploader:
    def __init__(self, store: EntityStore, *, chunk_size: int = 1000, dry_run: bool = False) -> None:
        self._store = store
        self._chunk_size = max(1, chunk_size)
        self._dry_run = dry_run
        self._pending: list[Observation] = []

    def add(self, observation: Observation) -> None:
        self._pending.append(observation)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def flush(self) -> UploadResult:
        """Send every pending observation; the buffer is emptied either way."""
        result = UploadResult()
        pending, self._pending = self._pending, []
        if not pending:
            return result
        if self._dry_run:
            LOGGER.info("uploader.flush.dry_run", observations=len(pending))
            result.submitted = len(pending)
            return result
        for start in range(0, len(pending), self._chunk_size):
            chunk = pending[start : start + self._chunk_size]
            responses = self._store.create_observations(chunk)
            failed = sum(1 for item in responses if item.lower().startswith("error"))
            result.submitted += len(chunk)
            result.failed += failed
            result.created += len(responses) - failed
            LOGGER.info("uploader.chunk", observations=len(chunk), failed=failed)
        return result
