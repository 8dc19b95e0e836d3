"""Run an import: load caches, reconcile every feature, upload observations."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from sta_importer.core.config import Settings, get_settings
from sta_importer.core.constants import (
    ENTITY_SET_DATASTREAMS,
    ENTITY_SET_FEATURES_OF_INTEREST,
    ENTITY_SET_LOCATIONS,
    ENTITY_SET_OBSERVED_PROPERTIES,
    ENTITY_SET_SENSORS,
    ENTITY_SET_THINGS,
    THING_LOCATIONS_EXPAND,
)
from sta_importer.core.exceptions import ImporterError
from sta_importer.core.logging import get_logger
from sta_importer.core.models import Feature
from sta_importer.reconcile import EntityWriter, ImportContext, Reconciler
from sta_importer.sta.store import EntityStore

from .config import CacheConfig, ImportConfig
from .creators import (
    DatastreamCreator,
    FeatureOfInterestCreator,
    LocationCreator,
    ObservationCreator,
    ObservedPropertyCreator,
    SensorCreator,
    ThingCreator,
)
from .uploader import ObservationUploader

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class ImportReport:
    features: int = 0
    failed: int = 0
    created: dict[str, int] = field(default_factory=dict)
    updated: dict[str, int] = field(default_factory=dict)
    unchanged: dict[str, int] = field(default_factory=dict)
    observations_submitted: int = 0
    observations_failed: int = 0
    errors: list[str] = field(default_factory=list)
    dry_run: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _cache_config(creator_config: Any) -> CacheConfig:
    return creator_config.cache if creator_config is not None else CacheConfig()


def build_context(config: ImportConfig) -> ImportContext:
    """Create empty caches keyed and filtered as the import definition says."""
    things_cache = _cache_config(config.things)
    if not things_cache.expand:
        things_cache = things_cache.model_copy(update={"expand": THING_LOCATIONS_EXPAND})
    return ImportContext(
        things=things_cache.build(ENTITY_SET_THINGS),
        locations=_cache_config(config.locations).build(ENTITY_SET_LOCATIONS),
        sensors=_cache_config(config.sensors).build(ENTITY_SET_SENSORS),
        observed_properties=_cache_config(config.observed_properties).build(ENTITY_SET_OBSERVED_PROPERTIES),
        datastreams=_cache_config(config.datastreams).build(ENTITY_SET_DATASTREAMS),
        features_of_interest=_cache_config(config.features_of_interest).build(ENTITY_SET_FEATURES_OF_INTEREST),
    )


class FeatureImporter:
    """Import features one after another against a single remote store."""

    def __init__(
        self,
        config: ImportConfig,
        store: EntityStore,
        *,
        settings: Settings | None = None,
        dry_run: bool | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = config
        self._store = store
        self._dry_run = self._settings.dry_run if dry_run is None else dry_run
        self.context = build_context(config)
        self._writer = EntityWriter(store, dry_run=self._dry_run)
        self._reconciler = Reconciler(store, self._writer)
        self._uploader = ObservationUploader(
            store, chunk_size=self._settings.upload_chunk_size, dry_run=self._dry_run
        )
        self._locations = LocationCreator(config.locations) if config.locations is not None else None
        self._things = ThingCreator(config.things) if config.things is not None else None
        self._sensors = SensorCreator(config.sensors) if config.sensors is not None else None
        self._observed_properties = (
            ObservedPropertyCreator(config.observed_properties) if config.observed_properties is not None else None
        )
        self._datastreams = DatastreamCreator(config.datastreams) if config.datastreams is not None else None
        self._features = (
            FeatureOfInterestCreator(config.features_of_interest) if config.features_of_interest is not None else None
        )
        self._observations = ObservationCreator(config.observations) if config.observations is not None else None

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    def _creators(self) -> list[Any]:
        return [
            creator
            for creator in (
                self._locations,
                self._things,
                self._sensors,
                self._observed_properties,
                self._datastreams,
                self._features,
                self._observations,
            )
            if creator is not None
        ]

    def load_caches(self) -> int:
        """Bulk load every keyed cache. Failures here abort the run."""
        return self.context.load_all(self._store, self._settings.page_size)

    def import_feature(self, feature: Feature) -> None:
        """Reconcile every configured entity kind for one feature."""
        context, reconciler = self.context, self._reconciler
        location = self._locations.create(feature, context, reconciler) if self._locations else None
        if self._things is not None:
            self._things.create(feature, context, reconciler, location=location)
        if self._sensors is not None:
            self._sensors.create(feature, context, reconciler)
        if self._observed_properties is not None:
            self._observed_properties.create(feature, context, reconciler)
        if self._datastreams is not None:
            self._datastreams.create(feature, context, reconciler)
        if self._features is not None:
            self._features.create(feature, context, reconciler)
        if self._observations is not None:
            observation = self._observations.create(feature, context)
            if observation is not None:
                self._uploader.add(observation)

    def run(self, features: Iterable[Feature]) -> ImportReport:
        """Import ``features`` in order and upload the collected observations."""
        report = ImportReport(dry_run=self._dry_run)
        self.load_caches()
        for creator in (self._sensors, self._observed_properties):
            if creator is not None:
                creator.reset()

        for index, feature in enumerate(features):
            report.features += 1
            try:
                self.import_feature(feature)
            except ImporterError as exc:
                report.failed += 1
                report.errors.append(f"feature {index}: {exc}")
                LOGGER.warning("importer.feature_failed", index=index, feature_id=feature.id, error=str(exc))

        upload = self._uploader.flush()
        stats = self._reconciler.stats
        report.created = dict(stats.created)
        report.updated = dict(stats.updated)
        report.unchanged = dict(stats.unchanged)
        report.observations_submitted = upload.submitted
        report.observations_failed = upload.failed
        LOGGER.info(
            "importer.completed",
            features=report.features,
            failed=report.failed,
            created=stats.total_created,
            updated=stats.total_updated,
            observations=upload.submitted,
            dry_run=self._dry_run,
        )
        return report

    def preview(self, feature: Feature) -> str:
        """Render what each configured creator would build for ``feature``."""
        blocks = [creator.preview(feature, self.context) for creator in self._creators()]
        if not blocks:
            return "Nothing configured.\n"
        return "\n".join(blocks)
