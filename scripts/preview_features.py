#!/usr/bin/env python
"""Show what an import definition would build for the first features of a file."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Iterator

from sta_importer.core.exceptions import ImporterError
from sta_importer.core.logging import configure_logging
from sta_importer.importer import FeatureImporter, load_features, load_import_config
from sta_importer.sta.store import EntityStore


class _OfflineStore:
    """Store stand-in for previews, which never reach the network."""

    def query(self, entity_set: str, **_kwargs: Any) -> Iterator[Any]:
        return iter(())

    def create(self, entity: Any) -> Any:
        raise ImporterError("Preview must not create entities")

    def update(self, entity: Any) -> None:
        raise ImporterError("Preview must not update entities")

    def create_observations(self, observations: Any) -> list[str]:
        raise ImporterError("Preview must not upload observations")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, required=True, help="Import definition (.json or .toml).")
    parser.add_argument("--input", type=Path, required=True, help="GeoJSON FeatureCollection or CSV file.")
    parser.add_argument("--limit", type=int, default=1, help="Number of features to preview (default: 1).")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging("WARNING")
    try:
        config = load_import_config(args.config)
        features = load_features(args.input, config.csv)
    except ImporterError as exc:
        print(f"Failed to load input: {exc}", file=sys.stderr)
        return 2

    store: EntityStore = _OfflineStore()
    importer = FeatureImporter(config, store, dry_run=True)
    for index, feature in enumerate(features[: max(args.limit, 0)]):
        print(f"=== Feature {index} ===")
        try:
            print(importer.preview(feature))
        except ImporterError as exc:
            print(f"Failed to render feature: {exc}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
