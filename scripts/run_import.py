#!/usr/bin/env python
"""Import GeoJSON or CSV features into a SensorThings service.

Runs as a dry run unless ``--commit`` is given.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from sta_importer.core.config import get_settings
from sta_importer.core.exceptions import ImporterError
from sta_importer.core.logging import configure_logging, get_logger
from sta_importer.importer import FeatureImporter, load_features, load_import_config
from sta_importer.sta import SensorThingsClient, SensorThingsStore

LOGGER = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, required=True, help="Import definition (.json or .toml).")
    parser.add_argument("--input", type=Path, required=True, help="GeoJSON FeatureCollection or CSV file to import.")
    parser.add_argument(
        "--commit",
        action="store_true",
        help="Write to the remote service. Without this flag creates and updates are only logged.",
    )
    parser.add_argument("--report", type=Path, help="Optional path for a JSON import report.")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Override the log level.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    configure_logging(args.log_level, settings=settings)
    dry_run = settings.dry_run or not args.commit

    try:
        config = load_import_config(args.config)
        features = load_features(args.input, config.csv)
    except ImporterError as exc:
        LOGGER.error("run_import.input_failed", error=str(exc))
        return 2

    with SensorThingsClient(settings) as client:
        importer = FeatureImporter(config, SensorThingsStore(client), settings=settings, dry_run=dry_run)
        try:
            report = importer.run(features)
        except ImporterError as exc:
            LOGGER.error("run_import.failed", error=str(exc))
            return 1

    payload = json.dumps(report.as_dict(), indent=2, ensure_ascii=False)
    if args.report:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        args.report.write_text(payload, encoding="utf-8")
        LOGGER.info("run_import.report_written", path=str(args.report))
    else:
        print(payload)
    return 0 if report.failed == 0 else 3


if __name__ == "__main__":
    sys.exit(main())
