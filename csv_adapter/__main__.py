from __future__ import annotations

import argparse
import sys
from pathlib import Path

import structlog
import uvicorn

from csv_adapter.config import ConfigError, Settings, load_settings
from csv_adapter.main import create_app
from csv_adapter.observability.logging import configure_logging
from csv_adapter.services.file_output import FileSnapshotWriter
from csv_adapter.services.watcher import ChangeWatcher
from csv_adapter.snapshot.cache import SnapshotCache
from csv_adapter.snapshot.extraction import SnapshotExtractor
from csv_adapter.snapshot.formatting import FormatOptions

logger = structlog.get_logger("csv_adapter")


def _warn_unused_filters(settings: Settings) -> None:
    if settings.fields and (settings.fields.include or settings.fields.exclude):
        logger.warning(
            "field_filters_ignored",
            include=[f.name.pattern for f in settings.fields.include],
            exclude=[f.name.pattern for f in settings.fields.exclude],
        )


def run_file_mode(settings: Settings, destination: Path, extract: SnapshotExtractor) -> None:
    writer = FileSnapshotWriter(destination)
    writer.initial_run(extract)
    watcher = ChangeWatcher(settings.input.file, extract, writer)
    try:
        watcher.run()
    except KeyboardInterrupt:
        watcher.stop()


def run_socket_mode(settings: Settings, extract: SnapshotExtractor) -> None:
    cache = SnapshotCache(extract)
    if not cache.prime():
        logger.warning("first_run_failed", source=str(settings.input.file))

    watcher = ChangeWatcher(settings.input.file, extract, cache.overwrite)
    watcher.start()

    host, port = settings.output.listen_address
    try:
        uvicorn.run(create_app(cache), host=host, port=port, log_config=None)
    finally:
        watcher.stop(timeout=5.0)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="prometheus-csv-adapter",
        description="Expose the newest row of a CSV file as Prometheus metrics",
    )
    parser.add_argument("config", help="Path to the YAML configuration file")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        configure_logging()
        logger.error("config_error", error=str(exc))
        return 1

    configure_logging(settings.log_level)
    _warn_unused_filters(settings)

    extract = SnapshotExtractor(settings.input, FormatOptions.from_settings(settings.output))
    if settings.output.file is not None:
        run_file_mode(settings, settings.output.file, extract)
    else:
        run_socket_mode(settings, extract)
    return 0


if __name__ == "__main__":
    sys.exit(main())
