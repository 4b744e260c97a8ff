from __future__ import annotations

from pathlib import Path
from typing import Callable

import structlog

from csv_adapter.snapshot.extraction import ExtractionError

logger = structlog.get_logger(__name__)


def write_snapshot(destination: Path, snapshot: str) -> None:
    """Replace the destination file's contents with the snapshot."""
    destination.write_text(snapshot, encoding="utf-8")


class FileSnapshotWriter:
    """Publishes every successful extraction to a file; no cache is needed."""

    def __init__(self, destination: str | Path) -> None:
        self.destination = Path(destination)

    def __call__(self, snapshot: str) -> None:
        write_snapshot(self.destination, snapshot)
        logger.debug("snapshot_written", destination=str(self.destination), size=len(snapshot))

    def initial_run(self, extract: Callable[[], str]) -> bool:
        try:
            self(extract())
        except (ExtractionError, OSError) as exc:
            logger.error("first_run_failed", error=str(exc))
            return False
        return True
