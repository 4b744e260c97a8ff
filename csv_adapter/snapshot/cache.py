from __future__ import annotations

from threading import Lock
from typing import Callable

import structlog

from csv_adapter.snapshot.extraction import ExtractionError

logger = structlog.get_logger(__name__)


class SnapshotCache:
    """
    Thread-safe holder for the last rendered snapshot.

    The cell starts empty. A cold read extracts while holding the lock, so at
    most one extraction runs at a time and readers never observe a partial
    value. Once a snapshot has been stored the cell is never emptied again;
    later failures leave the previous snapshot serving.
    """

    def __init__(self, extract: Callable[[], str]) -> None:
        self._lock = Lock()
        self._extract = extract
        self._snapshot: str | None = None

    @property
    def is_populated(self) -> bool:
        with self._lock:
            return self._snapshot is not None

    def read_or_regenerate(self) -> str | None:
        with self._lock:
            if self._snapshot is not None:
                return self._snapshot
            try:
                snapshot = self._extract()
            except ExtractionError as exc:
                logger.error("extraction_failed", trigger="read", error=str(exc))
                return None
            self._snapshot = snapshot
            return snapshot

    def overwrite(self, snapshot: str) -> None:
        with self._lock:
            self._snapshot = snapshot

    def prime(self) -> bool:
        """Best-effort initial extraction; returns whether a snapshot is held."""
        return self.read_or_regenerate() is not None
