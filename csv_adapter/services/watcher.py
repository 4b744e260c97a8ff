from __future__ import annotations

import os
import queue
import threading
from pathlib import Path
from typing import Any, Callable

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from csv_adapter.snapshot.extraction import ExtractionError

logger = structlog.get_logger(__name__)

DEFAULT_BACKOFF_SECONDS = 10.0

_STOP = object()


class WatchLostError(Exception):
    """The observer or its emitter for the source directory stopped while we waited."""


class _SourceChangeHandler(FileSystemEventHandler):
    """Forwards events that touch exactly one file into a queue."""

    def __init__(self, target: str, events: queue.Queue[Any]) -> None:
        self.target = target
        self.events = events

    def _matches(self, path: str | bytes) -> bool:
        return os.path.normpath(os.fsdecode(path)) == self.target

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self.events.put(event)

    def on_created(self, event: FileSystemEvent) -> None:
        self.on_modified(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Writers that replace the file via rename land here.
        if not event.is_directory and self._matches(event.dest_path):
            self.events.put(event)


class ChangeWatcher:
    """
    Re-extracts the snapshot every time the source file changes.

    One watch stays scheduled for the life of the loop, so changes made while
    an extraction or a backoff is in progress are still queued and picked up
    on the next wait. Each iteration re-arms the watch only if watchdog has
    dropped it. Registration problems, a lost watch, and failed extractions
    all wait ``backoff_seconds`` and start over; the loop only ends on stop().
    """

    def __init__(
        self,
        source_path: str | Path,
        extract: Callable[[], str],
        publish: Callable[[str], None],
        *,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        observer_factory: Callable[[], Any] = Observer,
        poll_interval: float = 1.0,
    ) -> None:
        self.source_path = Path(source_path).absolute()
        self.backoff_seconds = backoff_seconds
        self.poll_interval = poll_interval
        self._extract = extract
        self._publish = publish
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._watch: Any = None
        self._events: queue.Queue[Any] = queue.Queue()
        self._handler = _SourceChangeHandler(os.path.normpath(str(self.source_path)), self._events)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="csv-change-watcher", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        self._events.put(_STOP)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def run(self) -> None:
        logger.info("watching_source", source=str(self.source_path))
        try:
            while not self._stop.is_set():
                self._iterate()
        finally:
            self._shutdown_observer()

    def _iterate(self) -> None:
        try:
            self._ensure_watch()
        except OSError as exc:
            logger.error("watch_registration_failed", source=str(self.source_path), error=str(exc))
            self._backoff()
            return

        try:
            changed = self._wait_for_change()
        except WatchLostError as exc:
            logger.error("watch_receive_failed", source=str(self.source_path), error=str(exc))
            self._drop_watch()
            self._backoff()
            return

        if not changed:
            return

        logger.debug("change_detected", source=str(self.source_path))
        try:
            snapshot = self._extract()
            self._publish(snapshot)
        except ExtractionError as exc:
            logger.error("extraction_failed", trigger="watch", error=str(exc))
            self._backoff()
        except OSError as exc:
            logger.error("snapshot_publish_failed", error=str(exc))
            self._backoff()
        except Exception:
            logger.exception("snapshot_refresh_crashed", source=str(self.source_path))
            self._backoff()

    def _ensure_watch(self) -> None:
        if self._observer is not None and not self._observer.is_alive():
            self._shutdown_observer()
        if self._watch is not None and self._watch_alive():
            return
        self._drop_watch()

        if not self.source_path.is_file():
            raise FileNotFoundError(f"no such file: {self.source_path}")
        if self._observer is None:
            observer = self._observer_factory()
            observer.start()
            self._observer = observer
        self._watch = self._observer.schedule(self._handler, str(self.source_path.parent), recursive=False)

    def _watch_alive(self) -> bool:
        if self._observer is None or self._watch is None or not self._observer.is_alive():
            return False
        for emitter in list(self._observer.emitters):
            if emitter.watch == self._watch:
                return emitter.is_alive()
        return False

    def _drop_watch(self) -> None:
        watch, self._watch = self._watch, None
        if watch is None or self._observer is None:
            return
        try:
            self._observer.unschedule(watch)
        except KeyError:
            # The observer already forgot it.
            pass

    def _wait_for_change(self) -> bool:
        """Block until the source changes; False means stop() was called."""
        while True:
            try:
                item = self._events.get(timeout=self.poll_interval)
            except queue.Empty:
                if self._stop.is_set():
                    return False
                if not self._watch_alive():
                    raise WatchLostError("watch on the source directory stopped reporting")
                continue
            if item is _STOP:
                return False
            # Coalesce a burst of writes into one extraction.
            while True:
                try:
                    if self._events.get_nowait() is _STOP:
                        return False
                except queue.Empty:
                    return True

    def _backoff(self) -> None:
        self._stop.wait(self.backoff_seconds)

    def _shutdown_observer(self) -> None:
        observer, self._observer = self._observer, None
        self._watch = None
        if observer is None:
            return
        observer.stop()
        if observer.is_alive():
            observer.join()
