"""File system watcher for ggif.

Uses the watchdog library to monitor the source folder.  Observer
callbacks only queue events; :meth:`FolderWatcher.run` drains the queue
on the calling thread and hands each newly created file to the pipeline,
one at a time and in delivery order.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import EVENT_TYPE_CREATED, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ggif.errors import GgifError, WatchSetupError

logger = logging.getLogger(__name__)

_QUEUE_POLL_SECONDS = 0.5
_STABLE_POLL_SECONDS = 0.5


class _QueueingHandler(FileSystemEventHandler):
    """Watchdog handler that forwards every event to a queue."""

    def __init__(self, events: queue.Queue):
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._events.put(event)


def wait_until_stable(
    path: Path,
    stable_seconds: float,
    stop: threading.Event | None = None,
    poll: float = _STABLE_POLL_SECONDS,
) -> bool:
    """
    Block until *path* has kept the same size for *stable_seconds*.

    Returns False if the file disappears or *stop* is set while waiting.
    """
    if stable_seconds <= 0:
        return True
    stop = stop or threading.Event()
    try:
        last_size = path.stat().st_size
    except OSError:
        return False
    last_change = time.monotonic()
    while not stop.is_set():
        if time.monotonic() - last_change >= stable_seconds:
            return True
        stop.wait(timeout=poll)
        try:
            size = path.stat().st_size
        except OSError:
            # File vanished, drop it
            return False
        if size != last_size:
            last_size = size
            last_change = time.monotonic()
    return False


class FolderWatcher:
    """Watches one folder and dispatches newly created files.

    Usage:
        watcher = FolderWatcher(source, pipeline.process)
        watcher.run()       # blocks until watcher.stop() is called
    """

    def __init__(
        self,
        source_folder: Path | str,
        on_file_created: Callable[[Path], Any],
        stable_seconds: float = 0,
        ignore: Callable[[Path], bool] | None = None,
        log: logging.Logger | None = None,
        observer_factory: Callable[[], Any] = Observer,
    ):
        """Create a new folder watcher."""
        self.source_folder = Path(source_folder)
        self._on_file_created = on_file_created
        self._stable_seconds = stable_seconds
        self._ignore = ignore
        self._log = log or logger
        self._observer_factory = observer_factory
        self._events: queue.Queue = queue.Queue()
        self._handler = _QueueingHandler(self._events)
        self._observer: Any | None = None
        self._stop = threading.Event()

    # ---- lifecycle ----

    def start(self) -> None:
        """Start the watchdog observer on the source folder."""
        if not self.source_folder.is_dir():
            self._log.error("Source folder does not exist: %s", self.source_folder)
            raise WatchSetupError(f"Source folder does not exist: {self.source_folder}")

        observer = self._observer_factory()
        try:
            observer.schedule(self._handler, str(self.source_folder), recursive=False)
            observer.start()
        except OSError as exc:
            raise WatchSetupError(f"Cannot watch {self.source_folder}: {exc}") from exc
        self._observer = observer
        self._log.info("Watching '%s'", self.source_folder)

    def stop(self) -> None:
        """Ask the consumer loop to finish and release the observer."""
        self._stop.set()
        if self._observer:
            self._observer.stop()

    def run(self) -> None:
        """Start watching and process events until :meth:`stop` is called."""
        self.start()
        try:
            while not self._stop.is_set():
                try:
                    event = self._events.get(timeout=_QUEUE_POLL_SECONDS)
                except queue.Empty:
                    continue
                try:
                    self.handle_event(event)
                except GgifError:
                    raise
                except Exception:
                    self._log.exception("Error handling %s", event)
        finally:
            if self._observer:
                self._observer.stop()
                self._observer.join(timeout=5)
                self._observer = None
            self._log.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()

    # ---- dispatch ----

    def handle_event(self, event: FileSystemEvent) -> bool:
        """Dispatch *event* if it announces a new file.  Returns True if dispatched."""
        path = Path(os.fsdecode(event.src_path))
        if event.event_type != EVENT_TYPE_CREATED or event.is_directory:
            self._log.debug("Ignoring %s event for %s", event.event_type, path)
            return False
        if self._ignore is not None and self._ignore(path):
            self._log.debug("Ignoring own output %s", path)
            return False
        if not wait_until_stable(path, self._stable_seconds, self._stop):
            self._log.info("Skipping %s (gone before it settled)", path)
            return False

        self._log.info("New file: %s", path)
        self._on_file_created(path)
        return True
