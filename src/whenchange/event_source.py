"""Filesystem event source backed by the watchdog library."""

import logging
import os
import queue
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from .config import DEFAULT_EVENT_BUFFER
from .exceptions import EventSourceError
from .models import Operation, RawEvent
from .resolver import IgnoreFunc, is_directory

logger = logging.getLogger(__name__)

SourceItem = Union[RawEvent, EventSourceError]


class _EventForwarder(FileSystemEventHandler):
    """Handler that converts watchdog events to RawEvents."""

    def __init__(self, source: "EventSource"):
        super().__init__()
        self.source = source

    def dispatch(self, event: FileSystemEvent) -> None:
        try:
            super().dispatch(event)
        except Exception as e:
            self.source.report_error(EventSourceError(f"Failed to handle {event!r}: {e}"))

    def on_created(self, event):
        self.source.publish(event.src_path, Operation.CREATE, event.is_directory)

    def on_modified(self, event):
        self.source.publish(event.src_path, Operation.WRITE, event.is_directory)

    def on_deleted(self, event):
        self.source.publish(event.src_path, Operation.REMOVE, event.is_directory)

    def on_moved(self, event):
        self.source.publish(event.src_path, Operation.RENAME, event.is_directory)
        self.source.publish(event.dest_path, Operation.CREATE, event.is_directory)


class EventSource:
    """
    Subscribes paths with a watchdog observer and exposes its notifications
    as a single ordered stream of events and errors.

    Directories are watched non-recursively. A file is watched through its
    containing directory, shared with any other subscription on that
    directory and released when the last one is removed.
    """

    def __init__(
        self,
        ignore: Optional[IgnoreFunc] = None,
        buffer_size: int = DEFAULT_EVENT_BUFFER,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """
        Initialize the event source.

        Args:
            ignore: Predicate selecting paths whose events are dropped
            buffer_size: Maximum queued items (0 means unbounded)
            observer_factory: Creates the underlying watchdog observer
        """
        self.ignore = ignore
        self._observer = observer_factory()
        self._handler = _EventForwarder(self)
        self._queue: "queue.Queue[SourceItem]" = queue.Queue(maxsize=buffer_size)
        self._watches: Dict[Path, ObservedWatch] = {}
        self._refs: Dict[Path, int] = {}
        self._subscriptions: Dict[Path, Path] = {}
        self._lock = threading.Lock()
        self._started = False
        self._closed = False
        self._stop_reported = False

    def start(self) -> None:
        """Start delivering events. Raises OSError if the observer cannot start."""
        with self._lock:
            if self._started:
                return
            self._observer.start()
            self._started = True

    def add(self, path: Path) -> bool:
        """
        Subscribe a path.

        Args:
            path: Absolute file or directory path

        Returns:
            True if subscribed, False if already subscribed

        Raises:
            OSError: If the path does not exist or cannot be watched
        """
        if not path.exists():
            raise FileNotFoundError(f"No such file or directory: {path}")

        target = path if is_directory(path) else path.parent

        with self._lock:
            if path in self._subscriptions:
                return False

            if target not in self._watches:
                self._watches[target] = self._observer.schedule(
                    self._handler, str(target), recursive=False
                )
                logger.debug(f"Scheduled observer watch on {target}")
            self._refs[target] = self._refs.get(target, 0) + 1
            self._subscriptions[path] = target
            return True

    def remove(self, path: Path) -> bool:
        """
        Cancel a subscription.

        Returns:
            True if the path was subscribed

        Raises:
            KeyError, OSError: If the observer fails to release the watch
        """
        with self._lock:
            target = self._subscriptions.pop(path, None)
            if target is None:
                return False

            self._refs[target] -= 1
            if self._refs[target] > 0:
                return True

            del self._refs[target]
            watch = self._watches.pop(target)

        self._observer.unschedule(watch)
        logger.debug(f"Released observer watch on {target}")
        return True

    def publish(self, raw_path, operation: Operation, is_dir: bool = False) -> None:
        """Queue a notification coming from the observer."""
        path = Path(os.path.normpath(os.fsdecode(raw_path)))
        if self.ignore and self.ignore(path):
            return

        try:
            self._queue.put_nowait(RawEvent(path=path, operation=operation, is_directory=is_dir))
        except queue.Full:
            logger.warning(f"Event buffer full, dropping {operation.value} event for {path}")

    def report_error(self, error: EventSourceError) -> None:
        """Queue a source error."""
        try:
            self._queue.put_nowait(error)
        except queue.Full:
            logger.error(f"Event buffer full, dropping source error: {error}")

    def get(self, timeout: Optional[float] = None) -> Optional[SourceItem]:
        """
        Wait for the next event or error.

        Args:
            timeout: Seconds to wait (None blocks)

        Returns:
            A RawEvent, an EventSourceError, or None on timeout
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            pass

        if self._started and not self._closed and not self._stop_reported:
            if not self._observer.is_alive():
                self._stop_reported = True
                return EventSourceError("Event observer stopped unexpectedly")
        return None

    def subscriptions(self) -> List[Path]:
        """Get the list of subscribed paths."""
        with self._lock:
            return list(self._subscriptions)

    def watched_directories(self) -> List[Path]:
        """Get the directories the observer is watching."""
        with self._lock:
            return list(self._watches)

    def close(self) -> None:
        """Release every subscription and stop the observer."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._subscriptions.clear()
            self._refs.clear()
            self._watches.clear()

        self._observer.unschedule_all()
        if self._started:
            self._observer.stop()
            self._observer.join(timeout=5.0)

    def __contains__(self, path: Path) -> bool:
        with self._lock:
            return path in self._subscriptions

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
