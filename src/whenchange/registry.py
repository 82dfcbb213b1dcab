"""Thread-safe registry of watched paths and their debounce state."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .exceptions import WatchSetupError
from .models import WatchedPath
from .resolver import is_directory

logger = logging.getLogger(__name__)


class WatchRegistry:
    """
    Thread-safe management of the paths being watched.

    Owns the event source subscriptions for every registered path and the
    last-trigger time used to debounce events on each of them.
    """

    def __init__(
        self,
        source,
        delay: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the registry.

        Args:
            source: Event source used to subscribe paths (``add``/``remove``)
            delay: Debounce window in seconds
            clock: Monotonic time source
        """
        self.source = source
        self.delay = delay
        self.clock = clock
        self._paths: Dict[Path, WatchedPath] = {}
        self._lock = threading.RLock()

    def register(self, path: Path, implied: bool = False) -> bool:
        """
        Start watching a path.

        A regular file also gets its containing directory registered so
        that changes reported at the directory level are seen. A new entry
        has never fired, so its first event is accepted whatever its
        timestamp.

        Args:
            path: Absolute path to watch
            implied: Register only as the containing directory of a watched file

        Returns:
            True if the path was added, False if it was already watched

        Raises:
            WatchSetupError: If the event source cannot subscribe the path
        """
        with self._lock:
            existing = self._paths.get(path)
            if existing is not None:
                if existing.implied and not implied:
                    existing.implied = False
                    logger.debug(f"Now watching {path} directly")
                else:
                    logger.debug(f"Already watching {path}")
                return False

            is_dir = is_directory(path)
            parent_added = False
            if not is_dir:
                parent_added = self.register(path.parent, implied=True)

            try:
                self.source.add(path)
            except (OSError, RuntimeError) as e:
                if parent_added:
                    self._release(path.parent)
                raise WatchSetupError(f"Unable to watch {path}: {e}", path=path) from e

            self._paths[path] = WatchedPath(
                path=path,
                is_directory=is_dir,
                implied=implied,
            )
            logger.debug(f"Watching {path}")
            return True

    def unregister(self, path: Path) -> bool:
        """
        Stop watching a path and every watched path below it.

        Failures to release the underlying subscription are logged.

        Args:
            path: Path to stop watching

        Returns:
            True if the path was being watched
        """
        with self._lock:
            if path not in self._paths:
                return False

            doomed = [p for p in self._paths if p == path or path in p.parents]
            for p in doomed:
                self._release(p)

            return True

    def _release(self, path: Path) -> None:
        """Drop a single entry and its subscription. Caller holds the lock."""
        del self._paths[path]
        try:
            self.source.remove(path)
        except (KeyError, OSError, RuntimeError) as e:
            logger.error(f"Unable to stop watching {path}: {e}")
        logger.debug(f"Stopped watching {path}")

    def _attribute(self, path: Path) -> Optional[WatchedPath]:
        """Find the entry an event on ``path`` counts against. Caller holds the lock."""
        entry = self._paths.get(path)
        if entry is not None:
            if entry.implied:
                return None
            return entry

        parent = self._paths.get(path.parent)
        if parent is not None and parent.is_directory and not parent.implied:
            return parent
        return None

    def should_trigger(self, path: Path, now: Optional[float] = None) -> bool:
        """
        Decide whether an event on ``path`` should run the command.

        Accepting an event records ``now`` as the new trigger time before
        returning, so events arriving while the command runs are debounced
        against the start of the run.

        Args:
            path: Path named by the event
            now: Event time (defaults to the registry clock)

        Returns:
            True if the event is accepted
        """
        if now is None:
            now = self.clock()

        with self._lock:
            entry = self._attribute(path)
            if entry is None:
                logger.debug(f"Ignoring event for unwatched path {path}")
                return False

            elapsed = entry.elapsed(now)
            if elapsed is not None and elapsed < self.delay:
                logger.debug(
                    f"Suppressed event for {path}: {elapsed:.3f}s since last run of {entry.path}"
                )
                return False

            entry.last_trigger = now
            return True

    def is_watched(self, path: Path) -> bool:
        with self._lock:
            return path in self._paths

    def get(self, path: Path) -> Optional[WatchedPath]:
        with self._lock:
            return self._paths.get(path)

    def paths(self) -> List[Path]:
        """Get the list of watched paths."""
        with self._lock:
            return list(self._paths)

    def close(self) -> int:
        """
        Stop watching everything.

        Returns:
            Number of paths released
        """
        with self._lock:
            paths = sorted(self._paths, key=lambda p: len(p.parts), reverse=True)
            for path in paths:
                self.unregister(path)
            return len(paths)

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def __contains__(self, path: Path) -> bool:
        return self.is_watched(path)
