"""The watch engine: event dispatch loop tying everything together."""

import logging
import threading
import time
from typing import Callable, Optional

from .config import EngineConfig
from .event_source import EventSource
from .exceptions import EngineNotStartedError, EventSourceError, WatchSetupError
from .models import Operation, RawEvent
from .registry import WatchRegistry
from .resolver import resolve
from .runner import CommandRunner

logger = logging.getLogger(__name__)


class WatchEngine:
    """
    Watches the configured patterns and runs the command on changes.

    Events are consumed one at a time by the thread calling ``run()``. The
    command runs synchronously on that thread, so events arriving meanwhile
    wait in the event source buffer.
    """

    def __init__(
        self,
        config: EngineConfig,
        source=None,
        runner: Optional[CommandRunner] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration
            source: Event source (defaults to a watchdog EventSource)
            runner: Command runner (defaults to one built from config)
            clock: Monotonic time source used for debouncing
        """
        self.config = config
        self.clock = clock
        self.source = source if source is not None else EventSource(
            ignore=config.should_ignore,
            buffer_size=config.event_buffer,
        )
        self.runner = runner or CommandRunner(
            timeout=config.timeout,
            capture_output=config.capture_output,
        )
        self.registry = WatchRegistry(self.source, config.delay, clock=clock)

        self._started = False
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    def start(self) -> int:
        """
        Start the event source and watch every path the patterns resolve to.

        Returns:
            Number of paths watched

        Raises:
            WatchSetupError: If the event source cannot be started or a
                path cannot be watched
        """
        with self._lock:
            if self._started:
                return len(self.registry)

            try:
                self.source.start()
            except (OSError, RuntimeError) as e:
                raise WatchSetupError(f"Unable to start event source: {e}") from e

            for path in sorted(self._resolve()):
                self.registry.register(path)

            self._started = True

        logger.info(f"Watching {len(self.registry)} path(s), delay {self.config.delay:g}s")
        return len(self.registry)

    def _resolve(self):
        return resolve(self.config.patterns, self.config.recursive, self.config.should_ignore)

    def run(self, poll_interval: float = 0.5) -> None:
        """
        Process events until ``stop()`` is called.

        Args:
            poll_interval: Seconds between checks of the stop flag

        Raises:
            EngineNotStartedError: If ``start()`` has not been called
        """
        if not self._started:
            raise EngineNotStartedError("Call start() before run()")

        logger.debug("Event loop started")
        while not self._stop_event.is_set():
            item = self.source.get(timeout=poll_interval)
            if item is None:
                continue
            if isinstance(item, EventSourceError):
                self.handle_error(item)
            else:
                self.handle_event(item)
        logger.debug("Event loop stopped")

    def handle_event(self, event: RawEvent) -> None:
        """Process a single raw event."""
        logger.debug(f"{event.path} changed ({event.operation.value})")

        if event.operation == Operation.CREATE:
            # A create on a watched path means it was replaced (atomic save).
            replaced = self.registry.is_watched(event.path)
            self._discover()
            if replaced and self.registry.should_trigger(event.path, event.timestamp):
                self._run_command(event)
            return

        if self.registry.should_trigger(event.path, event.timestamp):
            self._run_command(event)

        if event.operation.is_removal:
            self.registry.unregister(event.path)

    def handle_error(self, error: Exception) -> None:
        """Log a source error and carry on."""
        logger.error(f"Event source error: {error}")

    def _discover(self) -> None:
        """
        Watch paths that match the patterns but are not watched yet.

        Paths that cannot be watched are logged and skipped.
        """
        for path in sorted(self._resolve()):
            entry = self.registry.get(path)
            if entry is not None and not entry.implied:
                continue
            try:
                if self.registry.register(path):
                    logger.info(f"Now watching {path}")
            except WatchSetupError as e:
                if path.exists():
                    logger.error(f"{e}, changes to it will be missed")
                else:
                    logger.warning(f"{path} disappeared before it could be watched: {e}")

    def _run_command(self, event: RawEvent) -> None:
        logger.info(f"Change detected: {event}")
        started = time.monotonic()
        if not self.config.command.is_empty:
            logger.info(f"Running {self.config.command.command_line!r}")
        result = self.runner.run(self.config.command)
        if result is not None:
            logger.info(f"Done in {time.monotonic() - started:.2f}s")

    def stop(self) -> None:
        """Ask the event loop to stop after the current event."""
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._started and not self._stop_event.is_set()

    def close(self) -> None:
        """Stop the loop and release every watch subscription."""
        self.stop()
        self.registry.close()
        self.source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
