"""Data models for the whenchange package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import time
from typing import Optional


class Operation(Enum):
    """Kinds of raw filesystem change notifications."""
    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"

    @property
    def is_removal(self) -> bool:
        """True when the path no longer exists under its old name."""
        return self in (Operation.REMOVE, Operation.RENAME)


@dataclass(frozen=True)
class RawEvent:
    """
    A raw change notification from the event source.

    Attributes:
        path: Absolute path named by the notification
        operation: What happened to the path
        is_directory: Whether the path is a directory
        timestamp: Monotonic time when the notification was received
    """
    path: Path
    operation: Operation
    is_directory: bool = False
    timestamp: float = field(default_factory=time.monotonic)

    def __str__(self) -> str:
        return f"{self.operation.value.upper()} {self.path}"


@dataclass
class WatchedPath:
    """
    A path currently monitored by the watch registry.

    Attributes:
        path: Canonical absolute path
        last_trigger: Monotonic time of the last accepted trigger, None
            until the first one
        is_directory: Whether the path was a directory when registered
        implied: True when the path is only watched as the containing
            directory of a watched file
    """
    path: Path
    last_trigger: Optional[float] = None
    is_directory: bool = False
    implied: bool = False

    def elapsed(self, now: float) -> Optional[float]:
        """Seconds since the last accepted trigger, None if it never fired."""
        if self.last_trigger is None:
            return None
        return now - self.last_trigger
