"""
whenchange

Watches files and directories and runs a shell command when they change.

Features:
- Glob patterns, re-resolved as files and directories are created
- Recursive watching of sub-directories
- Per-path debounce window
- Command output streamed to the terminal, or captured and logged
"""

from .models import (
    Operation,
    RawEvent,
    WatchedPath,
)

from .config import (
    EngineConfig,
    PendingCommand,
    parse_delay,
    parse_duration,
)

from .exceptions import (
    WhenchangeError,
    WatchSetupError,
    EventSourceError,
    EngineNotStartedError,
)

from .resolver import resolve, walk_directories
from .event_source import EventSource
from .registry import WatchRegistry
from .runner import CommandRunner, CommandResult
from .engine import WatchEngine


__all__ = [
    # Models
    "Operation",
    "RawEvent",
    "WatchedPath",
    # Config
    "EngineConfig",
    "PendingCommand",
    "parse_delay",
    "parse_duration",
    # Exceptions
    "WhenchangeError",
    "WatchSetupError",
    "EventSourceError",
    "EngineNotStartedError",
    # Components
    "resolve",
    "walk_directories",
    "EventSource",
    "WatchRegistry",
    "CommandRunner",
    "CommandResult",
    # Engine
    "WatchEngine",
]

__version__ = "0.1.0"
