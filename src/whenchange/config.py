"""Configuration for the whenchange engine."""

import fnmatch
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 5.0
DEFAULT_DELAY_TEXT = "5s"
DEFAULT_SHELL = "sh"
DEFAULT_EVENT_BUFFER = 4096

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> float:
    """
    Parse a duration string such as ``300ms``, ``1.5s`` or ``1m30s``.

    Args:
        value: Duration text; every number needs a unit except a bare ``0``

    Returns:
        The duration in seconds (negative if the text has a leading ``-``)

    Raises:
        ValueError: If the text is not a valid duration
    """
    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1.0
        text = text[1:]

    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f"invalid duration: {value!r}")

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration: {value!r}")
        number, unit = match.groups()
        total += float(number) * _DURATION_UNITS[unit]
        pos = match.end()

    return sign * total


def parse_delay(value: Optional[str], default: float = DEFAULT_DELAY) -> float:
    """
    Parse the debounce window, falling back to ``default`` on bad input.

    Args:
        value: User supplied duration text (None selects the default)
        default: Window in seconds used when ``value`` cannot be parsed

    Returns:
        Debounce window in seconds
    """
    if value is None:
        return default
    try:
        delay = parse_duration(value)
    except ValueError:
        logger.warning(f"Invalid delay {value!r}, using default of {default:g}s")
        return default
    if delay < 0:
        logger.warning(f"Negative delay {value!r}, using default of {default:g}s")
        return default
    return delay


@dataclass(frozen=True)
class PendingCommand:
    """
    The command executed on every accepted change.

    Attributes:
        shell: Shell binary used as ``<shell> -c "<command>"``
        args: Command tokens, joined with spaces before execution
    """
    shell: str = DEFAULT_SHELL
    args: Tuple[str, ...] = ()

    @classmethod
    def build(cls, shell: str, args: Sequence[str]) -> "PendingCommand":
        return cls(shell=shell, args=tuple(args))

    @property
    def command_line(self) -> str:
        return " ".join(self.args)

    @property
    def is_empty(self) -> bool:
        return not self.command_line.strip()

    def argv(self) -> List[str]:
        """Process arguments used to spawn the command."""
        return [self.shell, "-c", self.command_line]


@dataclass
class EngineConfig:
    """
    Configuration options for the watch engine.

    Built once from the command line and passed explicitly to the engine.

    Attributes:
        patterns: Files, directories or glob patterns to watch
        recursive: Whether to also watch every sub-directory of a watched directory
        delay: Debounce window in seconds
        command: The command to run on change
        ignore_patterns: Glob patterns for paths that never produce events
        timeout: Seconds after which a running command is killed (None waits forever)
        capture_output: Capture command output and log it after completion
            instead of streaming it to the terminal
        event_buffer: Maximum number of queued events before new ones are dropped
    """
    patterns: List[str] = field(default_factory=lambda: ["."])
    recursive: bool = True
    delay: float = DEFAULT_DELAY
    command: PendingCommand = field(default_factory=PendingCommand)
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.tmp",
        "*.swp",
        "*.swo",
        "*.swx",
        "*~",
        "4913",
        ".git/*",
        ".git",
        ".hg/*",
        ".hg",
        "__pycache__/*",
        "__pycache__",
        "*.pyc",
        ".DS_Store",
        "Thumbs.db",
    ])
    timeout: Optional[float] = None
    capture_output: bool = False
    event_buffer: int = DEFAULT_EVENT_BUFFER

    def __post_init__(self):
        if not self.patterns:
            self.patterns = ["."]
        if self.delay < 0:
            raise ValueError(f"delay must not be negative: {self.delay}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive: {self.timeout}")
        if self.event_buffer < 0:
            raise ValueError(f"event_buffer must not be negative: {self.event_buffer}")

    @classmethod
    def from_options(
        cls,
        paths: Optional[Sequence[str]] = None,
        recursive: bool = True,
        delay: Optional[str] = None,
        shell: str = DEFAULT_SHELL,
        command: Sequence[str] = (),
        ignore: Optional[Sequence[str]] = None,
        timeout: Optional[str] = None,
        capture_output: bool = False,
    ) -> "EngineConfig":
        """
        Build a config from raw command line values.

        Invalid delays fall back to the default window. An invalid timeout
        disables the timeout.
        """
        timeout_seconds = None
        if timeout is not None:
            try:
                timeout_seconds = parse_duration(timeout)
            except ValueError:
                logger.warning(f"Invalid timeout {timeout!r}, commands will not time out")
            else:
                if timeout_seconds <= 0:
                    logger.warning(f"Non-positive timeout {timeout!r}, commands will not time out")
                    timeout_seconds = None

        config = cls(
            patterns=list(paths) if paths else ["."],
            recursive=recursive,
            delay=parse_delay(delay),
            command=PendingCommand.build(shell, command),
            timeout=timeout_seconds,
            capture_output=capture_output,
        )
        if ignore:
            config.ignore_patterns.extend(ignore)
        return config

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the path should be ignored
        """
        path_str = str(path)
        name = path.name

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
            if fnmatch.fnmatch(path_str, f"*/{pattern}"):
                return True
            if fnmatch.fnmatch(path_str, pattern):
                return True

        return False
