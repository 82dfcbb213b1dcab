"""Runs the configured command through a shell."""

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Optional

from .config import PendingCommand

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """
    Outcome of one command run.

    Attributes:
        returncode: Exit status (None if the process never finished)
        duration: Wall clock seconds spent running
        output: Combined stdout/stderr when output was captured
        timed_out: Whether the command was killed for running too long
    """
    returncode: Optional[int]
    duration: float
    output: Optional[str] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


class CommandRunner:
    """
    Synchronously executes a command with ``<shell> -c``.

    Output goes straight to the parent's stdout/stderr unless
    ``capture_output`` is set, in which case it is logged after the run.
    """

    def __init__(self, timeout: Optional[float] = None, capture_output: bool = False):
        """
        Initialize the runner.

        Args:
            timeout: Seconds after which the command is killed
            capture_output: Capture combined output instead of streaming it
        """
        self.timeout = timeout
        self.capture_output = capture_output

    def run(self, command: PendingCommand) -> Optional[CommandResult]:
        """
        Run the command and wait for it to finish.

        Failures are logged and never raised.

        Returns:
            The result, or None if there was nothing to run or the shell
            could not be started
        """
        if command.is_empty:
            logger.warning("No command to run")
            return None

        kwargs = {}
        if self.capture_output:
            kwargs.update(stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)

        logger.debug(f"Executing {command.argv()}")
        started = time.monotonic()
        try:
            completed = subprocess.run(command.argv(), timeout=self.timeout, **kwargs)
        except subprocess.TimeoutExpired as e:
            duration = time.monotonic() - started
            logger.error(f"Command {command.command_line!r} timed out after {duration:.2f}s")
            output = e.output
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            return CommandResult(returncode=None, duration=duration, output=output, timed_out=True)
        except OSError as e:
            logger.error(f"Error running command {command.command_line!r}: {e}")
            return None

        result = CommandResult(
            returncode=completed.returncode,
            duration=time.monotonic() - started,
            output=completed.stdout if self.capture_output else None,
        )

        if result.returncode != 0:
            logger.error(f"Command {command.command_line!r} exited with status {result.returncode}")
        if result.output:
            logger.info(f"Command output:\n{result.output}")

        return result
