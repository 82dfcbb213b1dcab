"""Shared fixtures for whenchange tests."""

from collections import deque
from pathlib import Path

import pytest

from whenchange.runner import CommandResult


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeEventSource:
    """In-memory stand-in for EventSource."""

    def __init__(self):
        self.added = []
        self.removed = []
        self.items = deque()
        self.fail_add = set()
        self.fail_remove = set()
        self.started = False
        self.closed = False
        self.fail_start = False
        self.on_empty = None

    def start(self):
        if self.fail_start:
            raise OSError("inotify instance limit reached")
        self.started = True

    def add(self, path: Path) -> bool:
        if path in self.fail_add:
            raise OSError(f"cannot watch {path}")
        if path in self.subscribed:
            return False
        self.added.append(path)
        return True

    def remove(self, path: Path) -> bool:
        if path in self.fail_remove:
            raise KeyError(path)
        self.removed.append(path)
        return True

    @property
    def subscribed(self):
        active = list(self.added)
        for path in self.removed:
            if path in active:
                active.remove(path)
        return active

    def get(self, timeout=None):
        if self.items:
            return self.items.popleft()
        if self.on_empty:
            self.on_empty()
        return None

    def close(self):
        self.closed = True


class FakeRunner:
    """Records commands instead of running them."""

    def __init__(self):
        self.calls = []

    def run(self, command):
        self.calls.append(command)
        return CommandResult(returncode=0, duration=0.0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeEventSource()


@pytest.fixture
def runner():
    return FakeRunner()
