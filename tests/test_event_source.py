"""Tests for the watchdog event source."""

import logging
import time

import pytest
from pathlib import Path

from whenchange.config import EngineConfig
from whenchange.event_source import EventSource
from whenchange.exceptions import EventSourceError
from whenchange.models import Operation, RawEvent


def collect(source, seconds=1.0):
    """Drain the source for a while and return everything received."""
    items = []
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        item = source.get(timeout=0.05)
        if item is not None:
            items.append(item)
    return items


@pytest.fixture
def root(tmp_path):
    return tmp_path.resolve()


class TestSubscriptions:
    """Tests for EventSource.add/remove."""

    def test_add_directory(self, root):
        with EventSource() as source:
            assert source.add(root) is True
            assert root in source
            assert source.watched_directories() == [root]

    def test_add_duplicate(self, root):
        with EventSource() as source:
            source.add(root)
            assert source.add(root) is False
            assert len(source) == 1

    def test_add_missing_path_raises(self, root):
        with EventSource() as source:
            with pytest.raises(FileNotFoundError):
                source.add(root / "missing")

    def test_file_watched_through_parent(self, root):
        target = root / "a.txt"
        target.write_text("a")

        with EventSource() as source:
            source.add(target)
            assert source.watched_directories() == [root]
            assert source.subscriptions() == [target]

    def test_shared_directory_watch_released_with_last_subscription(self, root):
        target = root / "a.txt"
        target.write_text("a")

        with EventSource() as source:
            source.add(root)
            source.add(target)

            assert source.remove(target) is True
            assert source.watched_directories() == [root]

            assert source.remove(root) is True
            assert source.watched_directories() == []

    def test_remove_unknown(self, root):
        with EventSource() as source:
            assert source.remove(root) is False

    def test_close_is_idempotent(self, root):
        source = EventSource()
        source.add(root)
        source.close()
        source.close()
        assert len(source) == 0


class TestStream:
    """Tests for the merged event/error stream."""

    def test_get_times_out(self):
        with EventSource() as source:
            assert source.get(timeout=0.01) is None

    def test_publish_and_error_keep_order(self, root):
        with EventSource() as source:
            source.publish(str(root / "a.txt"), Operation.WRITE)
            source.report_error(EventSourceError("overflow"))

            first = source.get(timeout=0.1)
            second = source.get(timeout=0.1)

        assert isinstance(first, RawEvent)
        assert first.path == root / "a.txt"
        assert first.operation == Operation.WRITE
        assert isinstance(second, EventSourceError)

    def test_publish_normalizes_bytes_paths(self, root):
        with EventSource() as source:
            source.publish(str(root).encode() + b"/sub/../a.txt", Operation.CREATE)
            item = source.get(timeout=0.1)

        assert item.path == root / "a.txt"

    def test_ignored_paths_dropped(self, root):
        with EventSource(ignore=EngineConfig().should_ignore) as source:
            source.publish(str(root / ".a.txt.swp"), Operation.WRITE)
            assert source.get(timeout=0.01) is None

    def test_full_buffer_drops_events(self, root, caplog):
        with EventSource(buffer_size=1) as source:
            with caplog.at_level(logging.WARNING):
                source.publish(str(root / "a.txt"), Operation.WRITE)
                source.publish(str(root / "b.txt"), Operation.WRITE)

            assert source.get(timeout=0.1).path == root / "a.txt"
            assert source.get(timeout=0.01) is None

        assert "dropping" in caplog.text


class TestLiveEvents:
    """Tests against the real filesystem."""

    def test_detects_file_creation(self, root):
        with EventSource() as source:
            source.start()
            source.add(root)
            time.sleep(0.2)

            (root / "test.txt").write_text("hello")
            items = collect(source, 0.5)

        creates = [i for i in items if i.operation == Operation.CREATE and i.path == root / "test.txt"]
        assert len(creates) >= 1

    def test_detects_file_modification(self, root):
        target = root / "test.txt"
        target.write_text("initial")

        with EventSource() as source:
            source.start()
            source.add(target)
            time.sleep(0.2)

            target.write_text("modified")
            items = collect(source, 0.5)

        writes = [i for i in items if i.operation == Operation.WRITE and i.path == target]
        assert len(writes) >= 1

    def test_detects_file_removal(self, root):
        target = root / "test.txt"
        target.write_text("initial")

        with EventSource() as source:
            source.start()
            source.add(root)
            time.sleep(0.2)

            target.unlink()
            items = collect(source, 0.5)

        removes = [i for i in items if i.operation == Operation.REMOVE and i.path == target]
        assert len(removes) >= 1

    def test_rename_reports_both_names(self, root):
        old = root / "old.txt"
        new = root / "new.txt"
        old.write_text("x")

        with EventSource() as source:
            source.start()
            source.add(root)
            time.sleep(0.2)

            old.rename(new)
            items = collect(source, 0.5)

        assert any(i.operation == Operation.RENAME and i.path == old for i in items)
        assert any(i.operation == Operation.CREATE and i.path == new for i in items)

    def test_subdirectories_not_watched_implicitly(self, root):
        sub = root / "sub"
        sub.mkdir()

        with EventSource() as source:
            source.start()
            source.add(root)
            time.sleep(0.2)

            (sub / "deep.txt").write_text("x")
            items = collect(source, 0.5)

        assert not any(isinstance(i, RawEvent) and i.path == sub / "deep.txt" for i in items)
