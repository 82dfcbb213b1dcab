"""Expansion of watch patterns into concrete paths."""

import glob
import logging
import os
import stat
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Set

logger = logging.getLogger(__name__)

IgnoreFunc = Callable[[Path], bool]


def is_directory(path: Path) -> bool:
    """
    Check whether a path is a directory.

    Stat failures (the path vanished, permissions) are logged and the path
    is treated as not being a directory.
    """
    try:
        return stat.S_ISDIR(os.stat(path).st_mode)
    except OSError as e:
        logger.warning(f"Unable to stat {path}: {e}")
        return False


def walk_directories(root: Path, ignore: Optional[IgnoreFunc] = None) -> Iterator[Path]:
    """
    Yield ``root`` and every directory below it.

    Ignored directories are neither yielded nor descended into.

    Args:
        root: Directory to walk
        ignore: Predicate selecting paths to skip
    """
    def _on_error(error: OSError) -> None:
        logger.debug(f"Skipping unreadable directory {error.filename}: {error.strerror}")

    for dirpath, dirnames, _ in os.walk(root, onerror=_on_error):
        current = Path(dirpath)
        if ignore:
            dirnames[:] = [d for d in dirnames if not ignore(current / d)]
        yield current


def resolve(
    patterns: Iterable[str],
    recursive: bool,
    ignore: Optional[IgnoreFunc] = None,
) -> Set[Path]:
    """
    Resolve watch patterns to the set of concrete paths to watch.

    Each pattern is glob-expanded (``**`` and ``~`` are supported). When
    ``recursive`` is set, every matched directory contributes all of its
    descendant directories as well. Patterns matching nothing contribute
    nothing.

    Args:
        patterns: Files, directories or glob patterns
        recursive: Whether to include sub-directories of matched directories
        ignore: Predicate selecting paths to leave out

    Returns:
        Absolute, resolved paths
    """
    found: Set[Path] = set()

    for pattern in patterns:
        matches = glob.glob(os.path.expanduser(pattern), recursive=True)
        if not matches:
            logger.debug(f"Pattern {pattern!r} matched nothing")
            continue

        for match in matches:
            path = Path(match).resolve()
            if ignore and ignore(path):
                continue
            found.add(path)
            if recursive and is_directory(path):
                found.update(walk_directories(path, ignore))

    return found
