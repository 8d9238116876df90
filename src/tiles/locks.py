"""Locks guarding the cache tree.

- root_lock(): one lock per canonical cache root, serializes trims.
- PathLocks: striped locks serializing writes (and deletions) of one file.
"""

from __future__ import annotations

import os
import threading
import zlib
from typing import TYPE_CHECKING

from shared.constants import WRITE_LOCK_STRIPES

if TYPE_CHECKING:
    from pathlib import Path

_root_locks: dict[str, threading.Lock] = {}
_root_locks_guard = threading.Lock()


def root_lock(root: str | Path) -> threading.Lock:
    """Return the process-wide lock for a cache root.

    Two controllers opened on the same directory (even through different
    spellings of the path) get the same lock.
    """
    canonical = os.path.realpath(root)
    with _root_locks_guard:
        lock = _root_locks.get(canonical)
        if lock is None:
            lock = threading.Lock()
            _root_locks[canonical] = lock
        return lock


class PathLocks:
    """Fixed pool of locks selected by hashing the file path."""

    def __init__(self, stripes: int = WRITE_LOCK_STRIPES) -> None:
        if stripes < 1:
            msg = 'stripes must be positive'
            raise ValueError(msg)
        self._locks = [threading.Lock() for _ in range(stripes)]

    def for_path(self, path: str | Path) -> threading.Lock:
        index = zlib.crc32(os.fspath(path).encode('utf-8', 'surrogateescape'))
        return self._locks[index % len(self._locks)]
