"""Size-bounded eviction for the tile disk cache.

EvictionController keeps the cache under a high-water mark by deleting the
least recently modified files until a low-water mark is reached. Reads never
refresh a file's modification time, so eviction is age-based, not LRU.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from shared.constants import (
    TILE_MAX_CACHE_SIZE_BYTES,
    TILE_PARTIAL_SUFFIX,
    TILE_TRIM_CACHE_SIZE_BYTES,
)
from tiles.locks import PathLocks, root_lock
from tiles.walker import directory_size, iter_cache_files

if TYPE_CHECKING:
    from tiles.space import UsedSpaceCounter

logger = logging.getLogger(__name__)

PARTIAL_FILE_GRACE_NS = 2_000_000_000


@dataclass
class TrimResult:
    """Outcome of one trim run."""

    files_deleted: int = 0
    bytes_freed: int = 0
    files_failed: int = 0

    @property
    def performed(self) -> bool:
        return self.files_deleted > 0 or self.files_failed > 0


class EvictionController:
    """Trims the cache tree oldest-first.

    Usage:
        counter = UsedSpaceCounter()
        controller = EvictionController(root, counter)
        controller.start_initial_scan()
        ...
        if counter.value > controller.max_size_bytes:
            controller.trim()
    """

    def __init__(
        self,
        root: str | Path,
        counter: UsedSpaceCounter,
        max_size_bytes: int = TILE_MAX_CACHE_SIZE_BYTES,
        trim_to_bytes: int = TILE_TRIM_CACHE_SIZE_BYTES,
        path_locks: PathLocks | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            root: Cache root directory.
            counter: Used-space counter owned by the store.
            max_size_bytes: High-water mark that triggers trimming.
            trim_to_bytes: Low-water mark trimming reduces to.
            path_locks: Per-file locks shared with the writer.
        """
        if trim_to_bytes >= max_size_bytes:
            msg = (
                f'trim_to_bytes ({trim_to_bytes}) must be less than '
                f'max_size_bytes ({max_size_bytes})'
            )
            raise ValueError(msg)
        self.root = Path(root)
        self.counter = counter
        self.max_size_bytes = max_size_bytes
        self.trim_to_bytes = trim_to_bytes
        self.path_locks = path_locks or PathLocks()
        self._lock = root_lock(self.root)
        self._scan_thread: threading.Thread | None = None
        self._scan_done = threading.Event()
        # filesystem timestamps come from a coarse clock
        self._partials_cutoff_ns = time.time_ns() - PARTIAL_FILE_GRACE_NS

    def needs_trim(self) -> bool:
        return self.counter.value > self.max_size_bytes

    def trim(self) -> TrimResult:
        """Delete oldest files until used space is at or below trim_to_bytes.

        Only one trim per cache root runs at a time. A caller that waited for
        the lock returns immediately if another trim already did the work.

        Returns:
            TrimResult with deleted/failed counts and bytes freed.
        """
        result = TrimResult()
        with self._lock:
            if self.counter.value <= self.trim_to_bytes:
                return result

            logger.info(
                'Trimming tile cache from %d to %d bytes',
                self.counter.value,
                self.trim_to_bytes,
            )

            # stable sort: equal mtimes keep walk order
            files = sorted(iter_cache_files(self.root), key=lambda f: f.mtime_ns)

            for cache_file in files:
                if self.counter.value <= self.trim_to_bytes:
                    break
                try:
                    with self.path_locks.for_path(cache_file.path):
                        st = os.stat(cache_file.path)
                        if (
                            st.st_mtime_ns != cache_file.mtime_ns
                            or st.st_size != cache_file.size_bytes
                        ):
                            logger.debug('Rewritten since listing: %s', cache_file.path)
                            continue
                        os.remove(cache_file.path)
                except FileNotFoundError:
                    logger.debug('Already gone: %s', cache_file.path)
                    continue
                except OSError as e:
                    result.files_failed += 1
                    logger.debug('Failed to delete %s: %s', cache_file.path, e)
                    continue
                self.counter.subtract(st.st_size)
                result.files_deleted += 1
                result.bytes_freed += st.st_size

            logger.info(
                'Finished trimming tile cache: %d files deleted, %d bytes freed, '
                '%d failed, now %d bytes',
                result.files_deleted,
                result.bytes_freed,
                result.files_failed,
                self.counter.value,
            )
        return result

    def recalculate(self) -> int:
        """Set the counter from a full walk of the cache root.

        Returns:
            Size in bytes found on disk.
        """
        total = directory_size(self.root)
        self.counter.set(total)
        return total

    def start_initial_scan(self) -> threading.Thread:
        """Start the background size scan.

        The scan removes partial files left behind by an interrupted process,
        sets the counter from disk and trims if the cache is already oversized.
        Construction of the store never waits for it.
        """
        if self._scan_thread is not None:
            return self._scan_thread
        self._scan_thread = threading.Thread(
            target=self._initial_scan,
            name='tile-cache-scan',
            daemon=True,
        )
        self._scan_thread.start()
        return self._scan_thread

    def wait_for_initial_scan(self, timeout: float | None = None) -> bool:
        """Block until the initial scan finished.

        Returns:
            True if the scan completed within ``timeout``.
        """
        if self._scan_thread is None:
            return True
        return self._scan_done.wait(timeout)

    def _initial_scan(self) -> None:
        try:
            self._remove_leftover_partials()
            total = self.recalculate()
            logger.info('Tile cache at %s holds %d bytes', self.root, total)
            if total > self.max_size_bytes:
                self.trim()
        except Exception:
            logger.exception('Initial tile cache scan failed')
        finally:
            self._scan_done.set()
            logger.debug('Finished init thread')

    def _remove_leftover_partials(self) -> None:
        for cache_file in iter_cache_files(self.root, include_partial=True):
            if not cache_file.path.name.endswith(TILE_PARTIAL_SUFFIX):
                continue
            # partials newer than the controller may belong to a live writer
            if cache_file.mtime_ns >= self._partials_cutoff_ns:
                continue
            try:
                os.remove(cache_file.path)
                logger.debug('Removed leftover partial file %s', cache_file.path)
            except OSError as e:
                logger.debug('Failed to remove %s: %s', cache_file.path, e)
