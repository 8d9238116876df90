"""Filesystem-backed tile store with size-bounded eviction.

This module provides CacheStore, which writes tiles as individual files
under a cache root, tracks the space they use and trims the oldest files
once the cache grows past its high-water mark.
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import stat
import secrets
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from domain.models import TileCacheSettings
from shared.constants import TILE_PARTIAL_SUFFIX
from tiles.errors import CacheIOError, DirectoryCreationError, StorageUnavailableError
from tiles.eviction import EvictionController
from tiles.locks import PathLocks
from tiles.paths import is_storage_available
from tiles.space import UsedSpaceCounter
from tiles.walker import iter_cache_files

if TYPE_CHECKING:
    from collections.abc import Callable

    from tiles.keys import TileKey, TileSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    """Result of a cache lookup."""

    present: bool
    path: Path | None = None
    is_stale: bool = False


MISS = LookupResult(present=False)


@dataclass
class CacheStats:
    """Statistics about the tile cache, taken from a fresh walk."""

    total_files: int
    total_size_bytes: int
    used_space_bytes: int
    oldest_mtime: float | None
    newest_mtime: float | None


def _open_partial(path: Path) -> tuple[int, str]:
    """Create a hidden partial file next to ``path`` with umask-default mode."""
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, 'O_BINARY', 0)
    while True:
        name = f'.{path.name}.{secrets.token_hex(4)}{TILE_PARTIAL_SUFFIX}'
        tmp_name = os.path.join(path.parent, name)
        try:
            return os.open(tmp_name, flags, 0o666), tmp_name
        except FileExistsError:
            continue


def _max_age_seconds(max_age: timedelta | float) -> float:
    if isinstance(max_age, timedelta):
        return max_age.total_seconds()
    return float(max_age)


class CacheStore:
    """Tile cache stored as one file per tile under a root directory.

    Features:
    - Atomic replacement: a write goes to a partial file that is renamed
      over the target, so readers never see half-written tiles
    - Writes of the same tile are serialized
    - Used-space accounting with synchronous trim past the high-water mark
    - Background scan of the existing tree at startup
    - Staleness reported at lookup, never used to hide a cached tile

    Usage:
        store = CacheStore(root, settings)
        store.write(source, TileKey(15, 100, 200), tile_bytes)
        result = store.lookup(source, TileKey(15, 100, 200))
        if result.present and result.is_stale:
            ...  # serve it and schedule a refetch
    """

    def __init__(
        self,
        root: str | Path,
        settings: TileCacheSettings | None = None,
        *,
        counter: UsedSpaceCounter | None = None,
        storage_available: Callable[[], bool] | None = None,
        clock: Callable[[], float] = time.time,
        scan_on_start: bool = True,
    ) -> None:
        """Initialize the store.

        Args:
            root: Cache root directory, chosen by the caller.
            settings: Cache settings. Defaults to TileCacheSettings().
            counter: Used-space counter. A fresh one is created by default.
            storage_available: Reports whether the storage medium is present.
                Defaults to a disk usage probe on the root.
            clock: Returns the current time in seconds, used for staleness.
            scan_on_start: Start the background size scan immediately.
        """
        self.root = Path(root)
        self.settings = settings or TileCacheSettings()
        self.counter = counter or UsedSpaceCounter()
        self._storage_available = storage_available or (
            lambda: is_storage_available(self.root)
        )
        self._clock = clock
        self._path_locks = PathLocks()
        self.eviction = EvictionController(
            self.root,
            self.counter,
            max_size_bytes=self.settings.max_size_bytes,
            trim_to_bytes=self.settings.trim_to_bytes,
            path_locks=self._path_locks,
        )
        if scan_on_start and self.storage_available():
            self.eviction.start_initial_scan()
        logger.info('CacheStore initialized at %s', self.root)

    def storage_available(self) -> bool:
        try:
            return bool(self._storage_available())
        except Exception:
            logger.debug('Storage availability check failed', exc_info=True)
            return False

    def path_for(self, source: TileSource, key: TileKey) -> Path:
        """Absolute path of the file holding ``key`` of ``source``."""
        relative = source.relative_path(key) + self.settings.file_extension
        return self.root / relative

    def used_space(self) -> int:
        """Bytes used by the cache as currently accounted.

        Zero until the background scan has finished, then converges.
        """
        return self.counter.value

    def wait_for_initial_scan(self, timeout: float | None = None) -> bool:
        return self.eviction.wait_for_initial_scan(timeout)

    # Writes

    def write(
        self,
        source: TileSource,
        key: TileKey,
        data: bytes | BinaryIO,
    ) -> bool:
        """Store a tile, replacing any previous file for the same key.

        Args:
            source: Tile source mapping the key to a relative path.
            key: Tile key.
            data: Tile bytes or a binary stream to copy.

        Returns:
            True if the tile was written. Failures are logged, never raised.
        """
        try:
            written = self._write(source, key, data)
        except (CacheIOError, StorageUnavailableError) as e:
            logger.debug('Failed to write tile %s: %s', key, e)
            return False
        except Exception:
            logger.exception('Unexpected error writing tile %s', key)
            return False

        logger.debug('Wrote tile %s (%d bytes)', key, written)
        if self.eviction.needs_trim():
            self.eviction.trim()
        return True

    def _write(self, source: TileSource, key: TileKey, data: bytes | BinaryIO) -> int:
        if not self.storage_available():
            msg = f'Storage for {self.root} is not available'
            raise StorageUnavailableError(msg)

        path = self.path_for(source, key)
        parent = path.parent
        if not parent.is_dir():
            self._create_folder_and_check_exists(parent)

        stream = data
        if isinstance(data, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(data)

        with self._path_locks.for_path(path):
            try:
                fd, tmp_name = _open_partial(path)
            except OSError as e:
                msg = f'Cannot create partial file in {parent}: {e}'
                raise CacheIOError(msg) from e

            try:
                with os.fdopen(fd, 'wb', buffering=self.settings.io_buffer_size) as out:
                    length = self._copy(stream, out)
                try:
                    previous = path.stat().st_size
                except FileNotFoundError:
                    previous = 0
                os.replace(tmp_name, path)
            except OSError as e:
                with contextlib.suppress(OSError):
                    os.remove(tmp_name)
                msg = f'Cannot write {path}: {e}'
                raise CacheIOError(msg) from e
            except Exception:
                with contextlib.suppress(OSError):
                    os.remove(tmp_name)
                raise

            # the replaced file is no longer on disk
            self.counter.add(length - previous)
        return length

    def _copy(self, stream: BinaryIO, out: BinaryIO) -> int:
        total = 0
        size = self.settings.io_buffer_size
        while True:
            chunk = stream.read(size)
            if not chunk:
                return total
            out.write(chunk)
            total += len(chunk)

    def _create_folder_and_check_exists(self, folder: Path) -> None:
        try:
            folder.mkdir(parents=True, exist_ok=True)
            return
        except OSError as e:
            logger.debug('Failed to create %s (%s) - wait and check again', folder, e)

        # another writer may be creating the same tree
        time.sleep(self.settings.directory_retry_delay_s)
        if folder.is_dir():
            logger.debug('Seems like another thread created %s', folder)
            return
        logger.debug('Directory still does not exist: %s', folder)
        msg = f'Cannot create directory {folder}'
        raise DirectoryCreationError(msg)

    # Reads

    def exists(self, source: TileSource, key: TileKey) -> bool:
        if not self.storage_available():
            return False
        try:
            path = self.path_for(source, key)
        except ValueError:
            return False
        return path.is_file()

    def lookup(
        self,
        source: TileSource,
        key: TileKey,
        max_age: timedelta | float | None = None,
    ) -> LookupResult:
        """Find a cached tile and report whether it is stale.

        Reading does not touch the file's modification time.

        Args:
            source: Tile source mapping the key to a relative path.
            key: Tile key.
            max_age: Freshness limit (timedelta or seconds). None uses the
                configured age; zero or negative means never stale.

        Returns:
            LookupResult; a stale tile is still returned as present.
        """
        if not self.storage_available():
            logger.debug('No storage - do nothing for tile %s', key)
            return MISS

        try:
            path = self.path_for(source, key)
        except ValueError as e:
            logger.debug('Cannot map tile %s: %s', key, e)
            return MISS
        try:
            st = path.stat()
        except OSError:
            return MISS
        if not stat.S_ISREG(st.st_mode):
            return MISS

        limit = _max_age_seconds(
            self.settings.max_cached_file_age if max_age is None else max_age
        )
        is_stale = limit > 0 and (self._clock() - st.st_mtime) > limit
        if is_stale:
            logger.debug('Tile expired: %s', key)
        return LookupResult(present=True, path=path, is_stale=is_stale)

    def read(
        self,
        source: TileSource,
        key: TileKey,
        max_age: timedelta | float | None = None,
    ) -> tuple[bytes, bool] | None:
        """Read a cached tile's bytes.

        Returns:
            (data, is_stale), or None on a miss, including a file that vanished
            between lookup and open.
        """
        result = self.lookup(source, key, max_age)
        if not result.present or result.path is None:
            return None
        try:
            return result.path.read_bytes(), result.is_stale
        except OSError:
            return None

    def stats(self) -> CacheStats:
        """Cache statistics from a fresh walk of the root."""
        total_files = 0
        total_size = 0
        oldest: int | None = None
        newest: int | None = None
        if self.storage_available():
            for f in iter_cache_files(self.root):
                total_files += 1
                total_size += f.size_bytes
                oldest = f.mtime_ns if oldest is None else min(oldest, f.mtime_ns)
                newest = f.mtime_ns if newest is None else max(newest, f.mtime_ns)
        return CacheStats(
            total_files=total_files,
            total_size_bytes=total_size,
            used_space_bytes=self.used_space(),
            oldest_mtime=None if oldest is None else oldest / 1e9,
            newest_mtime=None if newest is None else newest / 1e9,
        )

