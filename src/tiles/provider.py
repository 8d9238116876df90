"""Tile provider serving decoded tiles from the disk cache.

TileFilesystemProvider sits between CacheStore and a renderer: it resolves
keys for the current tile source, decodes cached files and flags expired
ones. Resource exhaustion while decoding stops the whole batch.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shared.constants import (
    MAXIMUM_ZOOMLEVEL,
    MINIMUM_ZOOMLEVEL,
    NUMBER_OF_TILE_FILESYSTEM_THREADS,
)
from tiles.decode import decode_tile_image
from tiles.errors import CantContinueError, LowMemoryError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import timedelta
    from pathlib import Path

    from tiles.keys import TileKey, TileSource
    from tiles.store import CacheStore

logger = logging.getLogger(__name__)


@dataclass
class CachedTile:
    """A decoded tile served from the cache."""

    key: TileKey
    path: Path
    image: Any
    expired: bool


class TileFilesystemProvider:
    """Serves cached tiles for one tile source.

    Usage:
        provider = TileFilesystemProvider(store, XYZTileSource('satellite'))
        tile = provider.load_tile(TileKey(15, 100, 200))
        if tile is not None and tile.expired:
            ...  # show it, then refetch

        tiles = await provider.load_tiles(keys)
    """

    name = 'File System Cache Provider'
    uses_data_connection = False

    def __init__(
        self,
        store: CacheStore,
        tile_source: TileSource | None = None,
        decoder: Callable[[Path], Any] = decode_tile_image,
        max_cached_file_age: timedelta | float | None = None,
    ) -> None:
        """Initialize provider.

        Args:
            store: Cache store to read from.
            tile_source: Initial tile source. Without one every load misses.
            decoder: Turns a cached file into an image; returns None for an
                unusable file and raises LowMemoryError on exhaustion.
            max_cached_file_age: Freshness limit. Defaults to the store's.
        """
        self.store = store
        self.decoder = decoder
        self.max_cached_file_age = max_cached_file_age
        self._source_lock = threading.Lock()
        self._tile_source = tile_source

    @property
    def tile_source(self) -> TileSource | None:
        with self._source_lock:
            return self._tile_source

    @tile_source.setter
    def tile_source(self, source: TileSource | None) -> None:
        with self._source_lock:
            self._tile_source = source

    @property
    def minimum_zoom_level(self) -> int:
        source = self.tile_source
        return source.min_zoom if source is not None else MINIMUM_ZOOMLEVEL

    @property
    def maximum_zoom_level(self) -> int:
        source = self.tile_source
        return source.max_zoom if source is not None else MAXIMUM_ZOOMLEVEL

    def load_tile(self, key: TileKey) -> CachedTile | None:
        """Load one tile from the cache.

        Returns:
            CachedTile, or None on a miss.

        Raises:
            CantContinueError: decoding ran out of memory.
        """
        source = self.tile_source
        if source is None:
            return None

        result = self.store.lookup(source, key, self.max_cached_file_age)
        if not result.present or result.path is None:
            return None

        try:
            image = self.decoder(result.path)
        except LowMemoryError as e:
            # low memory so empty the queue
            logger.warning('LowMemoryError loading tile %s: %s', key, e)
            raise CantContinueError(str(e)) from e

        if image is None:
            return None
        return CachedTile(key=key, path=result.path, image=image, expired=result.is_stale)

    async def load_tiles(
        self,
        keys: Iterable[TileKey],
        *,
        concurrency: int = NUMBER_OF_TILE_FILESYSTEM_THREADS,
    ) -> dict[TileKey, CachedTile | None]:
        """Load many tiles in worker threads.

        Args:
            keys: Tiles to load.
            concurrency: Maximum number of loads running at once.

        Returns:
            Mapping of key to CachedTile, or None for misses.

        Raises:
            CantContinueError: a decode ran out of memory. Any error from a
                load cancels the pending loads of the batch before it
                propagates.
        """
        sem = asyncio.Semaphore(concurrency)
        out: dict[TileKey, CachedTile | None] = {}

        async def _worker(key: TileKey) -> None:
            async with sem:
                out[key] = await asyncio.to_thread(self.load_tile, key)

        tasks = [asyncio.create_task(_worker(k)) for k in keys]
        try:
            await asyncio.gather(*tasks)
        finally:
            # no-op for finished tasks; stops the rest of a failed batch
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        return out
