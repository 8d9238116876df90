"""Disk tile cache.

This module provides:
- CacheStore: one file per tile, used-space accounting, staleness at lookup
- EvictionController: oldest-first trimming between two watermarks
- TileFilesystemProvider: decoded tiles for a tile source, batch loading
- XYZTileSource: default key to relative path mapping
"""

from tiles.errors import (
    CacheIOError,
    CantContinueError,
    DirectoryCreationError,
    LowMemoryError,
    StorageUnavailableError,
    TileCacheError,
)
from tiles.eviction import EvictionController, TrimResult
from tiles.keys import TileKey, TileSource, XYZTileSource
from tiles.provider import CachedTile, TileFilesystemProvider
from tiles.space import UsedSpaceCounter
from tiles.store import CacheStats, CacheStore, LookupResult

__all__ = [
    'CacheIOError',
    'CacheStats',
    'CacheStore',
    'CachedTile',
    'CantContinueError',
    'DirectoryCreationError',
    'EvictionController',
    'LookupResult',
    'LowMemoryError',
    'StorageUnavailableError',
    'TileCacheError',
    'TileFilesystemProvider',
    'TileKey',
    'TileSource',
    'TrimResult',
    'UsedSpaceCounter',
    'XYZTileSource',
]
