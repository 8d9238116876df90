"""Exceptions raised by the tile disk cache.

Only the provider lets an exception escape to its caller (CantContinueError);
CacheStore reports write failures as a boolean and lookups degrade to a miss.
"""

from __future__ import annotations


class TileCacheError(Exception):
    """Base class for tile cache errors."""


class CacheIOError(TileCacheError):
    """A read, write or delete on the cache tree failed."""


class DirectoryCreationError(CacheIOError):
    """Parent directory could not be created or verified after a retry."""


class StorageUnavailableError(TileCacheError):
    """The medium holding the cache root is not available."""


class LowMemoryError(TileCacheError):
    """Decoding a cached tile ran out of memory."""


class CantContinueError(TileCacheError):
    """The current batch of tile loads must stop.

    Raised when decoding hits resource exhaustion that would recur if the
    caller kept issuing work.
    """
