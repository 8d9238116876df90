"""Cache root selection and storage availability."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from shared.constants import TILE_PATH_BASE
from shared.diagnostics import get_disk_info, nearest_existing_path

logger = logging.getLogger(__name__)


def is_writable_location(path: str | Path) -> bool:
    """True if ``path`` exists as a writable directory or could be created."""
    existing = nearest_existing_path(Path(path))
    if existing is None or not existing.is_dir():
        return False
    return os.access(existing, os.W_OK | os.X_OK)


def resolve_cache_root(
    preferred: str | Path | None = None,
    fallback: str | Path | None = None,
) -> Path:
    """Pick the cache root once, before the store is constructed.

    Uses ``preferred`` (TILE_PATH_BASE by default) when it is writable and
    ``fallback`` otherwise. With no usable fallback the preferred root is
    returned and writes will fail at the store boundary.
    """
    preferred_path = Path(preferred or TILE_PATH_BASE).expanduser()
    if is_writable_location(preferred_path):
        return preferred_path.resolve()
    if fallback is not None:
        fallback_path = Path(fallback).expanduser()
        logger.info(
            'Cache root %s is not writable, using %s', preferred_path, fallback_path
        )
        return fallback_path.resolve()
    return preferred_path.resolve()


def is_storage_available(root: str | Path) -> bool:
    """Check that the medium holding ``root`` is mounted and readable."""
    return 'error' not in get_disk_info(root)
