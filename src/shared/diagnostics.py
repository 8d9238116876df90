"""
Diagnostic utilities.

This module reports disk usage of the medium holding the tile cache.
"""

import logging
from pathlib import Path
from typing import Any

import psutil

logger = logging.getLogger(__name__)


def nearest_existing_path(path: Path) -> Path | None:
    """Return ``path`` or its closest ancestor that exists."""
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return None


def get_disk_info(path: str | Path) -> dict[str, Any]:
    """Get disk usage for the filesystem holding ``path``."""
    target = nearest_existing_path(Path(path))
    if target is None:
        return {'error': f'no existing ancestor for {path}'}

    try:
        usage = psutil.disk_usage(str(target))
    except OSError as e:
        return {'error': str(e)}

    return {
        'path': str(target),
        'total_mb': round(usage.total / 1024 / 1024, 2),
        'used_mb': round(usage.used / 1024 / 1024, 2),
        'free_mb': round(usage.free / 1024 / 1024, 2),
        'percent': usage.percent,
    }


def log_disk_usage(path: str | Path, context: str = '') -> None:
    """Log disk usage with optional context."""
    info = get_disk_info(path)
    prefix = f'[{context}] ' if context else ''

    if 'error' in info:
        logger.warning('%sDisk info unavailable: %s', prefix, info['error'])
        return

    logger.info(
        '%sDisk %s: %.1f MB free of %.1f MB (%.1f%% used)',
        prefix,
        info['path'],
        info['free_mb'],
        info['total_mb'],
        info['percent'],
    )
