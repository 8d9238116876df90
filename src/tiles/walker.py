"""Recursive walk over the cache tree.

The walk refuses to descend into a directory whose canonical parent differs
from the directory it was listed in, and into any directory whose canonical
path cannot be resolved. This is a best-effort guard against symlink loops
and against deleting outside the cache tree; it is not a security boundary.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from shared.constants import TILE_PARTIAL_SUFFIX

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheFile:
    """A regular file found under the cache root."""

    path: Path
    size_bytes: int
    mtime_ns: int


def is_symbolic_directory_link(parent: str | Path, directory: str | Path) -> bool:
    """Check whether ``directory`` appears to be a link out of ``parent``.

    Compares the canonical path of the parent with the parent of the
    directory's canonical path. Any resolution error counts as a link so the
    caller skips the directory.
    """
    try:
        canonical_parent = Path(parent).resolve(strict=True)
        canonical_dir = Path(directory).resolve(strict=True)
    except (OSError, RuntimeError):
        return True
    return canonical_parent != canonical_dir.parent


def _scan_sorted(directory: Path) -> list[os.DirEntry[str]]:
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        logger.debug('Cannot list %s: %s', directory, e)
        return []
    entries.sort(key=lambda entry: entry.name)
    return entries


def iter_cache_files(
    root: str | Path,
    *,
    include_partial: bool = False,
) -> Iterator[CacheFile]:
    """Yield every regular file under ``root``.

    Entries are listed in name order, depth first, so two walks over an
    unchanged tree yield files in the same order.

    Args:
        root: Cache root directory.
        include_partial: Also yield in-progress partial files.
    """
    stack = [Path(root)]
    while stack:
        directory = stack.pop()
        subdirs: list[Path] = []
        for entry in _scan_sorted(directory):
            try:
                if entry.is_file():
                    if not include_partial and entry.name.endswith(TILE_PARTIAL_SUFFIX):
                        continue
                    st = entry.stat()
                    yield CacheFile(Path(entry.path), st.st_size, st.st_mtime_ns)
                elif entry.is_dir():
                    if is_symbolic_directory_link(directory, entry.path):
                        logger.debug('Skipping linked directory %s', entry.path)
                        continue
                    subdirs.append(Path(entry.path))
            except OSError as e:
                # vanished between listing and stat
                logger.debug('Skipping %s: %s', entry.path, e)
        # reversed so the stack pops subdirectories in name order
        stack.extend(reversed(subdirs))


def directory_size(root: str | Path) -> int:
    """Total size in bytes of the cache files under ``root``."""
    return sum(f.size_bytes for f in iter_cache_files(root))
