"""Fixtures shared by tile cache tests."""

from __future__ import annotations

import os
import tempfile
import time
from pathlib import Path

import pytest

from domain.models import TileCacheSettings
from tiles.keys import XYZTileSource
from tiles.store import CacheStore


@pytest.fixture
def temp_cache_dir():
    """Create temporary directory for cache."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def small_settings():
    """Settings with a 600/500 byte watermark pair."""
    return TileCacheSettings(
        max_size_bytes=600,
        trim_to_bytes=500,
        directory_retry_delay_s=0.01,
    )


@pytest.fixture
def source():
    return XYZTileSource('satellite', extension='.png')


@pytest.fixture
def store(temp_cache_dir, small_settings):
    """CacheStore without background scan and with storage always present."""
    return CacheStore(
        temp_cache_dir,
        small_settings,
        storage_available=lambda: True,
        scan_on_start=False,
    )


@pytest.fixture
def set_mtime():
    """Set a file's modification time (seconds since the epoch)."""

    def _set(path: Path, seconds: float) -> None:
        ns = int(seconds * 1e9)
        os.utime(path, ns=(ns, ns))

    return _set


@pytest.fixture
def make_file(set_mtime):
    """Create a file of ``size`` bytes, optionally with a given mtime."""

    def _make(path: Path, size: int, mtime: float | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b'x' * size)
        if mtime is not None:
            set_mtime(path, mtime)
        return path

    return _make


@pytest.fixture
def base_time():
    """A fixed point well in the past to build distinct mtimes from."""
    return time.time() - 100_000
