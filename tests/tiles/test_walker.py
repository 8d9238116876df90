"""Tests for the cache tree walker."""

from __future__ import annotations

import os

import pytest

from tiles.walker import (
    CacheFile,
    directory_size,
    is_symbolic_directory_link,
    iter_cache_files,
)

needs_symlinks = pytest.mark.skipif(
    not hasattr(os, 'symlink') or os.name == 'nt',
    reason='symlinks not available',
)


class TestIsSymbolicDirectoryLink:
    """Tests for is_symbolic_directory_link()."""

    def test_real_subdirectory(self, temp_cache_dir):
        sub = temp_cache_dir / 'sub'
        sub.mkdir()
        assert is_symbolic_directory_link(temp_cache_dir, sub) is False

    def test_missing_directory_counts_as_link(self, temp_cache_dir):
        assert is_symbolic_directory_link(temp_cache_dir, temp_cache_dir / 'gone') is True

    @needs_symlinks
    def test_link_elsewhere(self, temp_cache_dir):
        outside = temp_cache_dir / 'outside'
        outside.mkdir()
        root = temp_cache_dir / 'root'
        root.mkdir()
        link = root / 'link'
        os.symlink(outside, link, target_is_directory=True)
        assert is_symbolic_directory_link(root, link) is True


class TestIterCacheFiles:
    """Tests for iter_cache_files() and directory_size()."""

    def test_empty(self, temp_cache_dir):
        assert list(iter_cache_files(temp_cache_dir)) == []
        assert directory_size(temp_cache_dir) == 0

    def test_missing_root(self, temp_cache_dir):
        assert list(iter_cache_files(temp_cache_dir / 'nope')) == []

    def test_nested_files(self, temp_cache_dir, make_file, base_time):
        make_file(temp_cache_dir / 'a' / '1' / 'x.tile', 5, mtime=base_time)
        make_file(temp_cache_dir / 'b.tile', 7)
        files = list(iter_cache_files(temp_cache_dir))

        assert all(isinstance(f, CacheFile) for f in files)
        assert sorted(f.path.name for f in files) == ['b.tile', 'x.tile']
        nested = next(f for f in files if f.path.name == 'x.tile')
        assert nested.size_bytes == 5
        assert nested.mtime_ns / 1e9 == pytest.approx(base_time, abs=2)
        assert directory_size(temp_cache_dir) == 12

    def test_deterministic_order(self, temp_cache_dir, make_file):
        for name in ('c', 'a', 'b'):
            make_file(temp_cache_dir / name / f'{name}.tile', 1)
            make_file(temp_cache_dir / f'{name}.tile', 1)
        first = [f.path for f in iter_cache_files(temp_cache_dir)]
        second = [f.path for f in iter_cache_files(temp_cache_dir)]
        assert first == second
        assert [p.name for p in first[:3]] == ['a.tile', 'b.tile', 'c.tile']

    def test_partial_files(self, temp_cache_dir, make_file):
        make_file(temp_cache_dir / 'a.tile', 3)
        make_file(temp_cache_dir / '.a.tile.123.part', 4)
        assert directory_size(temp_cache_dir) == 3
        with_partial = iter_cache_files(temp_cache_dir, include_partial=True)
        assert sum(f.size_bytes for f in with_partial) == 7

    @needs_symlinks
    def test_linked_directory_skipped(self, temp_cache_dir, make_file):
        outside = temp_cache_dir / 'outside'
        make_file(outside / 'secret.tile', 100)
        root = temp_cache_dir / 'root'
        make_file(root / 'own.tile', 1)
        os.symlink(outside, root / 'link', target_is_directory=True)

        names = [f.path.name for f in iter_cache_files(root)]
        assert names == ['own.tile']

    @needs_symlinks
    def test_symlink_loop_terminates(self, temp_cache_dir, make_file):
        root = temp_cache_dir / 'root'
        make_file(root / 'sub' / 'own.tile', 1)
        os.symlink(root, root / 'sub' / 'loop', target_is_directory=True)

        assert directory_size(root) == 1
