"""Tests for TileFilesystemProvider."""

from __future__ import annotations

import pytest

from tiles.errors import CantContinueError, LowMemoryError
from tiles.keys import TileKey, XYZTileSource
from tiles.provider import CachedTile, TileFilesystemProvider


def read_decoder(path):
    return path.read_bytes()


@pytest.fixture
def provider(store, source):
    return TileFilesystemProvider(store, source, decoder=read_decoder)


class TestTileFilesystemProvider:
    """Tests for single tile loads."""

    def test_metadata(self, provider):
        assert provider.name == 'File System Cache Provider'
        assert provider.uses_data_connection is False

    def test_zoom_levels_follow_source(self, store):
        provider = TileFilesystemProvider(store, XYZTileSource('s', min_zoom=3, max_zoom=17))
        assert provider.minimum_zoom_level == 3
        assert provider.maximum_zoom_level == 17

        provider.tile_source = None
        assert provider.minimum_zoom_level == 0
        assert provider.maximum_zoom_level == 22

    def test_no_source_misses(self, store, source):
        store.write(source, TileKey(1, 0, 0), b'data')
        provider = TileFilesystemProvider(store, None, decoder=read_decoder)
        assert provider.load_tile(TileKey(1, 0, 0)) is None

    def test_miss(self, provider):
        assert provider.load_tile(TileKey(1, 0, 0)) is None

    def test_hit(self, provider, store, source):
        store.write(source, TileKey(1, 0, 0), b'data')
        tile = provider.load_tile(TileKey(1, 0, 0))
        assert isinstance(tile, CachedTile)
        assert tile.image == b'data'
        assert tile.expired is False
        assert tile.path == store.path_for(source, TileKey(1, 0, 0))

    def test_expired_tile_flagged(self, store, source, set_mtime, base_time):
        store.write(source, TileKey(1, 0, 0), b'data')
        set_mtime(store.path_for(source, TileKey(1, 0, 0)), base_time)
        provider = TileFilesystemProvider(
            store, source, decoder=read_decoder, max_cached_file_age=60
        )
        tile = provider.load_tile(TileKey(1, 0, 0))
        assert tile is not None
        assert tile.expired is True

    def test_source_switch(self, provider, store, source):
        other = XYZTileSource('streets')
        store.write(other, TileKey(1, 0, 0), b'streets')
        assert provider.load_tile(TileKey(1, 0, 0)) is None
        provider.tile_source = other
        assert provider.load_tile(TileKey(1, 0, 0)).image == b'streets'

    def test_undecodable_tile_misses(self, store, source):
        store.write(source, TileKey(1, 0, 0), b'junk')
        provider = TileFilesystemProvider(store, source, decoder=lambda path: None)
        assert provider.load_tile(TileKey(1, 0, 0)) is None

    def test_low_memory_stops(self, store, source):
        def exhausted(path):
            raise LowMemoryError('no memory')

        store.write(source, TileKey(1, 0, 0), b'data')
        provider = TileFilesystemProvider(store, source, decoder=exhausted)
        with pytest.raises(CantContinueError) as excinfo:
            provider.load_tile(TileKey(1, 0, 0))
        assert isinstance(excinfo.value.__cause__, LowMemoryError)

    def test_invalid_key_misses(self, provider):
        assert provider.load_tile(TileKey(1, -1, 0)) is None


class TestLoadTiles:
    """Tests for batch loads."""

    @pytest.mark.asyncio
    async def test_load_batch(self, provider, store, source):
        keys = [TileKey(2, x, 0) for x in range(6)]
        for key in keys[:4]:
            store.write(source, key, f'tile{key.x}'.encode())

        tiles = await provider.load_tiles(keys, concurrency=2)

        assert set(tiles) == set(keys)
        for key in keys[:4]:
            assert tiles[key].image == f'tile{key.x}'.encode()
        assert tiles[keys[4]] is None
        assert tiles[keys[5]] is None

    @pytest.mark.asyncio
    async def test_empty_batch(self, provider):
        assert await provider.load_tiles([]) == {}

    @pytest.mark.asyncio
    async def test_low_memory_aborts_batch(self, store, source):
        decoded = []

        def decoder(path):
            if path.name.startswith('0.'):
                raise LowMemoryError('no memory')
            decoded.append(path.name)
            return path.read_bytes()

        keys = [TileKey(3, 0, y) for y in range(20)]
        for key in keys:
            store.write(source, key, b'data')
        provider = TileFilesystemProvider(store, source, decoder=decoder)

        with pytest.raises(CantContinueError):
            await provider.load_tiles(keys, concurrency=1)
        assert len(decoded) < len(keys) - 1

    @pytest.mark.asyncio
    async def test_unexpected_error_cancels_batch(self, store, source):
        decoded = []

        def decoder(path):
            if path.name.startswith('0.'):
                raise RuntimeError('decoder crashed')
            decoded.append(path.name)
            return path.read_bytes()

        keys = [TileKey(4, 0, y) for y in range(20)]
        for key in keys:
            store.write(source, key, b'data')
        provider = TileFilesystemProvider(store, source, decoder=decoder)

        with pytest.raises(RuntimeError, match='decoder crashed'):
            await provider.load_tiles(keys, concurrency=1)
        assert len(decoded) < len(keys) - 1
