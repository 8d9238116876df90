"""Tile keys and their mapping to relative cache paths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from shared.constants import MAXIMUM_ZOOMLEVEL, MINIMUM_ZOOMLEVEL


@dataclass(frozen=True)
class TileKey:
    """Identifies one tile within a source."""

    zoom: int
    x: int
    y: int

    def __str__(self) -> str:
        return f'z{self.zoom}/{self.x}/{self.y}'


class TileSource(Protocol):
    """Maps a tile key to a path relative to the cache root."""

    name: str
    min_zoom: int
    max_zoom: int

    def relative_path(self, key: TileKey) -> str: ...


class XYZTileSource:
    """Tile source laid out as ``name/zoom/x/y<extension>``.

    Usage:
        source = XYZTileSource('satellite', extension='.jpg')
        source.relative_path(TileKey(zoom=12, x=100, y=200))
        # 'satellite/12/100/200.jpg'
    """

    def __init__(
        self,
        name: str,
        extension: str = '.png',
        min_zoom: int = MINIMUM_ZOOMLEVEL,
        max_zoom: int = MAXIMUM_ZOOMLEVEL,
    ) -> None:
        if not name or '/' in name or '\\' in name or name in ('.', '..'):
            msg = f'Invalid tile source name: {name!r}'
            raise ValueError(msg)
        if '/' in extension or '\\' in extension:
            msg = f'Invalid tile extension: {extension!r}'
            raise ValueError(msg)
        if min_zoom > max_zoom:
            msg = f'min_zoom ({min_zoom}) must not exceed max_zoom ({max_zoom})'
            raise ValueError(msg)
        self.name = name
        self.extension = extension
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom

    def relative_path(self, key: TileKey) -> str:
        if key.zoom < 0 or key.x < 0 or key.y < 0:
            msg = f'Tile coordinates must be non-negative: {key}'
            raise ValueError(msg)
        return f'{self.name}/{key.zoom}/{key.x}/{key.y}{self.extension}'

    def __repr__(self) -> str:
        return f'XYZTileSource({self.name!r}, extension={self.extension!r})'
