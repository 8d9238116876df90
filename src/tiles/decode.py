"""Default decoder turning a cached tile file into a PIL image."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PIL import Image, UnidentifiedImageError

from tiles.errors import LowMemoryError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def decode_tile_image(path: Path) -> Image.Image | None:
    """Decode a cached tile.

    Returns:
        Loaded image, or None if the file is unreadable or vanished.

    Raises:
        LowMemoryError: decoding ran out of memory or hit the decompression
            bomb guard.
    """
    try:
        with Image.open(path) as img:
            img.load()
            return img.copy()
    except (MemoryError, Image.DecompressionBombError) as e:
        msg = f'Out of memory decoding {path}'
        raise LowMemoryError(msg) from e
    except (UnidentifiedImageError, OSError) as e:
        logger.debug('Cannot decode %s: %s', path, e)
        return None
