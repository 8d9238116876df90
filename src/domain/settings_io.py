"""Loading and saving TileCacheSettings as TOML."""

from __future__ import annotations

import logging
from pathlib import Path

import tomlkit

from domain.models import TileCacheSettings

logger = logging.getLogger(__name__)

# Таблица TOML, в которой лежат настройки кэша
SETTINGS_TABLE = 'tile_cache'


def load_settings(path: str | Path | None) -> TileCacheSettings:
    """
    Загрузка и валидация настроек из TOML.

    Настройки читаются из таблицы [tile_cache], а при её отсутствии
    с верхнего уровня документа. Отсутствующий файл даёт значения по умолчанию.
    """
    if path is None:
        return TileCacheSettings()
    p = Path(path)
    if not p.exists():
        logger.info('Settings file %s not found, using defaults', p)
        return TileCacheSettings()
    data = tomlkit.parse(p.read_text(encoding='utf-8')).unwrap()
    section = data.get(SETTINGS_TABLE, data)
    settings = TileCacheSettings.model_validate(section)
    logger.info(
        'Tile cache settings loaded from %s: max=%d trim_to=%d age=%.1fh',
        p,
        settings.max_size_bytes,
        settings.trim_to_bytes,
        settings.max_cached_file_age_hours,
    )
    return settings


def save_settings(path: str | Path, settings: TileCacheSettings) -> Path:
    """Сохранение настроек в TOML (таблица [tile_cache])."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    doc = tomlkit.document()
    doc[SETTINGS_TABLE] = settings.model_dump()
    p.write_text(tomlkit.dumps(doc), encoding='utf-8')
    return p
