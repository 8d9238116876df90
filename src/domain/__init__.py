"""Domain layer - cache settings and their TOML persistence."""
from domain.models import TileCacheSettings
from domain.settings_io import load_settings, save_settings

__all__ = [
    'TileCacheSettings',
    'load_settings',
    'save_settings',
]
