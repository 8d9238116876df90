"""Shared utilities and helpers."""
from shared.diagnostics import get_disk_info, log_disk_usage

__all__ = [
    'get_disk_info',
    'log_disk_usage',
]
