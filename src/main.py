"""Command-line entry point for inspecting and maintaining the tile cache."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from domain.settings_io import load_settings
from shared.constants import LOG_FORMAT
from shared.diagnostics import log_disk_usage
from tiles.keys import TileKey, XYZTileSource
from tiles.paths import resolve_cache_root
from tiles.store import CacheStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure logging to stdout and, optionally, a UTF-8 log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))
        except OSError:
            logger.debug('Failed to set up file logging', exc_info=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tilestash',
        description='Inspect and maintain the on-disk tile cache.',
    )
    parser.add_argument('--root', type=Path, default=None, help='Cache root directory')
    parser.add_argument(
        '--fallback-root',
        type=Path,
        default=None,
        help='Cache root used when --root is not writable',
    )
    parser.add_argument('--config', type=Path, default=None, help='TOML settings file')
    parser.add_argument('--log-file', type=Path, default=None, help='Also log to this file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('stats', help='Show cache size and age range')
    sub.add_parser('trim', help='Trim the cache if it is over the high-water mark')

    lookup = sub.add_parser('lookup', help='Look up one tile')
    lookup.add_argument('source', help='Tile source name')
    lookup.add_argument('zoom', type=int)
    lookup.add_argument('x', type=int)
    lookup.add_argument('y', type=int)
    lookup.add_argument('--extension', default='.png', help='Tile image extension')
    lookup.add_argument(
        '--max-age-hours',
        type=float,
        default=None,
        help='Freshness limit; 0 disables staleness',
    )
    return parser


def _format_ts(ts: float | None) -> str:
    if ts is None:
        return '-'
    return datetime.fromtimestamp(ts).isoformat(timespec='seconds')


def cmd_stats(store: CacheStore) -> int:
    stats = store.stats()
    print(f'root:        {store.root}')
    print(f'files:       {stats.total_files}')
    print(f'size:        {stats.total_size_bytes} bytes')
    print(f'high-water:  {store.settings.max_size_bytes} bytes')
    print(f'low-water:   {store.settings.trim_to_bytes} bytes')
    print(f'oldest:      {_format_ts(stats.oldest_mtime)}')
    print(f'newest:      {_format_ts(stats.newest_mtime)}')
    log_disk_usage(store.root, 'stats')
    return 0


def cmd_trim(store: CacheStore) -> int:
    total = store.eviction.recalculate()
    if total <= store.settings.max_size_bytes:
        print(f'Cache holds {total} bytes, no trim needed')
        return 0
    result = store.eviction.trim()
    print(
        f'Deleted {result.files_deleted} files ({result.bytes_freed} bytes), '
        f'{result.files_failed} failed; cache now {store.used_space()} bytes'
    )
    return 0 if store.used_space() <= store.settings.trim_to_bytes else 1


def cmd_lookup(store: CacheStore, args: argparse.Namespace) -> int:
    source = XYZTileSource(args.source, extension=args.extension)
    key = TileKey(zoom=args.zoom, x=args.x, y=args.y)
    max_age = None if args.max_age_hours is None else args.max_age_hours * 3600
    result = store.lookup(source, key, max_age)
    if not result.present:
        print(f'{args.source} {key}: not cached')
        return 1
    state = 'stale' if result.is_stale else 'fresh'
    print(f'{args.source} {key}: {result.path} ({state})')
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        logger.error('Invalid settings: %s', e)
        return 2

    root = resolve_cache_root(args.root, args.fallback_root)
    store = CacheStore(root, settings, scan_on_start=False)

    if args.command == 'stats':
        return cmd_stats(store)
    if args.command == 'trim':
        return cmd_trim(store)
    return cmd_lookup(store, args)


if __name__ == '__main__':
    sys.exit(main())
