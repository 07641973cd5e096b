import argparse
import re
import shutil
import sys

from tabulate import tabulate

from .cache import EpisodeCache
from .config import load_settings
from .errors import ConfigurationError, VacuumError
from .library_sync import sync_media_units
from .sample_data import generate_sample_units
from .scoring import filter_blocked_titles, score_media_units
from .tautulli import TautulliClient


SIZE_PREFIXES = ['', 'K', 'M', 'G', 'T', 'P']


def format_file_size(size_bytes):
    """Render a byte count with binary prefixes, e.g. 3.0 GB"""
    value = float(size_bytes)
    for prefix in SIZE_PREFIXES[:-1]:
        if abs(value) < 1024:
            break
        value /= 1024
    else:
        prefix = SIZE_PREFIXES[-1]
    return f"{value:.1f} {prefix}B"


def parse_size_string(size_str):
    """Parse size string like '12M', '3GB', '500MB' to bytes"""
    match = re.match(r'^(\d+(?:\.\d+)?)\s*([KMGT]?)B?$', size_str.strip().upper())
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")
    return int(float(match.group(1)) * 1024 ** SIZE_PREFIXES.index(match.group(2)))


def truncate_text(text, max_length):
    """Truncate text to max_length, adding ellipsis if needed"""
    if len(text) <= max_length:
        return text
    return text[:max_length - 1] + "…"


def format_responsive_table(table_data, headers):
    """Format table to fit terminal width"""
    terminal_width = shutil.get_terminal_size().columns

    min_widths = [len(header) for header in headers]
    for row in table_data:
        for i, cell in enumerate(row):
            min_widths[i] = max(min_widths[i], len(str(cell)))

    available_width = terminal_width - 10
    if sum(min_widths) <= available_width:
        return tabulate(table_data, headers=headers, tablefmt="grid")

    # Title is always the first column and absorbs the squeeze
    name_width = max(20, available_width - sum(min_widths[1:]))
    responsive_data = []
    for row in table_data:
        new_row = list(row)
        new_row[0] = truncate_text(str(row[0]), name_width)
        responsive_data.append(new_row)

    tablefmt = "simple" if available_width < 80 else "grid"
    return tabulate(responsive_data, headers=headers, tablefmt=tablefmt)


def format_ranking_table(scored_units):
    headers = ["Title", "Type", "Library", "Size", "Plays", "Coverage", "Age (y)", "Score"]
    table_data = []
    total_size = 0
    for item in scored_units:
        table_data.append([
            item.display_title,
            item.kind.title(),
            item.library_section_name,
            format_file_size(item.size_bytes),
            item.total_play_count,
            f"{item.metrics.coverage_ratio:.0%}",
            f"{item.metrics.age_years:.1f}",
            f"{item.score:.3f}",
        ])
        total_size += item.size_bytes

    if scored_units:
        average = sum(item.score for item in scored_units) / len(scored_units)
        table_data.append([f"Total ({len(scored_units)})", "", "", format_file_size(total_size),
                           sum(item.total_play_count for item in scored_units), "", "",
                           f"{average:.3f}"])

    return format_responsive_table(table_data, headers)


def select_results(scored_units, top=None, min_size_bytes=None, min_score=None):
    """Apply display filters; ranking order is preserved"""
    items = list(scored_units)
    if min_score is not None:
        items = [item for item in items if item.score >= min_score]
    if min_size_bytes:
        items = [item for item in items if item.size_bytes >= min_size_bytes]
    if top:
        items = items[:top]
    return items


def print_results(scored_units, args, min_size_bytes=None):
    items = select_results(scored_units, args.top, min_size_bytes, args.min_score)

    title_parts = []
    if args.min_score is not None:
        title_parts.append(f"Score >= {args.min_score}")
    if min_size_bytes:
        title_parts.append(f"Size >= {format_file_size(min_size_bytes)}")
    if args.top:
        title_parts.append(f"Top {args.top}")
    if title_parts:
        print(f"Deletion candidates ({', '.join(title_parts)})")
        print("=" * 60)

    if not items:
        print("No items to display.")
        return
    print(format_ranking_table(items))
    movies = sum(1 for item in items if item.kind == 'movie')
    print(f"\nTotal items shown: {len(items)} ({movies} movies, {len(items) - movies} seasons)")
    print(f"Reclaimable space: {format_file_size(sum(item.size_bytes for item in items))}")


def build_parser():
    parser = argparse.ArgumentParser(
        description="Rank Plex movies and TV seasons by how little they are watched for the space they use")
    parser.add_argument("command", nargs='?', choices=["sync", "preview"], default="sync",
                        help="'sync' ranks your libraries via Tautulli, 'preview' ranks sample data (default: sync)")
    parser.add_argument("--library", "-l", type=int, action="append", metavar="ID", dest="libraries",
                        help="Only scan the Tautulli library section ID (repeatable)")
    parser.add_argument("--top", "-t", type=int, metavar="N",
                        help="Show only the N highest scoring items")
    parser.add_argument("--min-size", "-m", type=str, metavar="SIZE",
                        help="Show only items with size >= SIZE (e.g., 12M, 3GB, 500MB)")
    parser.add_argument("--min-score", "-s", type=float, metavar="SCORE",
                        help="Show only items with score >= SCORE (e.g., 0.6)")
    parser.add_argument("--refresh", action="store_true",
                        help="Ask Tautulli to refresh its library media info cache")
    parser.add_argument("--clear-cache", action="store_true",
                        help="Clear the episode cache before syncing")
    parser.add_argument("--no-cache", action="store_true",
                        help="Bypass the episode cache entirely (slower but always fresh)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print per-show crawl progress and API requests")
    return parser


def run_sync(settings, args):
    if not settings.tautulli_configured:
        raise ConfigurationError("TAUTULLI_API_KEY is not set. Configure Tautulli before syncing.")

    client = TautulliClient(settings.tautulli_url, settings.tautulli_api_key,
                            log=print if args.verbose else None)
    client.get_server_info()

    if args.no_cache:
        print("Bypassing cache - crawling all episodes")
        cache = EpisodeCache(':memory:')
    else:
        cache = EpisodeCache(settings.cache_path)
        if args.clear_cache:
            print(f"Clearing cache: {settings.cache_path}")
            cache.clear()

    with cache:
        result = sync_media_units(client, cache, library_paths=settings.library_paths,
                                  library_ids=args.libraries, refresh=args.refresh,
                                  log=print, verbose=args.verbose)

    print(f"Skipped {result.skipped_due_to_path} file(s) outside library paths, "
          f"{result.skipped_missing_file} missing or unreadable file(s)")
    if result.failed_shows or result.failed_libraries:
        print(f"Failed to crawl {result.failed_shows} show(s) and {result.failed_libraries} library(ies)")
    return result.units


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    min_size_bytes = None
    if args.min_size:
        try:
            min_size_bytes = parse_size_string(args.min_size)
        except ValueError as e:
            print(f"Error: {e}")
            return 1

    try:
        settings = load_settings()
        if args.command == "preview":
            units = generate_sample_units()
        else:
            units = run_sync(settings, args)
    except VacuumError as e:
        print(f"Error: {e}")
        return 1

    units = filter_blocked_titles(units, settings.blocked_titles)
    print(f"Processing {len(units)} items")
    scored = score_media_units(units, weights=settings.weights, tunables=settings.tunables)
    print_results(scored, args, min_size_bytes)
    return 0


if __name__ == "__main__":
    sys.exit(main())
