import os
from pathlib import Path

from .aggregation import aggregate_media_units
from .episodes import EpisodeFetcher, FetchContext
from .errors import ConfigurationError, TautulliError
from .models import MediaSource


class SyncResult:
    def __init__(self, units, sources, skipped_due_to_path=0, skipped_missing_file=0,
                 failed_shows=0, failed_libraries=0):
        self.units = units
        self.sources = sources
        self.skipped_due_to_path = skipped_due_to_path
        self.skipped_missing_file = skipped_missing_file
        self.failed_shows = failed_shows
        self.failed_libraries = failed_libraries


def is_path_allowed(file_path, allowed_roots):
    """True if file_path sits under one of the allowed roots (or no roots are set)"""
    if not allowed_roots:
        return True
    resolved = os.path.abspath(file_path)
    for root in allowed_roots:
        resolved_root = os.path.abspath(root)
        if resolved == resolved_root or resolved.startswith(resolved_root.rstrip(os.sep) + os.sep):
            return True
    return False


def safe_stat(file_path):
    """(size, created) for a regular file, or None if it is missing or unreadable"""
    try:
        stats = Path(file_path).stat()
    except (OSError, ValueError):
        return None
    if not Path(file_path).is_file():
        return None
    created = getattr(stats, 'st_birthtime', None) or stats.st_mtime
    return stats.st_size, created


def media_item_to_source(item, library_name, file_path, size_bytes, created_at):
    """Build a MediaSource from a normalized Tautulli movie/episode item"""
    is_movie = item.media_type == 'movie'
    return MediaSource(
        identifier=item.rating_key,
        title=item.title,
        path=file_path,
        size_bytes=size_bytes,
        added_at=item.added_at or created_at,
        play_count=item.play_count or 0,
        last_played_at=item.last_played,
        media_kind='movie' if is_movie else 'episode',
        library_section_id=item.section_id,
        library_section_name=library_name,
        episode_index=None if is_movie else item.media_index,
        season_title=None if is_movie else item.parent_title,
        show_title=None if is_movie else item.grandparent_title,
        season_key=None if is_movie else item.parent_rating_key,
        show_key=None if is_movie else item.grandparent_rating_key,
    )


class LibrarySync:
    """Walks Tautulli libraries and turns files on disk into MediaSources"""

    def __init__(self, client, cache, library_paths=None, log=None, verbose=False):
        if client is None:
            raise ConfigurationError("Tautulli is not configured. Set TAUTULLI_URL and TAUTULLI_API_KEY.")
        self.client = client
        self.library_paths = list(library_paths or [])
        self.log = log
        self.fetcher = EpisodeFetcher(client, cache, log=log, verbose=verbose)

    def _info(self, message):
        if self.log:
            self.log(message)

    def run(self, library_ids=None, refresh=False):
        selected = set(library_ids) if library_ids else None
        libraries = self.client.list_libraries()
        self._info(f"Fetched {len(libraries)} libraries from Tautulli API")

        result = SyncResult([], [])
        for library in libraries:
            if selected is not None and library.section_id not in selected:
                continue
            if library.section_type not in ('movie', 'show'):
                continue

            self._info(f"Fetching media info for library {library.section_name} ({library.section_id})")
            try:
                items = self.client.list_library_items(library.section_id, refresh=refresh,
                                                       section_type=library.section_type)
            except TautulliError as e:
                self._info(f"Skipping library {library.section_name}: {e}")
                result.failed_libraries += 1
                continue

            if library.section_type == 'show':
                items = self._expand_shows(items, library, result)

            for item in items:
                self._add_item(item, library, result)

        result.units = aggregate_media_units(result.sources)
        self._info(f"Collected {len(result.sources)} files into {len(result.units)} units")
        return result

    def _expand_shows(self, items, library, result):
        """Replace show rows with their crawled episodes.

        Episode rows listed by the library itself are kept, but a crawled
        episode with the same rating key takes their place since it carries
        the reconciled play history.
        """
        shows = [item for item in items if item.media_type == 'show']
        episodes_by_key = {item.rating_key: item for item in items if item.media_type == 'episode'}

        for index, show in enumerate(shows, start=1):
            context = FetchContext(library.section_name, index, len(shows))
            try:
                episodes = self.fetcher.fetch_episodes_for_show(show, context)
            except TautulliError as e:
                self._info(f"[TV] Skipping \"{show.title}\": {e}")
                result.failed_shows += 1
                continue
            for episode in episodes:
                listed = episodes_by_key.get(episode.rating_key)
                if listed is not None and not episode.file:
                    episode.file = listed.file
                episodes_by_key[episode.rating_key] = episode
        return list(episodes_by_key.values())

    def _add_item(self, item, library, result):
        if item.media_type not in ('movie', 'episode'):
            return

        if not item.file:
            result.skipped_missing_file += 1
            return

        if not is_path_allowed(item.file, self.library_paths):
            result.skipped_due_to_path += 1
            return

        stat = safe_stat(item.file)
        if stat is None:
            result.skipped_missing_file += 1
            return

        size_bytes, created_at = stat
        result.sources.append(media_item_to_source(item, library.section_name, item.file,
                                                   size_bytes, created_at))


def sync_media_units(client, cache, library_paths=None, library_ids=None, refresh=False,
                     log=None, verbose=False):
    """Run one library sync and return a SyncResult"""
    return LibrarySync(client, cache, library_paths, log=log, verbose=verbose).run(
        library_ids=library_ids, refresh=refresh)
