from .cache import show_update_token
from .errors import TautulliError
from .history import fetch_show_history
from .tautulli import MediaItem


class FetchContext:
    def __init__(self, library_name, show_index=1, total_shows=1):
        self.library_name = library_name
        self.show_index = show_index
        self.total_shows = total_shows

    @property
    def position(self):
        return f"{self.show_index}/{self.total_shows}"


def apply_history(records, stats):
    """Overlay reconciled history onto cached episode records, in place"""
    for record in records:
        stat = stats.get(record.get('rating_key'))
        if stat is None:
            if record.get('play_count') is None:
                record['play_count'] = 0
            continue
        record['play_count'] = stat.play_count
        last_played = record.get('last_played')
        if stat.last_played is not None and (last_played is None or stat.last_played > last_played):
            record['last_played'] = stat.last_played
    return records


class EpisodeFetcher:
    """Crawls a show's seasons and episodes, backed by an EpisodeCache.

    ``file_paths`` memoizes get_metadata file lookups for the lifetime of the
    fetcher, which is one sync run.
    """

    def __init__(self, client, cache, log=None, verbose=False):
        self.client = client
        self.cache = cache
        self.log = log
        self.verbose = verbose
        self.file_paths = {}
        self.stats = {'hits': 0, 'misses': 0}

    def _debug(self, message):
        if self.log and self.verbose:
            self.log(message)

    def fetch_episodes_for_show(self, show, context):
        token = show_update_token(show)
        cached = self.cache.load(show.rating_key, token)

        if cached is not None:
            self.stats['hits'] += 1
            self._debug(f"[TV] Cache hit for \"{show.title}\" ({context.position})")
            apply_history(cached, self._history(show))
            self.cache.refresh(show.rating_key, cached)
            return [MediaItem.from_dict(record) for record in cached]

        self.stats['misses'] += 1
        self._debug(f"[TV] Fetching episodes for \"{show.title}\" ({context.position})")

        seasons = [s for s in self.client.list_children(show.rating_key, 'show')
                   if s.media_type == 'season' and s.rating_key]
        self._debug(f"[TV] \"{show.title}\" has {len(seasons)} season(s); crawling episodes")

        records = []
        for number, season in enumerate(seasons, start=1):
            label = season.title or f"Season {season.media_index or number}"
            self._debug(f"[TV]   {label}: fetching episode metadata ({number}/{len(seasons)})")
            for episode in self.client.list_children(season.rating_key, 'season'):
                if episode.media_type != 'episode':
                    continue
                records.append(self._episode_record(episode, season, show, context))

        apply_history(records, self._history(show))
        self.cache.save(show.rating_key, token, records)
        self._debug(f"[TV] Completed \"{show.title}\": cached {len(records)} episode(s)")
        return [MediaItem.from_dict(record) for record in records]

    def _episode_record(self, episode, season, show, context):
        record = episode.to_dict()
        record['file'] = episode.file or self.resolve_file_path(episode.rating_key)
        record['parent_rating_key'] = episode.parent_rating_key or season.rating_key
        record['parent_title'] = episode.parent_title or season.title
        record['grandparent_rating_key'] = episode.grandparent_rating_key or show.rating_key
        record['grandparent_title'] = episode.grandparent_title or show.title
        record['season_index'] = episode.season_index or season.media_index
        record['section_id'] = episode.section_id or show.section_id
        if not episode.section_name or episode.section_name == 'Unknown':
            record['section_name'] = show.section_name or context.library_name
        return record

    def resolve_file_path(self, rating_key):
        if rating_key in self.file_paths:
            return self.file_paths[rating_key]
        try:
            path = self.client.resolve_file_path(rating_key)
        except TautulliError as e:
            if self.log:
                self.log(f"[TV] File lookup failed for episode {rating_key}: {e}")
            path = None
        self.file_paths[rating_key] = path
        return path

    def _history(self, show):
        return fetch_show_history(self.client, show.rating_key, log=self.log)
