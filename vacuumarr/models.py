import time

GIB = 1024 ** 3


class MediaSource:
    """One file on disk: a movie or a single TV episode"""

    def __init__(self, identifier, title, path, size_bytes, added_at, play_count=0,
                 last_played_at=None, media_kind='movie', library_section_id=0,
                 library_section_name='', episode_index=None, season_title=None,
                 show_title=None, season_key=None, show_key=None):
        now = time.time()
        self.identifier = str(identifier)
        self.title = title
        self.path = path
        self.size_bytes = max(0, int(size_bytes or 0))
        self.added_at = min(float(added_at), now)
        self.last_played_at = float(last_played_at) if last_played_at else None
        self.play_count = max(0, int(play_count or 0))
        self.media_kind = media_kind  # 'movie' or 'episode'
        self.library_section_id = library_section_id
        self.library_section_name = library_section_name
        self.episode_index = episode_index
        self.season_title = season_title
        self.show_title = show_title
        self.season_key = season_key
        self.show_key = show_key

    def __repr__(self):
        return f"MediaSource({self.identifier!r}, {self.title!r}, {self.media_kind})"


class MediaUnit:
    """A rankable unit: one movie or one TV season"""

    def __init__(self, identifier, kind, title, parent_title=None,
                 library_section_id=0, library_section_name=''):
        self.identifier = identifier
        self.kind = kind  # 'movie' or 'season'
        self.title = title
        self.parent_title = parent_title
        self.library_section_id = library_section_id
        self.library_section_name = library_section_name
        self.size_bytes = 0
        self.added_at = None
        self.last_played_at = None
        self.total_play_count = 0
        self.max_item_play_count = 0
        self.items_with_plays = 0
        self.item_count = 0
        self.paths = set()
        self.source_items = []

    @property
    def display_title(self):
        if self.kind == 'season' and self.parent_title:
            return f"{self.parent_title} - {self.title}"
        return self.title

    def __repr__(self):
        return f"MediaUnit({self.identifier!r}, {self.kind}, items={self.item_count})"


class ScoringMetrics:
    """Per-unit metrics, computed once by the scoring engine"""

    __slots__ = ('size_score', 'age_score', 'watch_scarcity_score',
                 'plays_per_year', 'plays_per_gb', 'coverage_ratio', 'age_years')

    def __init__(self, size_score, age_score, watch_scarcity_score,
                 plays_per_year, plays_per_gb, coverage_ratio, age_years):
        object.__setattr__(self, 'size_score', size_score)
        object.__setattr__(self, 'age_score', age_score)
        object.__setattr__(self, 'watch_scarcity_score', watch_scarcity_score)
        object.__setattr__(self, 'plays_per_year', plays_per_year)
        object.__setattr__(self, 'plays_per_gb', plays_per_gb)
        object.__setattr__(self, 'coverage_ratio', coverage_ratio)
        object.__setattr__(self, 'age_years', age_years)

    def __setattr__(self, name, value):
        raise AttributeError("ScoringMetrics is read-only")

    def as_dict(self):
        return {name: getattr(self, name) for name in self.__slots__}


class ScoredMediaUnit:
    """A unit annotated with its metrics and composite score"""

    def __init__(self, unit, metrics, score):
        self.unit = unit
        self.metrics = metrics
        self.score = score

    def __getattr__(self, name):
        # Delegate unit fields (title, size_bytes, ...) to the wrapped unit
        if name == 'unit':
            raise AttributeError(name)
        return getattr(self.unit, name)

    def __repr__(self):
        return f"ScoredMediaUnit({self.unit.identifier!r}, score={self.score:.3f})"


class HistoryStat:
    """Play count and last played timestamp for one item"""

    def __init__(self, play_count=0, last_played=None):
        self.play_count = play_count
        self.last_played = last_played

    def __eq__(self, other):
        if not isinstance(other, HistoryStat):
            return NotImplemented
        return (self.play_count, self.last_played) == (other.play_count, other.last_played)

    def __repr__(self):
        return f"HistoryStat(play_count={self.play_count}, last_played={self.last_played})"
