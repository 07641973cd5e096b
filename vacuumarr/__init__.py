"""Find the movies and TV seasons that take up the most space for the least watching."""

from .aggregation import aggregate_media_units
from .cache import EpisodeCache
from .episodes import EpisodeFetcher
from .history import fetch_show_history, reconcile_history
from .library_sync import LibrarySync, sync_media_units
from .scoring import ScoringTunables, WeightConfig, score_media_units
from .tautulli import TautulliClient

__version__ = "0.1.0"
