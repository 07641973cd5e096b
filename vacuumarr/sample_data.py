import time

from .aggregation import aggregate_media_units
from .models import GIB, MediaSource

YEAR = 365.25 * 24 * 60 * 60

# (id, title, size GiB, years since added, plays)
SAMPLE_MOVIES = [
    ("m1", "Forgotten Documentary", 45, 7, 0),
    ("m2", "Cult Classic", 68, 9, 1),
    ("m3", "Recent Blockbuster", 85, 0.3, 4),
    ("m4", "Family Favourite", 12, 6, 25),
    ("m5", "Unwatched Sequel", 30, 2, 0),
]

# (show, season, episodes, GiB per episode, years since added, plays per episode)
SAMPLE_SEASONS = [
    ("Long Running Sitcom", 3, 22, 0.8, 8, [0] * 20 + [1, 2]),
    ("Prestige Drama", 1, 8, 4.5, 1.5, [2, 2, 1, 1, 1, 1, 1, 1]),
]


def generate_sample_units(now=None):
    """Offline units for previewing the ranking without Tautulli"""
    now = time.time() if now is None else now
    sources = []

    for identifier, title, size_gb, years, plays in SAMPLE_MOVIES:
        sources.append(MediaSource(
            identifier=identifier,
            title=title,
            path=f"/media/movies/{title}/{title}.mkv",
            size_bytes=int(size_gb * GIB),
            added_at=now - years * YEAR,
            play_count=plays,
            media_kind='movie',
            library_section_id=1,
            library_section_name='Movies',
        ))

    for show_index, (show, season, episodes, size_gb, years, plays) in enumerate(SAMPLE_SEASONS, start=1):
        season_key = f"s{show_index}-{season}"
        for episode in range(1, episodes + 1):
            sources.append(MediaSource(
                identifier=f"{season_key}-e{episode}",
                title=f"Episode {episode}",
                path=f"/media/tv/{show}/Season {season:02d}/{show} - S{season:02d}E{episode:02d}.mkv",
                size_bytes=int(size_gb * GIB),
                added_at=now - years * YEAR,
                play_count=plays[episode - 1],
                media_kind='episode',
                library_section_id=2,
                library_section_name='TV Shows',
                episode_index=episode,
                season_title=f"Season {season}",
                show_title=show,
                season_key=season_key,
                show_key=f"s{show_index}",
            ))

    return aggregate_media_units(sources)
