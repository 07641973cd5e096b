from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from vacuumarr.cache import CACHE_TTL_MS, EpisodeCache, show_update_token
from vacuumarr.tautulli import MediaItem

EPISODES = [
    {"rating_key": "e1", "media_type": "episode", "title": "Pilot", "file": "/tv/a.mkv", "play_count": 2},
    {"rating_key": "e2", "media_type": "episode", "title": "Second", "file": None, "play_count": 0},
]


class Clock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.value = start

    def __call__(self) -> int:
        return self.value


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def cache(tmp_path: Path, clock: Clock) -> EpisodeCache:
    with EpisodeCache(tmp_path / "cache" / "episodes.sqlite", clock=clock) as c:
        yield c


def test_round_trip(cache: EpisodeCache) -> None:
    cache.save("show1", 123, EPISODES)
    assert cache.load("show1", 123) == EPISODES


def test_missing_key_is_a_miss(cache: EpisodeCache) -> None:
    assert cache.load("nope", 1) is None


def test_token_change_invalidates_and_purges(cache: EpisodeCache) -> None:
    cache.save("show1", 100, EPISODES)
    assert cache.load("show1", 200) is None
    assert cache.load("show1", 100) is None
    assert len(cache) == 0


def test_entry_expires_after_ttl(cache: EpisodeCache, clock: Clock) -> None:
    cache.save("show1", 1, EPISODES)
    clock.value += CACHE_TTL_MS
    assert cache.load("show1", 1) == EPISODES

    clock.value += 1
    assert cache.load("show1", 1) is None
    assert len(cache) == 0


@pytest.mark.parametrize("payload", ["not json", '{"rating_key": "e1"}', "[1, 2]"])
def test_corrupt_payload_is_deleted(cache: EpisodeCache, payload: str) -> None:
    cache.save("show1", 5, EPISODES)
    cache.conn.execute("UPDATE episode_cache SET payload = ? WHERE show_key = ?", (payload, "show1"))
    cache.conn.commit()

    assert cache.load("show1", 5) is None
    assert len(cache) == 0


def test_save_overwrites_existing_entry(cache: EpisodeCache) -> None:
    cache.save("show1", 1, EPISODES)
    cache.save("show1", 2, EPISODES[:1])
    assert len(cache) == 1
    assert cache.load("show1", 2) == EPISODES[:1]


def test_clear_removes_everything(cache: EpisodeCache) -> None:
    cache.save("a", 1, EPISODES)
    cache.save("b", 1, EPISODES)
    cache.clear()
    assert len(cache) == 0
    assert cache.load("a", 1) is None


def test_entries_persist_across_instances(tmp_path: Path, clock: Clock) -> None:
    path = tmp_path / "episodes.sqlite"
    with EpisodeCache(path, clock=clock) as first:
        first.save("show1", 9, EPISODES)
    with EpisodeCache(path, clock=clock) as second:
        assert second.load("show1", 9) == EPISODES


def test_in_memory_cache() -> None:
    with EpisodeCache(":memory:") as memory:
        memory.save("s", 1, EPISODES)
        assert memory.load("s", 1) == EPISODES


def test_show_update_token_prefers_updated_then_added() -> None:
    assert show_update_token(MediaItem("s", "show", updated_at=1_700_000_000.5, added_at=1)) == 1_700_000_000_500
    assert show_update_token(MediaItem("s", "show", added_at=1_600_000_000)) == 1_600_000_000_000
    assert show_update_token(MediaItem("s", "show"), now=42_000) == 42_000


def test_table_with_other_columns_is_replaced(tmp_path: Path, clock: Clock) -> None:
    path = tmp_path / "episodes.sqlite"
    conn = sqlite3.connect(str(path))
    conn.execute("CREATE TABLE episode_cache (show_key TEXT PRIMARY KEY, episodes TEXT)")
    conn.execute("INSERT INTO episode_cache VALUES ('show1', '[]')")
    conn.commit()
    conn.close()

    with EpisodeCache(path, clock=clock) as cache:
        assert cache.load("show1", 1) is None
        cache.save("show1", 1, EPISODES)
        assert cache.load("show1", 1) == EPISODES


def test_schema_changed_under_open_cache_is_a_miss(cache: EpisodeCache) -> None:
    cache.save("show1", 1, EPISODES)
    cache.conn.execute("DROP TABLE episode_cache")
    cache.conn.execute("CREATE TABLE episode_cache (show_key TEXT PRIMARY KEY, episodes TEXT)")
    cache.conn.commit()

    assert cache.load("show1", 1) is None
    cache.save("show1", 1, EPISODES)
    assert cache.load("show1", 1) == EPISODES


def test_file_that_is_not_a_database_is_replaced(tmp_path: Path, clock: Clock) -> None:
    path = tmp_path / "episodes.sqlite"
    path.write_bytes(b"this is not sqlite at all" * 100)

    with EpisodeCache(path, clock=clock) as cache:
        assert cache.load("show1", 1) is None
        cache.save("show1", 1, EPISODES)
        assert cache.load("show1", 1) == EPISODES


def test_refresh_keeps_token_and_capture_time(cache: EpisodeCache, clock: Clock) -> None:
    cache.save("show1", 7, EPISODES)
    clock.value += CACHE_TTL_MS
    cache.refresh("show1", EPISODES[:1])

    assert cache.load("show1", 7) == EPISODES[:1]
    clock.value += 1
    assert cache.load("show1", 7) is None
