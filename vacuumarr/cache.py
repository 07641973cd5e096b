import json
import math
import sqlite3
import time
from pathlib import Path

from platformdirs import user_cache_dir

DEFAULT_CACHE_PATH = Path(user_cache_dir("vacuumarr")) / "episodes.sqlite"
CACHE_TTL_MS = 7 * 24 * 60 * 60 * 1000  # 7 days in milliseconds
CACHE_COLUMNS = ('show_key', 'show_updated_at', 'fetched_at', 'payload')


def now_ms():
    return int(time.time() * 1000)


def show_update_token(show, now=None):
    """Freshness token for a show: its updated_at (or added_at) in whole milliseconds"""
    current_ms = now_ms() if now is None else now
    seconds = show.updated_at or show.added_at or current_ms / 1000
    try:
        token = float(seconds) * 1000
    except (TypeError, ValueError):
        return current_ms
    if not math.isfinite(token):
        return current_ms
    return int(token)


class EpisodeCache:
    """Per-show episode lists persisted in SQLite.

    An entry is only returned while the stored token matches the caller's
    token and it is younger than the TTL. Anything else found on lookup
    (stale token, expired, unreadable) is deleted and reported as a miss.
    """

    def __init__(self, db_path=DEFAULT_CACHE_PATH, ttl_ms=CACHE_TTL_MS, clock=now_ms):
        self.db_path = str(db_path)
        self.ttl_ms = ttl_ms
        self.clock = clock
        if self.db_path != ':memory:':
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = self._open()
        except sqlite3.DatabaseError:
            if self.db_path == ':memory:':
                raise
            print(f"Cache corrupted, starting fresh: {self.db_path}")
            Path(self.db_path).unlink(missing_ok=True)
            self.conn = self._open()

    def _open(self):
        conn = sqlite3.connect(self.db_path)
        try:
            self._ensure_schema(conn)
        except sqlite3.DatabaseError:
            conn.close()
            raise
        return conn

    @staticmethod
    def _ensure_schema(conn):
        """Create the table, replacing one left behind with other columns"""
        columns = {row[1] for row in conn.execute('PRAGMA table_info(episode_cache)')}
        if columns and columns != set(CACHE_COLUMNS):
            conn.execute('DROP TABLE episode_cache')
        conn.execute('''
            CREATE TABLE IF NOT EXISTS episode_cache (
                show_key TEXT PRIMARY KEY,
                show_updated_at INTEGER NOT NULL,
                fetched_at INTEGER NOT NULL,
                payload TEXT NOT NULL
            )
        ''')
        conn.commit()

    def load(self, show_key, token):
        try:
            row = self.conn.execute(
                'SELECT show_updated_at, fetched_at, payload FROM episode_cache WHERE show_key = ?',
                (str(show_key),)
            ).fetchone()
        except sqlite3.DatabaseError:
            self._ensure_schema(self.conn)
            return None
        if row is None:
            return None

        stored_token, fetched_at, payload = row
        if stored_token != int(token):
            self.delete(show_key)
            return None

        if not isinstance(fetched_at, int) or self.clock() - fetched_at > self.ttl_ms:
            self.delete(show_key)
            return None

        try:
            episodes = json.loads(payload)
        except (TypeError, ValueError):
            self.delete(show_key)
            return None

        if not isinstance(episodes, list) or not all(isinstance(e, dict) for e in episodes):
            self.delete(show_key)
            return None

        return episodes

    def save(self, show_key, token, episodes):
        payload = json.dumps(list(episodes))
        self.conn.execute('''
            INSERT INTO episode_cache (show_key, show_updated_at, fetched_at, payload)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(show_key) DO UPDATE SET
                show_updated_at = excluded.show_updated_at,
                fetched_at = excluded.fetched_at,
                payload = excluded.payload
        ''', (str(show_key), int(token or 0), self.clock(), payload))
        self.conn.commit()

    def refresh(self, show_key, episodes):
        """Replace a stored episode list, keeping its token and capture time"""
        self.conn.execute('UPDATE episode_cache SET payload = ? WHERE show_key = ?',
                          (json.dumps(list(episodes)), str(show_key)))
        self.conn.commit()

    def delete(self, show_key):
        self.conn.execute('DELETE FROM episode_cache WHERE show_key = ?', (str(show_key),))
        self.conn.commit()

    def clear(self):
        self.conn.execute('DELETE FROM episode_cache')
        self.conn.commit()

    def __len__(self):
        return self.conn.execute('SELECT COUNT(*) FROM episode_cache').fetchone()[0]

    def close(self):
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
