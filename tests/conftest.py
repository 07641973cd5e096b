# vacuumarr test fixtures
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from vacuumarr.errors import TautulliError  # noqa: E402
from vacuumarr.tautulli import HistoryPage, MediaItem  # noqa: E402

GIB = 1024 ** 3
YEAR = 365.25 * 24 * 60 * 60
NOW = 1_760_000_000.0


class FakeTautulli:
    """In-memory stand-in for TautulliClient that records every call."""

    def __init__(
        self,
        libraries: list | None = None,
        library_items: dict | None = None,
        children: dict | None = None,
        file_paths: dict | None = None,
        history: dict | None = None,
        history_totals: dict | None = None,
        failing: set | None = None,
    ) -> None:
        self.libraries = libraries or []
        self.library_items = library_items or {}
        self.children = children or {}
        self.file_paths = file_paths or {}
        self.history = history or {}
        self.history_totals = history_totals or {}
        self.failing = failing or set()
        self.calls: list[tuple] = []

    def _maybe_fail(self, *key: Any) -> None:
        if key in self.failing:
            raise TautulliError(f"simulated failure for {key}")

    def list_libraries(self) -> list:
        self.calls.append(("libraries",))
        return list(self.libraries)

    def list_library_items(self, section_id, refresh=False, section_type=None) -> list:
        self.calls.append(("items", section_id))
        self._maybe_fail("items", section_id)
        return list(self.library_items.get(section_id, []))

    def list_children(self, rating_key, media_type) -> list:
        self.calls.append(("children", rating_key, media_type))
        self._maybe_fail("children", rating_key)
        return list(self.children.get(rating_key, []))

    def resolve_file_path(self, rating_key):
        self.calls.append(("file", rating_key))
        self._maybe_fail("file", rating_key)
        return self.file_paths.get(rating_key)

    def get_history_page(self, show_key, start=0, length=500) -> HistoryPage:
        self.calls.append(("history", show_key, start))
        pages = self.history.get(show_key, [])
        total = self.history_totals.get(show_key)
        offset = 0
        for index, rows in enumerate(pages):
            if offset == start:
                self._maybe_fail("history", show_key, index)
                return HistoryPage(list(rows), total)
            offset += len(rows)
        return HistoryPage([], total)

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


def make_show(rating_key: str = "show1", title: str = "Show", updated_at: float | None = 1_700_000_000,
              section_id: int = 2) -> MediaItem:
    return MediaItem(rating_key, "show", title, updated_at=updated_at, added_at=1_600_000_000,
                     section_id=section_id, section_name="TV Shows")


def make_season(rating_key: str, show_key: str = "show1", index: int = 1) -> MediaItem:
    return MediaItem(rating_key, "season", f"Season {index}", parent_rating_key=show_key,
                     media_index=index, section_id=2, section_name="TV Shows")


def make_episode(rating_key: str, season_key: str, show_key: str = "show1", file: str | None = None,
                 play_count: int | None = 0, added_at: float = 1_650_000_000, index: int = 1) -> MediaItem:
    return MediaItem(rating_key, "episode", f"Episode {index}", parent_rating_key=season_key,
                     grandparent_rating_key=show_key, file=file, added_at=added_at,
                     play_count=play_count, media_index=index, section_id=2, section_name="TV Shows")


@pytest.fixture()
def fake_tautulli() -> FakeTautulli:
    return FakeTautulli()


@pytest.fixture()
def clean_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate config lookup from the host environment and user config dir."""
    import vacuumarr.config as config

    for key in ("TAUTULLI_URL", "TAUTULLI_API_KEY", "VACUUMARR_LIBRARY_PATHS",
                "VACUUMARR_BLOCKED_TITLES", "VACUUMARR_WEIGHT_SIZE", "VACUUMARR_WEIGHT_AGE",
                "VACUUMARR_WEIGHT_WATCH", "VACUUMARR_TARGET_PLAYS_PER_YEAR",
                "VACUUMARR_SATURATION_AGE", "VACUUMARR_TARGET_PLAYS_PER_GB", "VACUUMARR_CACHE_PATH"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    conf = tmp_path / "user-config" / "conf"
    monkeypatch.setattr(config, "config_file_path", lambda: conf)
    return conf
