import math
import time

from .models import GIB, ScoredMediaUnit, ScoringMetrics

YEAR_IN_SECONDS = 365.25 * 24 * 60 * 60
MIN_AGE_YEARS = 0.25


class WeightConfig:
    """How much size, age and watch scarcity contribute to the final score"""

    def __init__(self, size=0.2, age=0.4, watch=0.4):
        self.size = size
        self.age = age
        self.watch = watch

    def normalized(self):
        total = self.size + self.age + self.watch
        if total <= 0:
            return WeightConfig()
        return WeightConfig(self.size / total, self.age / total, self.watch / total)

    def __repr__(self):
        return f"WeightConfig(size={self.size}, age={self.age}, watch={self.watch})"


class ScoringTunables:
    def __init__(self, target_plays_per_year=0.5, saturation_age_years=5,
                 target_plays_per_gb=0.02):
        self.target_plays_per_year = target_plays_per_year
        self.saturation_age_years = saturation_age_years
        self.target_plays_per_gb = target_plays_per_gb


DEFAULT_WEIGHTS = WeightConfig()
DEFAULT_TUNABLES = ScoringTunables()


def clamp(value, low=0.0, high=1.0):
    return min(max(value, low), high)


def normalize_size(size_bytes, max_size):
    """Logarithmic size score relative to the largest unit in the set"""
    adjusted_max = math.log10(max_size + 1)
    if adjusted_max == 0:
        return 0.0
    return clamp(math.log10(size_bytes + 1) / adjusted_max)


def plays_per_year(play_count, age_years):
    return play_count / max(age_years, MIN_AGE_YEARS)


def plays_per_gb(play_count, size_bytes):
    if size_bytes <= 0:
        return 0.0
    return play_count / (size_bytes / GIB)


def watch_scarcity(plays_year, plays_gb, coverage_ratio, age_score, tunables):
    """Composite scarcity, damped for units that have not been around long"""
    plays_year_scarcity = clamp(1 - plays_year / tunables.target_plays_per_year)
    plays_gb_scarcity = clamp(1 - plays_gb / tunables.target_plays_per_gb)
    coverage_scarcity = clamp(1 - coverage_ratio)

    composite = plays_year_scarcity * 0.5 + plays_gb_scarcity * 0.3 + coverage_scarcity * 0.2
    return clamp(composite * (0.5 + 0.5 * age_score))


def compute_metrics(unit, now, max_size, tunables=DEFAULT_TUNABLES):
    age_years = max((now - unit.added_at) / YEAR_IN_SECONDS, 0)
    age_score = clamp(age_years / tunables.saturation_age_years)
    size_score = normalize_size(unit.size_bytes, max_size)

    plays_year = plays_per_year(unit.total_play_count, age_years)
    plays_gb = plays_per_gb(unit.total_play_count, unit.size_bytes)
    coverage_ratio = unit.items_with_plays / unit.item_count if unit.item_count else 0.0

    return ScoringMetrics(
        size_score=size_score,
        age_score=age_score,
        watch_scarcity_score=watch_scarcity(plays_year, plays_gb, coverage_ratio,
                                            age_score, tunables),
        plays_per_year=plays_year,
        plays_per_gb=plays_gb,
        coverage_ratio=coverage_ratio,
        age_years=age_years,
    )


def score_media_units(units, weights=None, now=None, tunables=None):
    """Score and rank units, highest score first; ties keep their input order"""
    weights = weights or DEFAULT_WEIGHTS
    tunables = tunables or DEFAULT_TUNABLES
    now = time.time() if now is None else now

    max_size = max([unit.size_bytes for unit in units] + [1])

    scored = []
    for unit in units:
        metrics = compute_metrics(unit, now, max_size, tunables)
        score = (metrics.size_score * weights.size
                 + metrics.age_score * weights.age
                 + metrics.watch_scarcity_score * weights.watch)
        scored.append(ScoredMediaUnit(unit, metrics, score))

    return sorted(scored, key=lambda item: item.score, reverse=True)


def filter_blocked_titles(units, blocked_titles):
    """Drop units whose title or show title is on the blocklist (case-insensitive)"""
    blocked = {title.strip().lower() for title in blocked_titles if title and title.strip()}
    if not blocked:
        return list(units)
    return [unit for unit in units
            if (unit.title or '').lower() not in blocked
            and (unit.parent_title or '').lower() not in blocked]
