import os
from pathlib import Path

from platformdirs import user_config_dir

from .cache import DEFAULT_CACHE_PATH
from .errors import ConfigurationError
from .scoring import ScoringTunables, WeightConfig

APP_NAME = "vacuumarr"


def parse_key_value_lines(lines):
    """KEY=VALUE pairs from .env style lines; comments, blanks and junk are skipped"""
    values = {}
    for line in lines:
        key, sep, value = line.strip().partition('=')
        if not sep or key.startswith('#'):
            continue
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def load_key_value_file(file_path):
    try:
        return parse_key_value_lines(Path(file_path).read_text().splitlines())
    except OSError:
        return {}


def config_file_path():
    return Path(user_config_dir(APP_NAME)) / "conf"


def config_sources():
    """Lookup order after the environment: ./.env, then the user config file"""
    yield load_key_value_file(Path.cwd() / ".env")
    yield load_key_value_file(config_file_path())


def get_config_value(key, default=None):
    """Get configuration value with priority: env vars > .env file > config file > default"""
    value = os.getenv(key)
    if value is not None:
        return value
    for values in config_sources():
        if key in values:
            return values[key]
    return default


def get_float(key, default):
    value = get_config_value(key)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got '{value}'")


def get_list(key):
    value = get_config_value(key) or ''
    return [part.strip() for part in value.split(',') if part.strip()]


class Settings:
    def __init__(self, tautulli_url=None, tautulli_api_key=None, library_paths=None,
                 blocked_titles=None, weights=None, tunables=None, cache_path=DEFAULT_CACHE_PATH):
        self.tautulli_url = tautulli_url
        self.tautulli_api_key = tautulli_api_key
        self.library_paths = library_paths or []
        self.blocked_titles = blocked_titles or []
        self.weights = weights or WeightConfig()
        self.tunables = tunables or ScoringTunables()
        self.cache_path = cache_path

    @property
    def tautulli_configured(self):
        return bool(self.tautulli_url and self.tautulli_api_key)


def load_settings():
    """Read all vacuumarr settings from env, .env and the user config file"""
    defaults = WeightConfig()
    tunable_defaults = ScoringTunables()

    weights = WeightConfig(
        size=get_float("VACUUMARR_WEIGHT_SIZE", defaults.size),
        age=get_float("VACUUMARR_WEIGHT_AGE", defaults.age),
        watch=get_float("VACUUMARR_WEIGHT_WATCH", defaults.watch),
    )
    tunables = ScoringTunables(
        target_plays_per_year=get_float("VACUUMARR_TARGET_PLAYS_PER_YEAR",
                                        tunable_defaults.target_plays_per_year),
        saturation_age_years=get_float("VACUUMARR_SATURATION_AGE",
                                       tunable_defaults.saturation_age_years),
        target_plays_per_gb=get_float("VACUUMARR_TARGET_PLAYS_PER_GB",
                                      tunable_defaults.target_plays_per_gb),
    )
    for name in ('target_plays_per_year', 'saturation_age_years', 'target_plays_per_gb'):
        if getattr(tunables, name) <= 0:
            raise ConfigurationError(f"{name} must be greater than zero")

    return Settings(
        tautulli_url=get_config_value("TAUTULLI_URL", "http://localhost:8181"),
        tautulli_api_key=get_config_value("TAUTULLI_API_KEY"),
        library_paths=get_list("VACUUMARR_LIBRARY_PATHS"),
        blocked_titles=get_list("VACUUMARR_BLOCKED_TITLES"),
        weights=weights,
        tunables=tunables,
        cache_path=get_config_value("VACUUMARR_CACHE_PATH", str(DEFAULT_CACHE_PATH)),
    )
