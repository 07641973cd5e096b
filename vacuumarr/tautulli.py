"""Tautulli API client and the normalization boundary for its payloads.

Everything coming back from Tautulli passes through the ``normalize_*``
helpers below, so the rest of the package only ever sees ``Library`` and
``MediaItem`` objects with ints, floats, strings or ``None`` in their fields.
"""

import math

import requests

from .errors import TautulliError

API_PATH = "api/v2"
DEFAULT_PAGE_SIZE = 500
HISTORY_PAGE_SIZE = 500
MEDIA_TYPES = ('movie', 'show', 'season', 'episode')
FILE_PATH_KEYS = ('file', 'file_path', 'filepath', 'fullpath', 'path')


class Library:
    def __init__(self, section_id, section_name, section_type, count=0):
        self.section_id = section_id
        self.section_name = section_name
        self.section_type = section_type
        self.count = count

    def __repr__(self):
        return f"Library({self.section_id}, {self.section_name!r}, {self.section_type!r})"


class MediaItem:
    """Strict shape of a Tautulli movie/show/season/episode row"""

    FIELDS = ('rating_key', 'media_type', 'title', 'parent_rating_key', 'parent_title',
              'grandparent_rating_key', 'grandparent_title', 'file', 'size',
              'added_at', 'updated_at', 'last_played', 'play_count', 'media_index',
              'season_index', 'section_id', 'section_name', 'year')

    def __init__(self, rating_key, media_type, title='', parent_rating_key=None,
                 parent_title=None, grandparent_rating_key=None, grandparent_title=None,
                 file=None, size=None, added_at=None, updated_at=None, last_played=None,
                 play_count=None, media_index=None, season_index=None, section_id=0,
                 section_name='', year=None):
        self.rating_key = rating_key
        self.media_type = media_type
        self.title = title
        self.parent_rating_key = parent_rating_key
        self.parent_title = parent_title
        self.grandparent_rating_key = grandparent_rating_key
        self.grandparent_title = grandparent_title
        self.file = file
        self.size = size
        self.added_at = added_at
        self.updated_at = updated_at
        self.last_played = last_played
        self.play_count = play_count
        self.media_index = media_index
        self.season_index = season_index
        self.section_id = section_id
        self.section_name = section_name
        self.year = year

    def to_dict(self):
        return {field: getattr(self, field) for field in self.FIELDS}

    @classmethod
    def from_dict(cls, data):
        return cls(**{field: data.get(field) for field in cls.FIELDS if field in data})

    def __repr__(self):
        return f"MediaItem({self.rating_key!r}, {self.media_type!r}, {self.title!r})"


class HistoryPage:
    def __init__(self, rows, total=None):
        self.rows = rows
        self.total = total


def to_optional_str(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_optional_number(value):
    """Parse ints, floats and numeric strings; anything else is None"""
    if value is None or value == '' or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def to_optional_int(value):
    number = to_optional_number(value)
    return int(number) if number is not None else None


def to_positive_timestamp(value):
    """Epoch seconds; Tautulli reports 0 or '' for 'never'"""
    number = to_optional_number(value)
    if not number or number <= 0:
        return None
    return number


def normalize_library(raw):
    return Library(
        section_id=to_optional_int(raw.get('section_id')) or 0,
        section_name=to_optional_str(raw.get('section_name')) or 'Unknown',
        section_type=(to_optional_str(raw.get('section_type')) or '').lower(),
        count=to_optional_int(raw.get('count')) or 0,
    )


def normalize_media_item(raw, section_id=None, section_name=None):
    """Convert one raw Tautulli row into a MediaItem, or None if unusable"""
    if not isinstance(raw, dict):
        return None

    rating_key = to_optional_str(raw.get('rating_key'))
    media_type = (to_optional_str(raw.get('media_type')) or '').lower()
    if not rating_key or media_type not in MEDIA_TYPES:
        return None

    raw_section_id = to_optional_int(raw.get('section_id'))
    return MediaItem(
        rating_key=rating_key,
        media_type=media_type,
        title=to_optional_str(raw.get('title')) or '',
        parent_rating_key=to_optional_str(raw.get('parent_rating_key')),
        parent_title=to_optional_str(raw.get('parent_title')),
        grandparent_rating_key=to_optional_str(raw.get('grandparent_rating_key')),
        grandparent_title=to_optional_str(raw.get('grandparent_title')),
        file=to_optional_str(raw.get('file')),
        size=to_optional_int(raw.get('file_size', raw.get('size'))),
        added_at=to_positive_timestamp(raw.get('added_at')),
        updated_at=to_positive_timestamp(raw.get('updated_at')),
        last_played=to_positive_timestamp(raw.get('last_played')),
        play_count=to_optional_int(raw.get('play_count')),
        media_index=to_optional_int(raw.get('media_index')),
        season_index=to_optional_int(raw.get('parent_media_index', raw.get('season_index'))),
        section_id=raw_section_id if raw_section_id is not None else (section_id or 0),
        section_name=(to_optional_str(raw.get('section_name'))
                      or to_optional_str(raw.get('library_name'))
                      or section_name or 'Unknown'),
        year=to_optional_int(raw.get('year')),
    )


def normalize_metadata_summary(record, rating_key=None):
    guids = record.get('guids')
    if isinstance(guids, str):
        guids = [guids]
    if isinstance(guids, list):
        guids = [g.strip() for g in guids if isinstance(g, str) and g.strip()] or None
    else:
        guids = None

    return {
        'rating_key': to_optional_str(record.get('rating_key')) or rating_key,
        'media_type': (to_optional_str(record.get('media_type')) or '').lower(),
        'title': to_optional_str(record.get('title')),
        'parent_rating_key': to_optional_str(record.get('parent_rating_key')),
        'parent_title': to_optional_str(record.get('parent_title')),
        'grandparent_rating_key': to_optional_str(record.get('grandparent_rating_key')),
        'grandparent_title': to_optional_str(record.get('grandparent_title')),
        'section_id': to_optional_int(record.get('section_id')),
        'section_type': to_optional_str(record.get('section_type')),
        'library_name': to_optional_str(record.get('library_name')),
        'added_at': to_positive_timestamp(record.get('added_at')),
        'updated_at': to_positive_timestamp(record.get('updated_at')),
        'guids': guids,
    }


def is_likely_file_path(value):
    """Reject Plex metadata URLs and bare names; keep things that look like media files"""
    text = (value or '').strip()
    if not text or ('/' not in text and '\\' not in text):
        return False
    if text.startswith('/library/metadata/'):
        return False
    last_segment = text.replace('\\', '/').rsplit('/', 1)[-1]
    return '.' in last_segment


def extract_file_path(record):
    """Find the media file path in a get_metadata record"""
    if not isinstance(record, dict):
        return None

    for key in FILE_PATH_KEYS:
        value = record.get(key)
        if isinstance(value, str) and is_likely_file_path(value):
            return value.strip()

    for media in record.get('media_info') or []:
        if not isinstance(media, dict):
            continue
        for part in media.get('parts') or []:
            if not isinstance(part, dict):
                continue
            for key in FILE_PATH_KEYS:
                value = part.get(key)
                if isinstance(value, str) and is_likely_file_path(value):
                    return value.strip()
    return None


# Envelope unwrapping: one function per endpoint shape

def _unwrap_libraries(data):
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get('libraries'), list):
        return data['libraries']
    return []


def _unwrap_table(data):
    """get_library_media_info / get_history: {'data': [...], 'recordsFiltered': n}"""
    if not isinstance(data, dict):
        return [], None
    rows = data.get('data')
    total = to_optional_int(data.get('recordsFiltered'))
    if total is None:
        total = to_optional_int(data.get('recordsTotal'))
    return (rows if isinstance(rows, list) else []), total


def _unwrap_children(data):
    if isinstance(data, dict) and isinstance(data.get('children_list'), list):
        return data['children_list']
    return []


def _unwrap_metadata(data):
    if isinstance(data, dict) and isinstance(data.get('metadata'), dict):
        data = data['metadata']
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict) or not data:
        return None
    return data


class TautulliClient:
    """Thin blocking client for the Tautulli v2 API"""

    def __init__(self, base_url, api_key, session=None, log=None, timeout=30):
        if not base_url or not api_key:
            raise ValueError("Tautulli base URL and API key are required")
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.session = session or requests.Session()
        self.log = log
        self.timeout = timeout

    def request(self, cmd, **params):
        """Call one API command and return the unwrapped response.data"""
        url = f"{self.base_url}/{API_PATH}"
        query = {'apikey': self.api_key, 'cmd': cmd}
        for key, value in params.items():
            if value is not None:
                query[key] = value

        if self.log:
            shown = ' '.join(f"{k}={v}" for k, v in query.items() if k != 'apikey')
            self.log(f"[Tautulli] Request {shown} apikey=***")

        try:
            response = self.session.get(url, params=query,
                                        headers={'Accept': 'application/json'},
                                        timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TautulliError(f"Failed to connect to Tautulli: {e}", cmd=cmd) from e

        if response.status_code != 200:
            raise TautulliError(f"Tautulli request '{cmd}' failed: HTTP {response.status_code}",
                                cmd=cmd, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise TautulliError(f"Tautulli returned invalid JSON for '{cmd}'", cmd=cmd) from e

        envelope = payload.get('response') if isinstance(payload, dict) else None
        if not isinstance(envelope, dict):
            raise TautulliError(f"Tautulli response for '{cmd}' has no envelope", cmd=cmd)
        if envelope.get('result') != 'success':
            message = envelope.get('message') or 'Unknown error'
            raise TautulliError(f"Tautulli error for '{cmd}': {message}", cmd=cmd)
        return envelope.get('data')

    def get_server_info(self):
        data = self.request('get_server_info')
        return data if isinstance(data, dict) else {}

    def list_libraries(self):
        return [normalize_library(raw) for raw in _unwrap_libraries(self.request('get_libraries'))
                if isinstance(raw, dict)]

    def list_library_items(self, section_id, refresh=False, section_type=None,
                           page_size=DEFAULT_PAGE_SIZE):
        """Fetch every row of a library, page by page"""
        items = []
        start = 0
        is_show = section_type == 'show'

        while True:
            data = self.request(
                'get_library_media_info',
                section_id=section_id,
                start=start,
                length=page_size,
                order_column='title',
                order_dir='asc',
                include='file',
                media_info=1,
                grouping=0 if is_show else None,
                children=1 if is_show else None,
                refresh='true' if refresh else None,
            )
            rows, total = _unwrap_table(data)
            for raw in rows:
                item = normalize_media_item(raw, section_id=section_id)
                if item is not None:
                    items.append(item)

            start += len(rows)
            if len(rows) < page_size:
                break
            if total is not None and start >= total:
                break

        return items

    def list_children(self, rating_key, media_type):
        """Seasons of a show (media_type='show') or episodes of a season ('season')"""
        data = self.request('get_children_metadata', rating_key=rating_key, media_type=media_type)
        children = []
        for raw in _unwrap_children(data):
            item = normalize_media_item(raw)
            if item is not None:
                children.append(item)
        return children

    def resolve_file_path(self, rating_key):
        if not rating_key:
            return None
        record = _unwrap_metadata(self.request('get_metadata', rating_key=rating_key,
                                               include='media_info'))
        file_path = extract_file_path(record)
        if file_path is None and self.log:
            self.log(f"[Tautulli] Metadata lookup for {rating_key} returned no file path")
        return file_path

    def get_history_page(self, grandparent_rating_key, start=0, length=HISTORY_PAGE_SIZE):
        data = self.request(
            'get_history',
            grandparent_rating_key=grandparent_rating_key,
            start=start,
            length=length,
            order_column='date',
            order_dir='desc',
        )
        rows, total = _unwrap_table(data)
        return HistoryPage([row for row in rows if isinstance(row, dict)], total)

    def get_metadata_summary(self, rating_key):
        """Identifier/parent summary for cross-referencing, or None if unavailable"""
        try:
            record = _unwrap_metadata(self.request('get_metadata', rating_key=rating_key))
        except TautulliError as e:
            if self.log:
                self.log(f"[Tautulli] Failed to resolve metadata for {rating_key}: {e}")
            return None
        if record is None:
            return None
        return normalize_metadata_summary(record, rating_key=str(rating_key))
