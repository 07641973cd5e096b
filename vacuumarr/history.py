from .errors import TautulliError
from .models import HistoryStat
from .tautulli import HISTORY_PAGE_SIZE, to_optional_number, to_optional_str, to_positive_timestamp


def history_row_key(row):
    """Identifier a history row refers to: itself, else its parent, else its grandparent"""
    for field in ('rating_key', 'parent_rating_key', 'grandparent_rating_key'):
        key = to_optional_str(row.get(field))
        if key:
            return key
    return None


def history_play_count(value):
    """A history row always stands for at least one play"""
    count = to_optional_number(value)
    if count is None or count <= 0:
        return 1
    return int(count)


def merge_history_rows(stats, rows):
    """Fold history rows into ``stats`` (rating_key -> HistoryStat) in place"""
    for row in rows:
        key = history_row_key(row)
        if key is None:
            continue
        plays = history_play_count(row.get('group_count'))
        stopped = to_positive_timestamp(row.get('stopped'))
        if stopped is None:
            stopped = to_positive_timestamp(row.get('date'))

        stat = stats.get(key)
        if stat is None:
            stats[key] = HistoryStat(plays, stopped)
            continue
        stat.play_count += plays
        if stopped is not None and (stat.last_played is None or stopped > stat.last_played):
            stat.last_played = stopped
    return stats


def reconcile_history(pages):
    """Merge an iterable of history row lists into one HistoryStat per item"""
    stats = {}
    for rows in pages:
        merge_history_rows(stats, rows)
    return stats


def fetch_show_history(client, show_key, page_size=HISTORY_PAGE_SIZE, log=None):
    """Collect per-episode play stats for one show from paginated get_history.

    Paging stops on a short or empty page, once the offset reaches the total
    reported by the server, or on the first failed request. A failure keeps
    whatever was merged before it.
    """
    stats = {}
    if not show_key:
        return stats

    start = 0
    while True:
        try:
            page = client.get_history_page(show_key, start=start, length=page_size)
        except TautulliError as e:
            if log:
                log(f"[History] Failed to fetch history for show {show_key}: {e}")
            break

        if not page.rows:
            break
        merge_history_rows(stats, page.rows)

        start += len(page.rows)
        if len(page.rows) < page_size:
            break
        if page.total is not None and start >= page.total:
            break

    return stats
