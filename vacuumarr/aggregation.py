from .models import MediaUnit


def unit_identity(source):
    """(key, kind, title, parent_title) of the unit a source belongs to"""
    if source.media_kind == 'movie':
        return source.identifier, 'movie', source.title, None

    key = source.season_key or source.show_key or source.identifier
    title = source.season_title or source.title
    return key, 'season', title, source.show_title


def add_source(unit, source):
    """Merge one source into its unit"""
    unit.size_bytes += source.size_bytes
    if unit.added_at is None or source.added_at < unit.added_at:
        unit.added_at = source.added_at
    if source.last_played_at is not None:
        if unit.last_played_at is None or source.last_played_at > unit.last_played_at:
            unit.last_played_at = source.last_played_at
    unit.total_play_count += source.play_count
    unit.max_item_play_count = max(unit.max_item_play_count, source.play_count)
    if source.play_count > 0:
        unit.items_with_plays += 1
    unit.item_count += 1
    unit.paths.add(source.path)
    unit.source_items.append(source)


def aggregate_media_units(sources):
    """Group sources into movies and seasons, in first-seen order"""
    units = {}

    for source in sources:
        key, kind, title, parent_title = unit_identity(source)

        unit = units.get(key)
        if unit is None:
            unit = MediaUnit(key, kind, title, parent_title,
                             source.library_section_id, source.library_section_name)
            units[key] = unit
        elif kind == 'season' and not unit.parent_title:
            unit.parent_title = parent_title

        add_source(unit, source)

    return list(units.values())
