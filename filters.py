from analytics import first_mood, mood_parts


def _tags(entry):
    return [t.tag for t in entry.journal_tags]


def _mood_label(entry):
    return mood_parts(first_mood(entry))[1]


def filter_entries(entries, query='', collection_id=None, mood=None, tags=None, favorites_only=False):
    """Apply the journal list filters; all given criteria must match."""
    query = (query or '').strip().lower()
    tags = [t for t in (tags or []) if t]
    result = []
    for e in entries:
        if query:
            haystack = [e.title or '', e.plain_text or ''] + _tags(e)
            if not any(query in text.lower() for text in haystack):
                continue
        if collection_id is not None and e.collection_id != collection_id:
            continue
        if mood and _mood_label(e) != mood:
            continue
        if tags and not all(t in _tags(e) for t in tags):
            continue
        if favorites_only and not e.is_favorite:
            continue
        result.append(e)
    return result


def available_moods(entries):
    seen = []
    for e in entries:
        label = _mood_label(e)
        if label and label not in seen:
            seen.append(label)
    return seen


def available_tags(entries):
    seen = []
    for e in entries:
        for tag in _tags(e):
            if tag not in seen:
                seen.append(tag)
    return seen
