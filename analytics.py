"""Derived journal statistics.

Every function here is a pure function of the entry list it is given. Entries
may be ``JournalEntry`` model instances or plain dict rows shaped like the
ORM output (``journal_moods`` / ``journal_tags`` nested lists, an optional
``collection`` or ``collections`` parent). Missing or malformed fields are
treated as absent and never raise.
"""

import re
from collections import Counter
from datetime import date, datetime, timedelta

MARKUP_RE = re.compile(r'<[^>]*>')

TOP_MOODS = 5
TOP_RADAR_MOODS = 6
TOP_TAGS = 7
WEEKLY_WINDOW_DAYS = 7
INTENSITY_WINDOW_ENTRIES = 14

UNCATEGORIZED = 'Uncategorized'
DEFAULT_MOOD_LABEL = 'Neutral'
DEFAULT_MOOD_EMOJI = '😊'

TAILWIND_COLORS = {
    'bg-slate-500': '#64748b', 'bg-gray-500': '#6b7280', 'bg-zinc-500': '#71717a',
    'bg-neutral-500': '#737373', 'bg-stone-500': '#78716c', 'bg-red-500': '#ef4444',
    'bg-orange-500': '#f97316', 'bg-amber-500': '#f59e0b', 'bg-yellow-500': '#eab308',
    'bg-lime-500': '#84cc16', 'bg-green-500': '#22c55e', 'bg-emerald-500': '#10b981',
    'bg-teal-500': '#14b8a6', 'bg-cyan-500': '#06b6d4', 'bg-sky-500': '#0ea5e9',
    'bg-blue-500': '#3b82f6', 'bg-indigo-500': '#6366f1', 'bg-violet-500': '#8b5cf6',
    'bg-purple-500': '#a855f7', 'bg-fuchsia-500': '#d946ef', 'bg-pink-500': '#ec4899',
    'bg-rose-500': '#f43f5e',
}
DEFAULT_COLOR = 'bg-blue-500'

MOOD_COLORS = ['#8b5cf6', '#ec4899', '#f59e0b', '#22c55e', '#3b82f6']


# ---------------------------------------------------------------------------
# Field access
# ---------------------------------------------------------------------------

def _get(obj, name, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _as_list(value):
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def to_date(val):
    """Normalize a timestamp-like value to a ``datetime.date`` or return None.

    Handles: date, datetime, ISO date/time strings, YYYYMMDD ints/strings and unix timestamps.
    """
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    if isinstance(val, bool):
        return None
    if isinstance(val, str):
        s = val.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(s.replace('Z', '+00:00')).date()
        except ValueError:
            pass
        if s.isascii() and s.isdigit():
            try:
                return to_date(int(s))
            except ValueError:
                return None
        return None
    if isinstance(val, (int, float)):
        try:
            s = str(int(val))
        except (OverflowError, ValueError):
            return None
        if len(s) == 8:
            try:
                return date(int(s[:4]), int(s[4:6]), int(s[6:8]))
            except ValueError:
                pass
        try:
            return datetime.fromtimestamp(val).date()
        except (OverflowError, OSError, ValueError):
            return None
    return None


def _to_datetime(val):
    if isinstance(val, datetime):
        return val.replace(tzinfo=None)
    d = to_date(val)
    if d is None:
        return None
    if isinstance(val, str):
        try:
            return datetime.fromisoformat(val.strip().replace('Z', '+00:00')).replace(tzinfo=None)
        except ValueError:
            pass
    return datetime(d.year, d.month, d.day)


def entry_day(entry):
    """Calendar day an entry was written on."""
    return to_date(_get(entry, 'created_at'))


def entry_days(entries):
    return {d for d in (entry_day(e) for e in entries or []) if d is not None}


# ---------------------------------------------------------------------------
# Counts and words
# ---------------------------------------------------------------------------

def total_entries(entries):
    return len(entries or [])


def favorite_count(entries):
    return sum(1 for e in entries or [] if _get(e, 'is_favorite'))


def strip_markup(html):
    if not isinstance(html, str):
        return ''
    return MARKUP_RE.sub(' ', html)


def word_count(entry):
    text = _get(entry, 'plain_text')
    if not isinstance(text, str) or not text.strip():
        text = strip_markup(_get(entry, 'content'))
    return len(text.split())


def total_words(entries):
    return sum(word_count(e) for e in entries or [])


# ---------------------------------------------------------------------------
# Streaks and activity
# ---------------------------------------------------------------------------

def current_streak(entries, today=None):
    """Consecutive days with at least one entry, counted backwards.

    Grace-day rule: when there is no entry today the walk starts at yesterday,
    so the streak only drops to zero once a full day has been skipped.
    """
    days = entry_days(entries)
    today = today or date.today()
    cursor = today if today in days else today - timedelta(days=1)

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(entries):
    entry_dates = sorted(entry_days(entries))
    if not entry_dates:
        return 0

    longest = 1
    run = 1
    for i in range(1, len(entry_dates)):
        if entry_dates[i] == entry_dates[i - 1] + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
    return longest


def activity_histogram(entries, days=WEEKLY_WINDOW_DAYS, today=None):
    """Entry counts for each of the trailing ``days`` calendar days, oldest first."""
    today = today or date.today()
    counts = Counter(d for d in (entry_day(e) for e in entries or []) if d is not None)

    buckets = []
    for delta in range(days - 1, -1, -1):
        d = today - timedelta(days=delta)
        buckets.append({
            'date': d,
            'label': d.strftime('%a'),
            'count': counts.get(d, 0),
        })
    return buckets


def start_of_week(today=None):
    """Most recent Sunday on or before ``today``."""
    today = today or date.today()
    return today - timedelta(days=(today.weekday() + 1) % 7)


def entries_this_week(entries, today=None):
    week_start = start_of_week(today)
    return sum(1 for d in (entry_day(e) for e in entries or []) if d is not None and d >= week_start)


def intensity_timeline(entries, limit=INTENSITY_WINDOW_ENTRIES):
    """Mood intensity of the most recent ``limit`` entries, oldest first."""
    dated = []
    for index, e in enumerate(entries or []):
        ts = _to_datetime(_get(e, 'created_at'))
        if ts is not None:
            dated.append((ts, index, e))
    dated.sort(key=lambda item: (item[0], item[1]))

    if limit:
        dated = dated[-limit:]

    points = []
    for ts, _, e in dated:
        mood = first_mood(e)
        _, label = mood_parts(mood)
        points.append({
            'date': ts.date(),
            'label': f"{ts.strftime('%b')} {ts.day}",
            'intensity': _intensity(mood) or 0,
            'mood': label or DEFAULT_MOOD_LABEL,
        })
    return points


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

def color_hex(token):
    return TAILWIND_COLORS.get(token) or TAILWIND_COLORS[DEFAULT_COLOR]


def collection_distribution(entries, collections):
    counts = Counter(
        cid for cid in (_get(e, 'collection_id') for e in entries or [])
        if isinstance(cid, (int, str)) and not isinstance(cid, bool)
    )
    result = []
    for c in collections or []:
        cid = _get(c, 'id')
        count = counts.get(cid, 0) if isinstance(cid, (int, str)) else 0
        if count <= 0:
            continue
        token = _get(c, 'color') or DEFAULT_COLOR
        result.append({
            'id': _get(c, 'id'),
            'name': _get(c, 'title') or '',
            'value': count,
            'color': token,
            'hex': color_hex(token),
        })
    return result


def _collection_title(entry):
    parent = _get(entry, 'collection') or _get(entry, 'collections')
    if isinstance(parent, list):
        parent = parent[0] if parent else None
    return _get(parent, 'title') or UNCATEGORIZED


# ---------------------------------------------------------------------------
# Moods
# ---------------------------------------------------------------------------

def _utf16_len(text):
    return len(text.encode('utf-16-le')) // 2


def split_mood_text(text):
    """Split a combined "<emoji> <label>" string into ``(emoji, label)``.

    The first whitespace token is taken as the emoji when there is more than
    one token and it is at most four UTF-16 code units long. A short first word
    ("Very happy") is therefore read as an emoji too; the rule is kept as-is.
    """
    if not isinstance(text, str):
        return None, None
    stripped = text.strip()
    if not stripped:
        return None, None
    parts = stripped.split()
    if len(parts) > 1 and _utf16_len(parts[0]) <= 4:
        return parts[0], ' '.join(parts[1:])
    return None, stripped


def first_mood(entry):
    moods = _get(entry, 'journal_moods')
    if moods is None:
        return None
    moods = _as_list(moods)
    return moods[0] if moods else None


def mood_parts(mood):
    """Return ``(emoji, label)`` for a mood row; ``(None, None)`` when absent."""
    if mood is None:
        return None, None
    label = _get(mood, 'label')
    if isinstance(label, str) and label.strip():
        emoji = _get(mood, 'emoji')
        return (emoji if isinstance(emoji, str) and emoji else None), label.strip()
    # legacy rows carry a single combined "mood" string
    return split_mood_text(_get(mood, 'mood'))


def _intensity(mood):
    value = _get(mood, 'intensity')
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _mood_counts(entries):
    counts = {}
    for e in entries or []:
        emoji, label = mood_parts(first_mood(e))
        if not label:
            continue
        if label not in counts:
            counts[label] = {'count': 0, 'emoji': emoji or DEFAULT_MOOD_EMOJI}
        counts[label]['count'] += 1
    return counts


def _ranked_moods(entries, limit):
    ranked = sorted(_mood_counts(entries).items(), key=lambda item: -item[1]['count'])
    return [
        {'name': name, 'value': data['count'], 'emoji': data['emoji']}
        for name, data in ranked[:limit]
    ]


def mood_distribution(entries, limit=TOP_MOODS):
    """Most frequent mood labels, descending; ties keep first-seen order."""
    return _ranked_moods(entries, limit)


def mood_radar(entries, limit=TOP_RADAR_MOODS):
    return _ranked_moods(entries, limit)


def mood_by_collection(entries):
    grouped = {}
    for e in entries or []:
        _, label = mood_parts(first_mood(e))
        if not label:
            continue
        moods = grouped.setdefault(_collection_title(e), {})
        moods[label] = moods.get(label, 0) + 1
    return [dict(moods, name=title) for title, moods in grouped.items()]


def average_intensity(entries):
    """Mean intensity over entries that carry a mood; a mood without intensity counts as 0."""
    values = [_intensity(first_mood(e)) or 0 for e in entries_with_mood(entries)]
    if not values:
        return 0.0
    return round(sum(values) / len(values), 1)


def entries_with_mood(entries):
    return [e for e in entries or [] if mood_parts(first_mood(e))[1]]


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

def _tag_text(tag):
    if isinstance(tag, str):
        return tag
    value = _get(tag, 'tag')
    return value if isinstance(value, str) else None


def top_tags(entries, limit=TOP_TAGS):
    counts = Counter()
    for e in entries or []:
        for t in _as_list(_get(e, 'journal_tags')):
            text = _tag_text(t)
            if text and text.strip():
                counts[text.strip().lower()] += 1
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [{'name': name, 'count': count} for name, count in ranked[:limit]]


# ---------------------------------------------------------------------------
# Page summaries
# ---------------------------------------------------------------------------

def build_dashboard_stats(entries, today=None):
    if not entries:
        return {'weekly': 0, 'streak': 0, 'total': 0}
    return {
        'weekly': entries_this_week(entries, today),
        'streak': current_streak(entries, today),
        'total': total_entries(entries),
    }


def build_analytics(entries, collections=None, today=None):
    moods = mood_distribution(entries)
    return {
        'total_entries': total_entries(entries),
        'favorites': favorite_count(entries),
        'total_words': total_words(entries),
        'current_streak': current_streak(entries, today),
        'longest_streak': longest_streak(entries),
        'weekly_activity': activity_histogram(entries, WEEKLY_WINDOW_DAYS, today),
        'collections': collection_distribution(entries, collections),
        'moods': [
            dict(m, color=MOOD_COLORS[i % len(MOOD_COLORS)])
            for i, m in enumerate(moods)
        ],
        'top_tags': top_tags(entries),
    }


def build_mood_insights(entries):
    """Mood summary for the insights page; nothing in it depends on the current date."""
    with_mood = entries_with_mood(entries)
    total = total_entries(entries)
    return {
        'total_entries': total,
        'mood_entries': len(with_mood),
        'mood_tracked_pct': round(len(with_mood) * 100 / total) if total else 0,
        'avg_intensity': average_intensity(entries),
        'distribution': mood_radar(entries, limit=None),
        'radar': mood_radar(entries),
        'intensity': intensity_timeline(entries),
        'by_collection': mood_by_collection(entries),
    }
