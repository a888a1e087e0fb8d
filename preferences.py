"""Key-value store for per-user UI preferences (theme, favourite prompts)."""

import json
import logging

from flask import current_app, session
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import UserPreference

logger = logging.getLogger(__name__)

THEME_KEY = 'profile_theme'
FAVORITE_PROMPTS_KEY = 'favorite_prompts'

PROFILE_THEMES = [
    {'name': 'Obsidian', 'from': '#0c0a09', 'to': '#1c1917'},
    {'name': 'Midnight', 'from': '#020617', 'to': '#1e293b'},
    {'name': 'Royal', 'from': '#2e1065', 'to': '#4c1d95'},
    {'name': 'Forest', 'from': '#064e3b', 'to': '#065f46'},
    {'name': 'Crimson', 'from': '#7f1d1d', 'to': '#991b1b'},
    {'name': 'Ocean', 'from': '#0c4a6e', 'to': '#075985'},
]
DEFAULT_THEME = PROFILE_THEMES[0]


def find_theme(name):
    for theme in PROFILE_THEMES:
        if theme['name'] == name:
            return theme
    return None


class PreferenceStore:
    """Interface for a user-scoped preference store."""

    def get(self, key, default=None):
        raise NotImplementedError

    def set(self, key, value):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError

    def all(self):
        raise NotImplementedError

    def clear(self):
        for key in list(self.all()):
            self.delete(key)


class MemoryPreferenceStore(PreferenceStore):
    def __init__(self, user_id=None, data=None):
        self.user_id = user_id
        self._data = dict(data or {})

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        self._data[key] = value

    def delete(self, key):
        self._data.pop(key, None)

    def all(self):
        return dict(self._data)


class DatabasePreferenceStore(PreferenceStore):
    """Preferences persisted in ``user_preferences`` as JSON values."""

    def __init__(self, user_id):
        self.user_id = user_id

    def _row(self, key):
        return UserPreference.query.filter_by(user_id=self.user_id, key=key).first()

    def get(self, key, default=None):
        row = self._row(key)
        if row is None or row.value is None:
            return default
        try:
            return json.loads(row.value)
        except ValueError:
            logger.warning('Ignoring unreadable preference %s for user %s', key, self.user_id)
            return default

    def set(self, key, value):
        row = self._row(key)
        if row is None:
            row = UserPreference(user_id=self.user_id, key=key)
            db.session.add(row)
        row.value = json.dumps(value)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def delete(self, key):
        UserPreference.query.filter_by(user_id=self.user_id, key=key).delete()
        db.session.commit()

    def all(self):
        rows = UserPreference.query.filter_by(user_id=self.user_id).all()
        result = {}
        for row in rows:
            try:
                result[row.key] = json.loads(row.value) if row.value is not None else None
            except ValueError:
                continue
        return result


def preference_store(user_id):
    """Build the configured store for ``user_id``."""
    factory = current_app.config.get('PREFERENCE_STORE_FACTORY') or DatabasePreferenceStore
    return factory(user_id)


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

def start_session_preferences(user_id):
    """Load cached preferences into the session when a user signs in."""
    store = preference_store(user_id)
    theme = find_theme(store.get(THEME_KEY)) or DEFAULT_THEME
    session['theme'] = theme['name']
    return store


def active_theme():
    return find_theme(session.get('theme')) or DEFAULT_THEME


def set_theme(user_id, name):
    theme = find_theme(name)
    if theme is None:
        raise ValueError(f'Unknown theme: {name}')
    preference_store(user_id).set(THEME_KEY, theme['name'])
    session['theme'] = theme['name']
    return theme


def favorite_prompt_ids(user_id):
    ids = preference_store(user_id).get(FAVORITE_PROMPTS_KEY, [])
    return [i for i in ids if isinstance(i, int)] if isinstance(ids, list) else []


def toggle_favorite_prompt(user_id, prompt_id):
    """Add or remove a prompt from the user's favourites; returns True when added."""
    ids = favorite_prompt_ids(user_id)
    if prompt_id in ids:
        ids.remove(prompt_id)
        added = False
    else:
        ids.append(prompt_id)
        added = True
    preference_store(user_id).set(FAVORITE_PROMPTS_KEY, ids)
    return added
