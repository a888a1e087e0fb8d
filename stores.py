"""Per-user data access for journals and collections.

A store mirrors the rows of the last successful fetch in a local list. Every
mutation commits, reports success through ``notify`` and re-fetches, or rolls
back, reports the failure and raises ``StoreError`` with the local list left
untouched. Nothing is retried.
"""

import logging
from datetime import datetime

from flask import flash
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from analytics import strip_markup
from extensions import db
from models import Collection, JournalEntry, JournalMood, JournalTag

logger = logging.getLogger(__name__)

MAX_TAGS = 5
DEFAULT_INTENSITY = 3


class StoreError(Exception):
    """Base exception for failed store operations."""


class NotFoundError(StoreError):
    """The row does not exist or belongs to another user."""


class ValidationError(StoreError):
    """Input rejected before reaching the database."""


class FetchToken:
    """Cancellation handle for a fetch; a cancelled token discards late results.

    Request handlers refresh synchronously, so within a request the token is
    never cancelled before a fetch returns. It only takes effect for a store
    that outlives the request it was opened in.
    """

    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


# ---------------------------------------------------------------------------
# Input cleaning
# ---------------------------------------------------------------------------

def clean_tags(tags, max_tags=MAX_TAGS):
    """Trim tags, drop blanks and exact duplicates, and enforce the per-entry cap."""
    if tags is None:
        return None
    if isinstance(tags, str):
        tags = tags.split(',')
    cleaned = []
    for tag in tags:
        tag = (tag or '').strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    if len(cleaned) > max_tags:
        raise ValidationError(f'Maximum {max_tags} tags allowed')
    return cleaned


def clean_mood(mood):
    """Normalize a mood mapping to ``{'emoji', 'label', 'intensity'}`` or None."""
    if not mood:
        return None
    label = (mood.get('label') or '').strip()
    if not label:
        return None
    emoji = (mood.get('emoji') or '').strip() or None

    raw = mood.get('intensity')
    if raw in (None, ''):
        intensity = DEFAULT_INTENSITY
    else:
        try:
            intensity = int(raw)
        except (TypeError, ValueError):
            raise ValidationError('Mood intensity must be a number between 1 and 5')
        if not 1 <= intensity <= 5:
            raise ValidationError('Mood intensity must be between 1 and 5')
    return {'emoji': emoji, 'label': label, 'intensity': intensity}


def derive_plain_text(content, plain_text=None):
    if plain_text and plain_text.strip():
        return plain_text.strip()
    return ' '.join(strip_markup(content).split())


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class _Store:
    load_failed_message = 'Failed to load'

    def __init__(self, user_id, notify=None):
        self.user_id = user_id
        self.notify = notify or flash
        self.loading = False
        self.error = None

    def _query(self):
        raise NotImplementedError

    def _apply(self, rows):
        raise NotImplementedError

    def refresh(self, token=None):
        """Re-fetch the user's rows; a failure keeps the previous list."""
        if self.user_id is None:
            return self._current()
        self.loading = True
        try:
            rows = self._query().all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.error = exc
            logger.exception('%s for user %s', self.load_failed_message, self.user_id)
            self.notify(self.load_failed_message, 'error')
            return self._current()
        finally:
            self.loading = False

        if token is not None and token.cancelled:
            logger.debug('Discarding fetch result for cancelled token (user %s)', self.user_id)
            return self._current()
        self.error = None
        self._apply(rows)
        return self._current()

    def _current(self):
        raise NotImplementedError

    def _commit(self, failed_message, success_message):
        """Commit the session, report the outcome and re-fetch on success."""
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception(failed_message)
            self.notify(failed_message, 'error')
            raise StoreError(failed_message) from exc
        if success_message:
            self.notify(success_message, 'success')
        self.refresh()

    def _reject(self, exc, failed_message):
        db.session.rollback()
        logger.info('%s: %s', failed_message, exc)
        self.notify(str(exc) or failed_message, 'error')
        raise exc


class CollectionStore(_Store):
    load_failed_message = 'Failed to load collections'

    def __init__(self, user_id, notify=None):
        super().__init__(user_id, notify)
        self.collections = []

    def _query(self):
        return Collection.query.filter_by(user_id=self.user_id).order_by(
            Collection.created_at.desc(), Collection.id.desc())

    def _apply(self, rows):
        self.collections = rows

    def _current(self):
        return self.collections

    def get(self, collection_id):
        collection = db.session.get(Collection, collection_id) if collection_id is not None else None
        if collection is None or collection.user_id != self.user_id:
            raise NotFoundError('Collection not found')
        return collection

    def create(self, title, description=None, color=None, icon=None):
        title = (title or '').strip()
        if not title:
            self._reject(ValidationError('Collection title is required'), 'Failed to create collection')
        collection = Collection(
            user_id=self.user_id,
            title=title,
            description=(description or '').strip() or None,
            color=color or 'bg-blue-500',
            icon=icon or None,
        )
        db.session.add(collection)
        self._commit('Failed to create collection', 'Collection created')
        return collection

    def update(self, collection_id, **updates):
        collection = self.get(collection_id)
        if 'title' in updates:
            title = (updates['title'] or '').strip()
            if not title:
                self._reject(ValidationError('Collection title is required'), 'Failed to update collection')
            collection.title = title
        if 'description' in updates:
            collection.description = (updates['description'] or '').strip() or None
        if updates.get('color'):
            collection.color = updates['color']
        if 'icon' in updates:
            collection.icon = updates['icon'] or None
        self._commit('Failed to update collection', 'Collection updated')
        return collection

    def delete(self, collection_id):
        collection = self.get(collection_id)
        # entries are kept and become uncategorized
        for journal in list(collection.journals):
            journal.collection_id = None
        db.session.delete(collection)
        self._commit('Failed to delete collection', 'Collection deleted')


class JournalStore(_Store):
    load_failed_message = 'Failed to load journals'

    def __init__(self, user_id, collection_id=None, notify=None, max_tags=MAX_TAGS):
        super().__init__(user_id, notify)
        self.collection_id = collection_id
        self.max_tags = max_tags
        self.entries = []

    def _query(self):
        query = JournalEntry.query.options(
            selectinload(JournalEntry.journal_moods),
            selectinload(JournalEntry.journal_tags),
            selectinload(JournalEntry.collection),
        ).filter_by(user_id=self.user_id)
        if self.collection_id is not None:
            query = query.filter_by(collection_id=self.collection_id)
        return query.order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc())

    def _apply(self, rows):
        self.entries = rows

    def _current(self):
        return self.entries

    def get(self, entry_id):
        entry = db.session.get(JournalEntry, entry_id) if entry_id is not None else None
        if entry is None or entry.user_id != self.user_id:
            raise NotFoundError('Journal entry not found')
        return entry

    def _check_collection(self, collection_id):
        if collection_id in (None, ''):
            return None
        try:
            collection_id = int(collection_id)
        except (TypeError, ValueError):
            raise ValidationError('Unknown collection')
        collection = db.session.get(Collection, collection_id)
        if collection is None or collection.user_id != self.user_id:
            raise ValidationError('Unknown collection')
        return collection_id

    def _set_mood(self, entry, mood):
        entry.journal_moods.clear()
        if mood:
            entry.journal_moods.append(JournalMood(**mood))

    def _set_tags(self, entry, tags):
        entry.journal_tags.clear()
        for tag in tags:
            entry.journal_tags.append(JournalTag(tag=tag))

    def create(self, title, content=None, plain_text=None, collection_id=None, mood=None, tags=None):
        failed = 'Failed to save journal'
        try:
            title = (title or '').strip()
            if not title:
                raise ValidationError('Title is required')
            collection_id = self._check_collection(collection_id)
            mood = clean_mood(mood)
            tags = clean_tags(tags, self.max_tags) or []
        except ValidationError as exc:
            self._reject(exc, failed)

        entry = JournalEntry(
            user_id=self.user_id,
            collection_id=collection_id,
            title=title,
            content=content,
            plain_text=derive_plain_text(content, plain_text),
        )
        self._set_mood(entry, mood)
        self._set_tags(entry, tags)
        db.session.add(entry)
        self._commit(failed, 'Journal entry saved')
        return entry

    def update(self, entry_id, title=None, content=None, plain_text=None, mood=None, tags=None,
               collection_id=False):
        """Update an entry; ``mood``/``tags`` of None leave the stored values alone."""
        failed = 'Failed to update journal'
        entry = self.get(entry_id)
        try:
            if title is not None:
                title = title.strip()
                if not title:
                    raise ValidationError('Title is required')
            if collection_id is not False:
                collection_id = self._check_collection(collection_id)
            mood = clean_mood(mood) if mood is not None else None
            cleaned_tags = clean_tags(tags, self.max_tags)
        except ValidationError as exc:
            self._reject(exc, failed)

        if title is not None:
            entry.title = title
        if content is not None:
            entry.content = content
            entry.plain_text = derive_plain_text(content, plain_text)
        if collection_id is not False:
            entry.collection_id = collection_id
        if mood is not None:
            self._set_mood(entry, mood)
        if cleaned_tags is not None:
            self._set_tags(entry, cleaned_tags)
        entry.updated_at = datetime.now()
        self._commit(failed, 'Journal updated')
        return entry

    def delete(self, entry_id):
        entry = self.get(entry_id)
        db.session.delete(entry)
        self._commit('Failed to delete journal', 'Journal deleted')

    def toggle_favorite(self, entry_id):
        entry = self.get(entry_id)
        entry.is_favorite = not entry.is_favorite
        self._commit('Failed to update favorite', None)
        return entry.is_favorite
