from flask import Flask, render_template, request, redirect, url_for, session, flash, jsonify, g
import os
import logging
from datetime import date, datetime
from urllib.parse import urlsplit

from sqlalchemy.exc import SQLAlchemyError

from extensions import db

basedir = os.path.abspath(os.path.dirname(__file__))
instance_path = os.path.join(basedir, 'instance')
os.makedirs(instance_path, exist_ok=True)


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


DEFAULT_CONFIG = {
    'SECRET_KEY': os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production'),
    'SQLALCHEMY_DATABASE_URI': os.environ.get(
        'MINDNEST_DATABASE_URL', 'sqlite:///' + os.path.join(instance_path, 'mindnest.db')),
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'SESSION_COOKIE_HTTPONLY': True,
    'SESSION_COOKIE_SAMESITE': os.environ.get('SESSION_COOKIE_SAMESITE', 'Lax'),
    'SESSION_COOKIE_SECURE': _env_flag('SESSION_COOKIE_SECURE'),
    'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO').upper(),
    'MAX_TAGS': int(os.environ.get('MINDNEST_MAX_TAGS', '5')),
    # Random thought on the prompts page
    'RANDOM_THOUGHT_REMOTE': _env_flag('RANDOM_THOUGHT_REMOTE', 'true'),
    'QUOTE_API_URL': os.environ.get('QUOTE_API_URL', 'https://zenquotes.io/api/random'),
    'ADVICE_API_URL': os.environ.get('ADVICE_API_URL', 'https://api.adviceslip.com/advice'),
    'QUOTE_TIMEOUT': float(os.environ.get('QUOTE_TIMEOUT', '3.0')),
    # Callable(user_id) -> PreferenceStore; None means the database-backed store
    'PREFERENCE_STORE_FACTORY': None,
}

app = Flask(__name__)
app.config.from_mapping(DEFAULT_CONFIG)
app.logger.setLevel(app.config['LOG_LEVEL'])

db.init_app(app)

from models import Prompt, User
from analytics import (
    build_analytics, build_dashboard_stats, build_mood_insights, color_hex, TAILWIND_COLORS,
)
from auth import current_user, login_required, sign_in, sign_out, wants_json
from filters import available_moods, available_tags, filter_entries
from preferences import (
    PROFILE_THEMES, active_theme, favorite_prompt_ids, set_theme, start_session_preferences,
    toggle_favorite_prompt,
)
from quotes import PROMPT_MOODS, daily_prompt, fetch_random_thought, filter_prompts, local_thought
from stores import CollectionStore, FetchToken, JournalStore, NotFoundError, StoreError


@app.before_request
def _open_fetch_token():
    g.fetch_token = FetchToken()


@app.teardown_request
def _cancel_fetch_token(exc):
    # stores refreshed after the request has ended keep their previous rows
    token = g.pop('fetch_token', None)
    if token is not None:
        token.cancel()


@app.context_processor
def _inject_layout():
    return {
        'theme': active_theme(),
        'color_hex': color_hex,
        'logged_in': bool(session.get('logged_in')),
    }


@app.errorhandler(404)
def not_found(exc):
    return render_template('errors/404.html'), 404


def _journal_store(collection_id=None):
    store = JournalStore(session.get('user_id'), collection_id=collection_id,
                         max_tags=app.config['MAX_TAGS'])
    store.refresh(g.fetch_token)
    return store


def _collection_store():
    store = CollectionStore(session.get('user_id'))
    store.refresh(g.fetch_token)
    return store


def _greeting(now=None):
    hour = (now or datetime.now()).hour
    if hour < 12:
        return 'Good Morning'
    if hour < 18:
        return 'Good Afternoon'
    return 'Good Evening'


def _mood_from_form(form):
    label = (form.get('mood_label') or '').strip()
    if not label:
        return None
    return {
        'emoji': form.get('mood_emoji'),
        'label': label,
        'intensity': form.get('mood_intensity'),
    }


def _tags_from_form(form):
    tags = form.getlist('tags')
    if len(tags) == 1:
        return tags[0].split(',')
    return tags


def _jsonable(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _safe_next(target):
    """Return ``target`` only when it is a path on this site."""
    if not target or '\\' in target:
        return None
    parts = urlsplit(target)
    if parts.scheme or parts.netloc or not target.startswith('/') or target.startswith('//'):
        return None
    return target


# ============================
# AUTH
# ============================

@app.route('/', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        user = sign_in(request.form.get('username'), request.form.get('password'))
        if user:
            start_session_preferences(user.id)
            return redirect(url_for('dashboard'))

        flash("Invalid username or password", 'error')
        return redirect(url_for('login'))

    return render_template('home/login.html')


@app.route('/register', methods=['GET', 'POST'])
def register():
    if request.method == 'POST':
        username = (request.form.get('username') or '').strip()
        email = (request.form.get('email') or '').strip()
        password = request.form.get('password')
        confirm_password = request.form.get('confirm_password')
        full_name = (request.form.get('full_name') or '').strip() or None

        if not username or not email or not password:
            flash('Username, email and password are required', 'error')
            return redirect(url_for('register'))

        if password != confirm_password:
            flash('Passwords do not match', 'error')
            return redirect(url_for('register'))

        if User.query.filter_by(username=username).first():
            flash('Username already exists', 'error')
            return redirect(url_for('register'))

        if User.query.filter_by(email=email).first():
            flash('Email already exists', 'error')
            return redirect(url_for('register'))

        new_user = User(username=username, email=email, full_name=full_name)
        new_user.set_password(password)

        db.session.add(new_user)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            app.logger.exception('Failed to create account for %s', username)
            flash('Could not create account, please try again', 'error')
            return redirect(url_for('register'))

        flash('Account created successfully! Please log in.', 'success')
        return redirect(url_for('login'))

    return render_template('home/register.html')


@app.route('/logout')
def logout():
    sign_out()
    return redirect(url_for('login'))


# ============================
# DASHBOARD
# ============================

@app.route('/dashboard')
@login_required
def dashboard():
    journals = _journal_store()
    collections = _collection_store()
    user = current_user()

    return render_template(
        'journal/dashboard.html',
        greeting=_greeting(),
        first_name=(user.display_name or '').split(' ')[0] or 'Traveler',
        stats=build_dashboard_stats(journals.entries),
        recent_journals=journals.entries[:3],
        collections=collections.collections[:5],
    )


# ============================
# JOURNAL ENTRIES
# ============================

@app.route('/journal')
@login_required
def journal_list():
    journals = _journal_store()
    collections = _collection_store()

    collection_arg = request.args.get('collection', 'all')
    try:
        collection_id = None if collection_arg == 'all' else int(collection_arg)
    except ValueError:
        collection_id = None

    selected_mood = request.args.get('mood', 'all')
    selected_tags = request.args.getlist('tag')
    favorites_only = request.args.get('favorites') == '1'
    query = request.args.get('q', '')

    entries = filter_entries(
        journals.entries,
        query=query,
        collection_id=collection_id,
        mood=None if selected_mood == 'all' else selected_mood,
        tags=selected_tags,
        favorites_only=favorites_only,
    )

    return render_template(
        'journal/list.html',
        entries=entries,
        total=len(journals.entries),
        collections=collections.collections,
        moods=available_moods(journals.entries),
        tags=available_tags(journals.entries),
        query=query,
        selected_collection=collection_arg,
        selected_mood=selected_mood,
        selected_tags=selected_tags,
        favorites_only=favorites_only,
    )


def _render_journal_form(collections, entry=None, collection=None, status=200):
    return render_template(
        'journal/form.html',
        entry=entry,
        collection=collection,
        collections=collections,
        form=request.form,
        max_tags=app.config['MAX_TAGS'],
    ), status


def _create_journal(collection=None):
    collections = _collection_store().collections

    if request.method == 'POST':
        store = JournalStore(session.get('user_id'), max_tags=app.config['MAX_TAGS'])
        collection_id = collection.id if collection else request.form.get('collection_id')
        try:
            entry = store.create(
                title=request.form.get('title'),
                content=request.form.get('content'),
                plain_text=request.form.get('plain_text'),
                collection_id=collection_id,
                mood=_mood_from_form(request.form),
                tags=_tags_from_form(request.form),
            )
        except StoreError:
            return _render_journal_form(collections, collection=collection, status=400)

        if collection is not None:
            return redirect(url_for('collection_detail', collection_id=collection.id))
        return redirect(url_for('journal_view', entry_id=entry.id))

    return _render_journal_form(collections, collection=collection)


@app.route('/journal/new', methods=['GET', 'POST'])
@login_required
def journal_new():
    return _create_journal()


@app.route('/collections/<int:collection_id>/new', methods=['GET', 'POST'])
@login_required
def collection_journal_new(collection_id):
    try:
        collection = CollectionStore(session.get('user_id')).get(collection_id)
    except NotFoundError:
        flash('Collection not found', 'error')
        return redirect(url_for('collections'))
    return _create_journal(collection)


@app.route('/journal/<int:entry_id>')
@login_required
def journal_view(entry_id):
    store = JournalStore(session.get('user_id'))
    try:
        entry = store.get(entry_id)
    except NotFoundError:
        flash('Journal entry not found', 'error')
        return redirect(url_for('journal_list'))
    return render_template('journal/view.html', entry=entry)


@app.route('/journal/<int:entry_id>/edit', methods=['GET', 'POST'])
@login_required
def journal_edit(entry_id):
    store = JournalStore(session.get('user_id'), max_tags=app.config['MAX_TAGS'])
    try:
        entry = store.get(entry_id)
    except NotFoundError:
        flash('Journal entry not found', 'error')
        return redirect(url_for('journal_list'))

    collections = _collection_store().collections

    if request.method == 'POST':
        try:
            store.update(
                entry_id,
                title=request.form.get('title', ''),
                content=request.form.get('content', ''),
                plain_text=request.form.get('plain_text'),
                mood=_mood_from_form(request.form),
                tags=_tags_from_form(request.form),
                collection_id=(request.form.get('collection_id') or None) if 'collection_id' in request.form else False,
            )
        except StoreError:
            return _render_journal_form(collections, entry=entry, status=400)
        return redirect(url_for('journal_view', entry_id=entry_id))

    return _render_journal_form(collections, entry=entry)


@app.route('/journal/<int:entry_id>/delete', methods=['POST'])
@login_required
def journal_delete(entry_id):
    store = JournalStore(session.get('user_id'))
    try:
        entry = store.get(entry_id)
        collection_id = entry.collection_id
        store.delete(entry_id)
    except NotFoundError:
        flash('Journal entry not found', 'error')
        return redirect(url_for('journal_list'))
    except StoreError:
        return redirect(url_for('journal_view', entry_id=entry_id))

    if request.form.get('next') == 'collection' and collection_id:
        return redirect(url_for('collection_detail', collection_id=collection_id))
    return redirect(url_for('journal_list'))


@app.route('/journal/<int:entry_id>/favorite', methods=['POST'])
@login_required
def journal_favorite(entry_id):
    is_ajax = wants_json()
    store = JournalStore(session.get('user_id'))
    try:
        is_favorite = store.toggle_favorite(entry_id)
    except NotFoundError:
        if is_ajax:
            return jsonify({'error': 'not_found'}), 404
        flash('Journal entry not found', 'error')
        return redirect(url_for('journal_list'))
    except StoreError:
        if is_ajax:
            return jsonify({'error': 'update_failed'}), 500
        return redirect(url_for('journal_list'))

    if is_ajax:
        return jsonify({'id': entry_id, 'is_favorite': is_favorite}), 200
    return redirect(_safe_next(request.form.get('next')) or url_for('journal_list'))


# ============================
# COLLECTIONS
# ============================

@app.route('/collections', methods=['GET', 'POST'])
@login_required
def collections():
    store = _collection_store()

    if request.method == 'POST':
        try:
            store.create(
                title=request.form.get('title'),
                description=request.form.get('description'),
                color=request.form.get('color'),
                icon=request.form.get('icon'),
            )
        except StoreError:
            pass
        return redirect(url_for('collections'))

    journals = _journal_store()
    counts = {}
    for e in journals.entries:
        counts[e.collection_id] = counts.get(e.collection_id, 0) + 1

    return render_template(
        'journal/collections.html',
        collections=store.collections,
        counts=counts,
        colors=sorted(TAILWIND_COLORS),
    )


@app.route('/collections/<int:collection_id>')
@login_required
def collection_detail(collection_id):
    try:
        collection = CollectionStore(session.get('user_id')).get(collection_id)
    except NotFoundError:
        flash('Collection not found', 'error')
        return redirect(url_for('collections'))

    journals = _journal_store(collection_id=collection_id)
    return render_template('journal/collection_detail.html', collection=collection, entries=journals.entries)


@app.route('/collections/<int:collection_id>/edit', methods=['POST'])
@login_required
def collection_edit(collection_id):
    store = CollectionStore(session.get('user_id'))
    try:
        store.update(
            collection_id,
            title=request.form.get('title'),
            description=request.form.get('description'),
            color=request.form.get('color'),
            icon=request.form.get('icon'),
        )
    except NotFoundError:
        flash('Collection not found', 'error')
        return redirect(url_for('collections'))
    except StoreError:
        pass
    return redirect(url_for('collection_detail', collection_id=collection_id))


@app.route('/collections/<int:collection_id>/delete', methods=['POST'])
@login_required
def collection_delete(collection_id):
    store = CollectionStore(session.get('user_id'))
    try:
        store.delete(collection_id)
    except NotFoundError:
        flash('Collection not found', 'error')
    except StoreError:
        pass
    return redirect(url_for('collections'))


# ============================
# ANALYTICS
# ============================

@app.route('/analytics')
@login_required
def analytics():
    journals = _journal_store()
    collections = _collection_store()
    data = build_analytics(journals.entries, collections.collections) if journals.entries else None
    return render_template('journal/analytics.html', data=data)


@app.route('/insights')
@login_required
def insights():
    journals = _journal_store()
    data = build_mood_insights(journals.entries)
    return render_template('journal/insights.html', data=data)


@app.route('/api/analytics')
@login_required
def analytics_api():
    journals = _journal_store()
    collections = _collection_store()
    return jsonify(_jsonable({
        'analytics': build_analytics(journals.entries, collections.collections),
        'insights': build_mood_insights(journals.entries),
        'dashboard': build_dashboard_stats(journals.entries),
    }))


# ============================
# PROFILE
# ============================

@app.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    user = current_user()

    if request.method == 'POST':
        user.full_name = (request.form.get('full_name') or '').strip() or None
        user.avatar_url = (request.form.get('avatar_url') or '').strip() or None
        try:
            db.session.commit()
            flash('Profile updated successfully', 'success')
        except SQLAlchemyError:
            db.session.rollback()
            app.logger.exception('Failed to update profile')
            flash('Failed to update profile', 'error')
        return redirect(url_for('profile'))

    journals = _journal_store()
    return render_template(
        'home/profile.html',
        user=user,
        themes=PROFILE_THEMES,
        stats=build_dashboard_stats(journals.entries),
    )


@app.route('/profile/theme', methods=['POST'])
@login_required
def profile_theme():
    name = request.form.get('theme')
    try:
        theme = set_theme(session.get('user_id'), name)
    except ValueError:
        flash('Unknown theme', 'error')
    except SQLAlchemyError:
        app.logger.exception('Failed to save theme preference')
        flash('Failed to save theme', 'error')
    else:
        flash(f"Theme updated to {theme['name']}", 'success')
    return redirect(url_for('profile'))


# ============================
# PROMPTS
# ============================

def _random_thought():
    if not app.config['RANDOM_THOUGHT_REMOTE']:
        return local_thought()
    return fetch_random_thought(
        quote_url=app.config['QUOTE_API_URL'],
        advice_url=app.config['ADVICE_API_URL'],
        timeout=app.config['QUOTE_TIMEOUT'],
    )


@app.route('/prompts')
@login_required
def prompts():
    all_prompts = Prompt.query.order_by(Prompt.created_at.desc(), Prompt.id.desc()).all()
    query = request.args.get('q', '')
    mood = request.args.get('mood', 'All')
    favorite_ids = favorite_prompt_ids(session.get('user_id'))

    return render_template(
        'journal/prompts.html',
        prompts=filter_prompts(all_prompts, query, mood),
        daily=daily_prompt(all_prompts),
        favorites=[p for p in all_prompts if p.id in favorite_ids],
        favorite_ids=favorite_ids,
        thought=_random_thought(),
        moods=PROMPT_MOODS,
        query=query,
        selected_mood=mood,
    )


@app.route('/prompts/thought')
@login_required
def random_thought():
    return jsonify(_random_thought())


@app.route('/prompts/<int:prompt_id>/favorite', methods=['POST'])
@login_required
def prompt_favorite(prompt_id):
    if db.session.get(Prompt, prompt_id) is None:
        flash('Prompt not found', 'error')
        return redirect(url_for('prompts'))

    try:
        added = toggle_favorite_prompt(session.get('user_id'), prompt_id)
    except SQLAlchemyError:
        app.logger.exception('Failed to update favorite prompts')
        flash('Failed to update favorites', 'error')
        return redirect(url_for('prompts'))

    if wants_json():
        return jsonify({'id': prompt_id, 'favorite': added})
    flash('Added to favorites' if added else 'Removed from favorites', 'success' if added else 'info')
    return redirect(url_for('prompts'))


# ============================
# SETUP
# ============================

DEFAULT_PROMPTS = [
    ("What made you smile today?", "Gratitude", "Happy"),
    ("Write about a moment you felt truly at peace.", "Reflection", "Neutral"),
    ("What is weighing on your mind right now, and why?", "Release", "Anxious"),
    ("Describe a loss you are still carrying.", "Healing", "Sad"),
    ("What is one bold goal for this month?", "Growth", "Ambitious"),
    ("Who are you grateful for this week?", "Gratitude", "Happy"),
    ("What would you do differently if you could replay today?", "Reflection", "Neutral"),
]


def seed_default_prompts():
    if Prompt.query.count() == 0:
        db.session.add_all([Prompt(text=t, category=c, mood=m) for t, c, m in DEFAULT_PROMPTS])
        db.session.commit()
        app.logger.info('Seeded %d default prompts', len(DEFAULT_PROMPTS))
    else:
        app.logger.info('Prompts already exist, skipping seed')


def init_db():
    with app.app_context():
        db.create_all()
        seed_default_prompts()


if __name__ == '__main__':
    logging.basicConfig(level=app.config['LOG_LEVEL'])
    init_db()
    app.run(debug=True)
