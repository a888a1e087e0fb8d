import enum
import logging
from datetime import datetime
from functools import wraps

from flask import g, jsonify, redirect, request, session, url_for
from sqlalchemy import or_

from extensions import db
from models import User

logger = logging.getLogger(__name__)


class AuthState(enum.Enum):
    LOADING = 'loading'
    AUTHENTICATED = 'authenticated'
    UNAUTHENTICATED = 'unauthenticated'


class AuthGate:
    """Resolves whether the current session may see authenticated views.

    The gate starts in LOADING and nothing is rendered until ``check()`` has
    resolved it to AUTHENTICATED or UNAUTHENTICATED.
    """

    def __init__(self):
        self.state = AuthState.LOADING
        self.user = None

    def check(self):
        user_id = session.get('user_id')
        user = db.session.get(User, user_id) if session.get('logged_in') and user_id else None
        if user is None:
            if user_id is not None:
                # stale session for a removed account
                session.clear()
            self.state = AuthState.UNAUTHENTICATED
        else:
            self.user = user
            self.state = AuthState.AUTHENTICATED
        return self.state

    @property
    def allowed(self):
        return self.state is AuthState.AUTHENTICATED


def wants_json():
    if request.path.startswith('/api/'):
        return True
    return request.headers.get('X-Requested-With') == 'XMLHttpRequest' or \
        'application/json' in request.headers.get('Accept', '')


def current_user():
    """Return the logged-in user based on session storage."""
    gate = getattr(g, 'auth_gate', None)
    if gate is None:
        gate = AuthGate()
        gate.check()
        g.auth_gate = gate
    return gate.user


def login_required(fn):
    """Redirect to the login view unless the session belongs to a live account."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        gate = AuthGate()
        g.auth_gate = gate
        if gate.check() is not AuthState.AUTHENTICATED:
            if wants_json():
                return jsonify({'error': 'login_required'}), 401
            return redirect(url_for('login'))
        return fn(*args, **kwargs)

    return wrapper


def sign_in(identifier, password):
    """Authenticate by username or e-mail; returns the user or None."""
    if not identifier or not password:
        return None
    user = User.query.filter(or_(User.username == identifier, User.email == identifier)).first()
    if user is None or not user.check_password(password):
        logger.info('Failed sign-in for %r', identifier)
        return None

    user.last_sign_in_at = datetime.now()
    db.session.commit()

    session.clear()
    session['logged_in'] = True
    session['user_id'] = user.id
    g.pop('auth_gate', None)
    return user


def sign_out():
    session.clear()
    g.pop('auth_gate', None)
