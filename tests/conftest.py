"""
Pytest configuration and fixtures for testing.
Every test runs against an isolated in-memory SQLite database.
"""

import os

# Must be set before the app module is imported: the engine is created at init time.
os.environ["MINDNEST_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RANDOM_THOUGHT_REMOTE"] = "false"

import pytest
from flask import g
from app import app as flask_app
from extensions import db
from models import (  # Import models to ensure they are loaded
    Collection, JournalEntry, JournalMood, JournalTag, Prompt, User, UserPreference,
)


@pytest.fixture(scope="session")
def app():
    """
    Create the Flask app with an in-memory SQLite database.
    """
    flask_app.config.update(
        TESTING=True,
        RANDOM_THOUGHT_REMOTE=False,
    )

    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    """Provides a Flask test client for HTTP requests."""
    with app.test_client() as client:
        yield client


@pytest.fixture(autouse=True)
def clear_db(app):
    """Clear all data between tests to ensure isolation."""
    yield
    db.session.rollback()
    for model in (JournalTag, JournalMood, JournalEntry, Collection, UserPreference, Prompt, User):
        db.session.query(model).delete()
    db.session.commit()
    db.session.remove()
    # the app context outlives each test, so g does too
    g.pop("auth_gate", None)
    app.config["PREFERENCE_STORE_FACTORY"] = None
