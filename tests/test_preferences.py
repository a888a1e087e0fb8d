"""
Tests for per-user preferences: themes and favourite prompts.
"""

import pytest
from extensions import db
from models import Prompt, User, UserPreference
from preferences import (
    DEFAULT_THEME, FAVORITE_PROMPTS_KEY, THEME_KEY, DatabasePreferenceStore, MemoryPreferenceStore,
    find_theme,
)


def create_user(username="prefuser"):
    user = User(username=username, email=f"{username}@example.com")
    user.set_password("testpass")
    db.session.add(user)
    db.session.commit()
    return user


def login(client, username="prefuser"):
    return client.post("/", data={"username": username, "password": "testpass"})


@pytest.fixture
def prompt(app):
    p = Prompt(text="What made you smile today?", category="Gratitude", mood="Happy")
    db.session.add(p)
    db.session.commit()
    return p


def test_memory_store_basics():
    store = MemoryPreferenceStore(user_id=1)
    assert store.get("missing") is None
    assert store.get("missing", "fallback") == "fallback"
    store.set("a", [1, 2])
    store.set("b", "x")
    assert store.all() == {"a": [1, 2], "b": "x"}
    store.delete("a")
    assert store.get("a") is None
    store.clear()
    assert store.all() == {}


def test_database_store_round_trip(app):
    user = create_user()
    store = DatabasePreferenceStore(user.id)
    store.set(THEME_KEY, "Forest")
    store.set(FAVORITE_PROMPTS_KEY, [3, 1])
    store.set(THEME_KEY, "Ocean")

    assert UserPreference.query.filter_by(user_id=user.id).count() == 2
    assert store.get(THEME_KEY) == "Ocean"
    assert store.all() == {THEME_KEY: "Ocean", FAVORITE_PROMPTS_KEY: [3, 1]}

    store.clear()
    assert store.all() == {}


def test_database_store_is_scoped_per_user(app):
    alice = create_user("alice")
    bob = create_user("bob")
    DatabasePreferenceStore(alice.id).set(THEME_KEY, "Royal")
    assert DatabasePreferenceStore(bob.id).get(THEME_KEY) is None


def test_database_store_ignores_unreadable_values(app):
    user = create_user()
    db.session.add(UserPreference(user_id=user.id, key=THEME_KEY, value="{not json"))
    db.session.commit()
    assert DatabasePreferenceStore(user.id).get(THEME_KEY, "default") == "default"


def test_find_theme():
    assert find_theme("Crimson")["from"] == "#7f1d1d"
    assert find_theme("Neon") is None
    assert DEFAULT_THEME["name"] == "Obsidian"


def test_theme_route_persists_and_applies(client):
    user = create_user()
    login(client)

    response = client.post("/profile/theme", data={"theme": "Forest"}, follow_redirects=True)
    assert b"Theme updated to Forest" in response.data
    assert b"Active theme: Forest" in response.data
    assert DatabasePreferenceStore(user.id).get(THEME_KEY) == "Forest"

    # theme is loaded again on the next sign in
    client.get("/logout")
    login(client)
    response = client.get("/profile")
    assert b"Active theme: Forest" in response.data


def test_unknown_theme_is_rejected(client):
    create_user()
    login(client)
    response = client.post("/profile/theme", data={"theme": "Neon"}, follow_redirects=True)
    assert b"Unknown theme" in response.data
    assert b"Active theme: Obsidian" in response.data


def test_injected_store_factory(client, app):
    stores = {}

    def factory(user_id):
        return stores.setdefault(user_id, MemoryPreferenceStore(user_id))

    app.config["PREFERENCE_STORE_FACTORY"] = factory
    user = create_user()
    login(client)
    client.post("/profile/theme", data={"theme": "Midnight"})

    assert stores[user.id].get(THEME_KEY) == "Midnight"
    assert UserPreference.query.count() == 0


def test_favorite_prompt_toggle(client, prompt):
    user = create_user()
    login(client)

    response = client.post(f"/prompts/{prompt.id}/favorite", follow_redirects=True)
    assert b"Added to favorites" in response.data
    assert DatabasePreferenceStore(user.id).get(FAVORITE_PROMPTS_KEY) == [prompt.id]

    response = client.post(f"/prompts/{prompt.id}/favorite", follow_redirects=True)
    assert b"Removed from favorites" in response.data
    assert DatabasePreferenceStore(user.id).get(FAVORITE_PROMPTS_KEY) == []


def test_favorite_unknown_prompt(client):
    create_user()
    login(client)
    response = client.post("/prompts/9999/favorite", follow_redirects=True)
    assert b"Prompt not found" in response.data


def test_profile_update(client):
    user = create_user()
    login(client)
    response = client.post("/profile", data={"full_name": "Pref User", "avatar_url": ""},
                           follow_redirects=True)
    assert b"Profile updated successfully" in response.data
    assert db.session.get(User, user.id).full_name == "Pref User"
