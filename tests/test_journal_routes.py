import pytest
from datetime import datetime, timedelta
from models import Collection, JournalEntry, User
from extensions import db


@pytest.mark.usefixtures("client")
class TestJournalRoutes:
    def _create_and_login_user(self, client, username="testuser"):
        """Helper to create a user and log in"""
        user = User(username=username, email=f"{username}@example.com", full_name="Test User")
        user.set_password("testpass")
        db.session.add(user)
        db.session.commit()
        user_id = user.id

        client.post("/", data={"username": username, "password": "testpass"})
        return user_id

    def _post_entry(self, client, **overrides):
        data = {
            "title": "Relaxed",
            "content": "<p>Had a peaceful day with tea and reading.</p>",
            "collection_id": "",
            "mood_emoji": "😌",
            "mood_label": "Calm",
            "mood_intensity": "4",
            "tags": "tea, reading",
        }
        data.update(overrides)
        return client.post("/journal/new", data=data, follow_redirects=False)

    def test_journal_list_requires_login(self, client):
        response = client.get("/journal")
        assert response.status_code == 302

    def test_empty_journal_list(self, client):
        self._create_and_login_user(client)
        response = client.get("/journal")
        assert response.status_code == 200
        assert b"Showing 0 of 0 entries" in response.data

    def test_new_entry_form_renders(self, client):
        self._create_and_login_user(client)
        response = client.get("/journal/new")
        assert response.status_code == 200
        assert b"New entry" in response.data

    def test_post_creates_entry(self, client):
        """POST /journal/new should create an entry with mood and tags"""
        user_id = self._create_and_login_user(client)
        response = self._post_entry(client)
        assert response.status_code == 302

        stored = JournalEntry.query.filter_by(user_id=user_id).first()
        assert stored is not None
        assert stored.title == "Relaxed"
        assert stored.plain_text == "Had a peaceful day with tea and reading."
        assert stored.mood.emoji == "😌"
        assert stored.mood.label == "Calm"
        assert stored.mood.intensity == 4
        assert stored.tags == ["tea", "reading"]
        assert response.location.endswith(f"/journal/{stored.id}")

    def test_post_rejects_too_many_tags(self, client):
        self._create_and_login_user(client)
        response = self._post_entry(client, tags="a,b,c,d,e,f")
        assert response.status_code == 400
        assert b"Maximum 5 tags allowed" in response.data
        assert JournalEntry.query.count() == 0

    def test_post_requires_title(self, client):
        self._create_and_login_user(client)
        response = self._post_entry(client, title="   ")
        assert response.status_code == 400
        assert b"Title is required" in response.data

    def test_view_entry(self, client):
        self._create_and_login_user(client)
        self._post_entry(client)
        entry = JournalEntry.query.first()

        response = client.get(f"/journal/{entry.id}")
        assert response.status_code == 200
        assert b"Relaxed" in response.data
        assert b"#tea" in response.data
        assert b"(4/5)" in response.data

    def test_view_missing_entry_redirects(self, client):
        self._create_and_login_user(client)
        response = client.get("/journal/9999", follow_redirects=True)
        assert response.status_code == 200
        assert b"Journal entry not found" in response.data

    def test_cannot_view_other_users_entry(self, client):
        self._create_and_login_user(client, "owner")
        self._post_entry(client, title="Private thoughts")
        entry_id = JournalEntry.query.first().id
        client.get("/logout")

        self._create_and_login_user(client, "visitor")
        response = client.get(f"/journal/{entry_id}", follow_redirects=True)
        assert b"Private thoughts" not in response.data
        assert b"Journal entry not found" in response.data

    def test_edit_entry(self, client):
        self._create_and_login_user(client)
        self._post_entry(client)
        entry = JournalEntry.query.first()

        response = client.post(f"/journal/{entry.id}/edit", data={
            "title": "Updated",
            "content": "<p>Changed my mind</p>",
            "mood_label": "Happy",
            "mood_intensity": "5",
            "tags": "tea",
        })
        assert response.status_code == 302

        updated = db.session.get(JournalEntry, entry.id)
        assert updated.title == "Updated"
        assert updated.plain_text == "Changed my mind"
        assert updated.mood.label == "Happy"
        assert updated.mood.intensity == 5
        assert updated.tags == ["tea"]
        assert updated.updated_at is not None

    def test_edit_without_collection_field_keeps_collection(self, client):
        user_id = self._create_and_login_user(client)
        collection = Collection(user_id=user_id, title="Work")
        db.session.add(collection)
        db.session.commit()
        self._post_entry(client, collection_id=str(collection.id))
        entry = JournalEntry.query.first()
        assert entry.collection_id == collection.id

        client.post(f"/journal/{entry.id}/edit", data={"title": "Still work", "tags": ""})
        assert db.session.get(JournalEntry, entry.id).collection_id == collection.id

    def test_delete_entry(self, client):
        self._create_and_login_user(client)
        self._post_entry(client)
        entry_id = JournalEntry.query.first().id

        response = client.post(f"/journal/{entry_id}/delete")
        assert response.status_code == 302
        assert response.location.endswith("/journal")
        assert db.session.get(JournalEntry, entry_id) is None

    def test_delete_from_collection_returns_to_collection(self, client):
        user_id = self._create_and_login_user(client)
        collection = Collection(user_id=user_id, title="Dreams")
        db.session.add(collection)
        db.session.commit()
        collection_id = collection.id
        client.post(f"/collections/{collection_id}/new", data={"title": "Flying"})
        entry_id = JournalEntry.query.first().id

        response = client.post(f"/journal/{entry_id}/delete", data={"next": "collection"})
        assert response.location.endswith(f"/collections/{collection_id}")

    def test_deleted_entry_disappears_from_analytics(self, client):
        self._create_and_login_user(client)
        self._post_entry(client, title="First")
        self._post_entry(client, title="Second", tags="work", mood_label="Sad")
        assert client.get("/api/analytics").get_json()["analytics"]["total_entries"] == 2

        second = JournalEntry.query.filter_by(title="Second").first()
        client.post(f"/journal/{second.id}/delete")

        data = client.get("/api/analytics").get_json()
        assert data["analytics"]["total_entries"] == 1
        assert [m["name"] for m in data["analytics"]["moods"]] == ["Calm"]
        assert "work" not in [t["name"] for t in data["analytics"]["top_tags"]]
        assert data["dashboard"]["total"] == 1

    def test_ajax_favorite_toggle(self, client):
        self._create_and_login_user(client)
        self._post_entry(client)
        entry_id = JournalEntry.query.first().id

        headers = {"X-Requested-With": "XMLHttpRequest"}
        response = client.post(f"/journal/{entry_id}/favorite", headers=headers)
        assert response.status_code == 200
        assert response.get_json() == {"id": entry_id, "is_favorite": True}

        response = client.post(f"/journal/{entry_id}/favorite", headers=headers)
        assert response.get_json()["is_favorite"] is False

        response = client.post("/journal/9999/favorite", headers=headers)
        assert response.status_code == 404

    def test_favorite_redirect_stays_on_site(self, client):
        self._create_and_login_user(client)
        self._post_entry(client)
        entry_id = JournalEntry.query.first().id

        response = client.post(f"/journal/{entry_id}/favorite", data={"next": f"/journal/{entry_id}"})
        assert response.location.endswith(f"/journal/{entry_id}")

        for target in ("https://evil.example/phish", "//evil.example", "/\\evil.example", "journal"):
            response = client.post(f"/journal/{entry_id}/favorite", data={"next": target})
            assert response.status_code == 302
            assert "evil.example" not in response.location
            assert response.location.endswith("/journal")

    def test_list_filters(self, client):
        self._create_and_login_user(client)
        self._post_entry(client, title="Morning tea", tags="tea")
        self._post_entry(client, title="Gym day", mood_label="Energized", tags="sport")
        gym = JournalEntry.query.filter_by(title="Gym day").first()
        client.post(f"/journal/{gym.id}/favorite")

        response = client.get("/journal?q=gym")
        assert b"Showing 1 of 2 entries" in response.data
        assert b"Gym day" in response.data

        response = client.get("/journal?mood=Calm")
        assert b"Showing 1 of 2 entries" in response.data
        assert b"Morning tea" in response.data

        response = client.get("/journal?tag=sport&favorites=1")
        assert b"Showing 1 of 2 entries" in response.data

        response = client.get("/journal?q=nothing-matches")
        assert b"Showing 0 of 2 entries" in response.data

    def test_dashboard_shows_streak_and_recent_entries(self, client):
        user_id = self._create_and_login_user(client)
        today = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)
        for i in range(3):
            db.session.add(JournalEntry(user_id=user_id, title=f"Day {i}",
                                        created_at=today - timedelta(days=i)))
        db.session.commit()

        response = client.get("/dashboard")
        assert response.status_code == 200
        assert b"Mindful Streak" in response.data
        assert b"3 Days" in response.data
        assert b"Day 0" in response.data
        assert b"Recent Entries" in response.data

    def test_dashboard_streak_counts_from_yesterday(self, client):
        user_id = self._create_and_login_user(client)
        yesterday = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0) - timedelta(days=1)
        db.session.add(JournalEntry(user_id=user_id, title="Late", created_at=yesterday))
        db.session.commit()

        response = client.get("/dashboard")
        assert b"1 Days" in response.data

    def test_unknown_page_renders_404(self, client):
        response = client.get("/does-not-exist")
        assert response.status_code == 404
        assert b"Page not found" in response.data
