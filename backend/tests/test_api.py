"""
Tests for the HTTP API surface
"""
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import OperationalError

from app.database import get_db
from app.main import app as fastapi_app


def _broken_db():
    session = MagicMock()
    session.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection lost")))
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def _save(client, **overrides):
    body = {"sessionId": "g1", "movieId": 42, "mediaType": "movie", "timestamp": 1500, "duration": 3000}
    body.update(overrides)
    return client.post("/api/watch-progress", json=body)


class TestWatchProgressApi:
    """Tests for /api/watch-progress"""

    def test_save_and_lookup(self, api_client):
        response = _save(api_client, progress=99)
        assert response.status_code == 200
        assert response.json() == {"message": "Progress saved successfully"}

        response = api_client.get("/api/watch-progress",
                                  params={"sessionId": "g1", "movieId": 42, "mediaType": "movie"})
        assert response.status_code == 200
        progress = response.json()["progress"]
        assert progress["movieId"] == 42
        assert progress["timestamp"] == 1500
        assert progress["progress"] == 50

    def test_resave_updates_single_record(self, api_client):
        _save(api_client, timestamp=100)
        _save(api_client, timestamp=200)

        response = api_client.get("/api/watch-progress", params={"sessionId": "g1"})
        records = response.json()["progress"]
        assert len(records) == 1
        assert records[0]["timestamp"] == 200

    def test_lookup_missing_returns_null(self, api_client):
        response = api_client.get("/api/watch-progress", params={"userId": "u1", "movieId": 1})
        assert response.status_code == 200
        assert response.json() == {"progress": None}

    def test_guest_and_account_are_separate(self, api_client):
        _save(api_client)

        response = api_client.get("/api/watch-progress", params={"userId": "u1"})
        assert response.json() == {"progress": []}

    def test_missing_identity(self, api_client):
        response = api_client.get("/api/watch-progress", params={"movieId": 42})
        assert response.status_code == 400

        response = api_client.post("/api/watch-progress", json={"movieId": 42, "mediaType": "movie"})
        assert response.status_code == 422

    def test_negative_timestamp_rejected(self, api_client):
        assert _save(api_client, timestamp=-1).status_code == 422

    def test_list_defaults_to_twenty(self, api_client):
        for movie_id in range(1, 23):
            _save(api_client, movieId=movie_id)

        response = api_client.get("/api/watch-progress", params={"sessionId": "g1"})
        assert len(response.json()["progress"]) == 20

        response = api_client.get("/api/watch-progress", params={"sessionId": "g1", "limit": 5})
        assert len(response.json()["progress"]) == 5


class TestContinueWatchingApi:
    """Tests for /api/continue-watching"""

    def test_lists_in_progress_titles(self, api_client):
        _save(api_client, movieId=1, timestamp=1500)
        _save(api_client, movieId=2, timestamp=30)

        response = api_client.get("/api/continue-watching", params={"sessionId": "g1"})

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["item"]["id"] == 1
        assert items[0]["item"]["title"] == "Movie 1"
        assert items[0]["media_type"] == "movie"

    def test_missing_identity(self, api_client):
        assert api_client.get("/api/continue-watching").status_code == 400


class TestFavoritesApi:
    """Tests for /api/favorites"""

    def test_requires_account(self, api_client):
        assert api_client.get("/api/favorites").status_code == 401
        response = api_client.post("/api/favorites", json={"movieId": 1, "mediaType": "movie"})
        assert response.status_code == 401

    def test_add_list_check_remove(self, api_client):
        response = api_client.post("/api/favorites", json={
            "userId": "u1", "movieId": 7, "mediaType": "tv", "title": "The Wire", "posterPath": "/w.jpg",
        })
        assert response.status_code == 201
        assert response.json()["title"] == "The Wire"

        favorites = api_client.get("/api/favorites", params={"userId": "u1"}).json()["favorites"]
        assert [(f["movieId"], f["mediaType"]) for f in favorites] == [(7, "tv")]

        status = api_client.get("/api/favorites", params={"userId": "u1", "movieId": 7, "mediaType": "tv"})
        assert status.json() == {"isFavorite": True}

        response = api_client.delete("/api/favorites", params={"userId": "u1", "movieId": 7, "mediaType": "tv"})
        assert response.status_code == 204

        status = api_client.get("/api/favorites", params={"userId": "u1", "movieId": 7, "mediaType": "tv"})
        assert status.json() == {"isFavorite": False}

    def test_adding_twice_keeps_one(self, api_client):
        body = {"userId": "u1", "movieId": 7, "mediaType": "movie", "title": "Heat"}
        api_client.post("/api/favorites", json=body)
        api_client.post("/api/favorites", json={**body, "title": "Heat (1995)"})

        favorites = api_client.get("/api/favorites", params={"userId": "u1"}).json()["favorites"]
        assert len(favorites) == 1
        assert favorites[0]["title"] == "Heat (1995)"


class TestFavoritesStorageFailures:
    """Database failures on every favorites path render as STORAGE_ERROR"""

    def _use_broken_db(self):
        session = _broken_db()
        fastapi_app.dependency_overrides[get_db] = lambda: session
        return session

    def test_list_failure(self, api_client):
        session = self._use_broken_db()

        response = api_client.get("/api/favorites", params={"userId": "u1"})

        assert response.status_code == 500
        assert response.json()["code"] == "STORAGE_ERROR"
        session.rollback.assert_awaited_once()

    def test_status_failure(self, api_client):
        self._use_broken_db()

        response = api_client.get("/api/favorites", params={"userId": "u1", "movieId": 7, "mediaType": "tv"})

        assert response.status_code == 500

    def test_remove_failure(self, api_client):
        session = self._use_broken_db()

        response = api_client.delete("/api/favorites", params={"userId": "u1", "movieId": 7, "mediaType": "tv"})

        assert response.status_code == 500
        assert response.json()["code"] == "STORAGE_ERROR"
        session.commit.assert_not_awaited()
        session.rollback.assert_awaited_once()


class TestAuthApi:
    """Tests for /api/auth"""

    ACCOUNT = {"email": "Ana@Example.com", "name": "Ana", "password": "s3cret!"}

    def test_register_and_login(self, api_client):
        response = api_client.post("/api/auth/register", json=self.ACCOUNT)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "User created successfully"
        assert body["user"]["email"] == "ana@example.com"
        assert "password" not in body["user"]
        assert "passwordHash" not in body["user"]

        response = api_client.post("/api/auth/login", json={"email": "ana@example.com", "password": "s3cret!"})
        assert response.status_code == 200
        assert response.json()["user"]["id"] == body["user"]["id"]
        assert response.json()["user"]["lastLogin"] is not None

    def test_duplicate_email(self, api_client):
        api_client.post("/api/auth/register", json=self.ACCOUNT)
        response = api_client.post("/api/auth/register", json={**self.ACCOUNT, "email": "ana@example.com"})
        assert response.status_code == 409

    def test_missing_fields(self, api_client):
        response = api_client.post("/api/auth/register", json={"email": "x@example.com"})
        assert response.status_code == 400

    def test_bad_password(self, api_client):
        api_client.post("/api/auth/register", json=self.ACCOUNT)
        response = api_client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"})
        assert response.status_code == 401


class TestMiscApi:
    """Tests for playback URLs and health"""

    def test_movie_watch_url(self, api_client):
        response = api_client.get("/api/catalog/movie/1/watch")
        assert response.status_code == 200
        body = response.json()
        assert body["url"].endswith("/movie/1")
        assert body["stream_type"] == "iframe"

    def test_tv_watch_url(self, api_client):
        response = api_client.get("/api/catalog/tv/5/watch", params={"season": 2, "episode": 4})
        assert response.json()["url"].endswith("/tv/5/2/4")

    def test_details_via_catalog(self, api_client):
        response = api_client.get("/api/catalog/tv/5")
        assert response.status_code == 200
        assert response.json()["name"] == "Show 5"

    def test_health(self, api_client):
        response = api_client.get("/health")
        assert response.json()["status"] == "ok"
