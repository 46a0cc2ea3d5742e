"""
tests/integration/test_users.py — Integration tests for profile endpoints.

  GET   /users/me/profile  — profile, stats, top songs, top genres
  PATCH /users/me/profile  — partial update; empty payload is NO_FIELDS_TO_UPDATE
  GET   /users/me/catalog  — filter, sort and pagination
  GET   /users/:id/profile — stats and top songs for friends only
  GET   /users/:id         — admin only (403 for a plain user)
"""

from __future__ import annotations

import pytest

from backend.tests.integration.conftest import auth_headers, login, make_admin, register


class TestProfile:

    def test_empty_profile(self, client):
        data = register(client)
        headers = auth_headers(data["access_token"])

        resp = client.get("/api/v1/users/me/profile", headers=headers)

        assert resp.status_code == 200
        profile = resp.get_json()["data"]
        assert profile["user"]["email"] == "alice@test.com"
        assert profile["stats"] == {
            "total_ratings": 0,
            "avg_rating": None,
            "total_favorites": 0,
            "total_comments": 0,
        }
        assert profile["top_songs"] == []
        assert profile["top_genres"] == []

    def test_stats_top_songs_and_genres(self, client):
        headers = auth_headers(register(client)["access_token"])
        client.post("/api/v1/songs/track-1/rate", json={"rating": 3}, headers=headers)
        client.post("/api/v1/songs/track-3/rate", json={"rating": 5}, headers=headers)
        client.post("/api/v1/songs/track-1/favorite", headers=headers)
        client.post("/api/v1/songs/track-1/comment", json={"content": "classic"}, headers=headers)

        profile = client.get("/api/v1/users/me/profile", headers=headers).get_json()["data"]

        assert profile["stats"] == {
            "total_ratings": 2,
            "avg_rating": 4.0,
            "total_favorites": 1,
            "total_comments": 1,
        }
        assert [s["external_id"] for s in profile["top_songs"]] == ["track-3", "track-1"]
        assert profile["top_songs"][1]["album_image"] == "https://img.test/album-1.jpg"
        assert profile["top_songs"][0]["album_image"] is None
        # "art rock" is shared by both artists
        assert profile["top_genres"][0] == {"genre": "art rock", "count": 2}
        assert {g["genre"] for g in profile["top_genres"]} == {
            "art rock", "alternative rock", "electronic",
        }

    def test_update_profile(self, client):
        headers = auth_headers(register(client)["access_token"])

        resp = client.patch(
            "/api/v1/users/me/profile",
            json={"bio": "Listens to everything.", "profile_picture_url": "https://img.test/me.png"},
            headers=headers,
        )

        assert resp.status_code == 200
        user = resp.get_json()["data"]["user"]
        assert user["bio"] == "Listens to everything."
        assert user["profile_picture_url"] == "https://img.test/me.png"
        assert user["display_name"] == "alice"

    def test_update_with_null_clears_field(self, client):
        headers = auth_headers(register(client)["access_token"])

        resp = client.patch("/api/v1/users/me/profile", json={"display_name": None}, headers=headers)

        assert resp.get_json()["data"]["user"]["display_name"] is None

    def test_empty_update_is_rejected(self, client):
        headers = auth_headers(register(client)["access_token"])

        resp = client.patch("/api/v1/users/me/profile", json={}, headers=headers)

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "NO_FIELDS_TO_UPDATE"


class TestAdminLookup:

    def test_plain_user_is_forbidden(self, client):
        data = register(client)

        resp = client.get(
            f"/api/v1/users/{data['user']['id']}",
            headers=auth_headers(data["access_token"]),
        )

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_admin_can_look_up_any_user(self, app, client):
        admin = register(client, name="admin")
        other = register(client, name="bob")
        make_admin(app, admin["user"]["id"])
        token = login(client, "admin@test.com")["access_token"]

        resp = client.get(f"/api/v1/users/{other['user']['id']}", headers=auth_headers(token))

        assert resp.status_code == 200
        assert resp.get_json()["data"]["user"]["email"] == "bob@test.com"

    def test_admin_lookup_of_missing_user(self, app, client):
        admin = register(client, name="admin")
        make_admin(app, admin["user"]["id"])
        token = login(client, "admin@test.com")["access_token"]

        resp = client.get("/api/v1/users/999999", headers=auth_headers(token))

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"


class TestCatalog:

    @pytest.fixture
    def headers(self, client):
        headers = auth_headers(register(client)["access_token"])
        client.post("/api/v1/songs/track-1/rate", json={"rating": 3}, headers=headers)
        client.post("/api/v1/songs/track-3/rate", json={"rating": 5}, headers=headers)
        client.post("/api/v1/songs/track-2/favorite", headers=headers)
        client.post("/api/v1/songs/track-1/comment", json={"content": "classic"}, headers=headers)
        return headers

    def _catalog(self, client, headers, query=""):
        resp = client.get(f"/api/v1/users/me/catalog{query}", headers=headers)
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()["data"]

    def test_one_entry_per_song_with_interactions_folded_in(self, client, headers):
        data = self._catalog(client, headers)

        assert data["pagination"] == {"page": 1, "limit": 20, "total": 3, "total_pages": 1}
        by_id = {s["external_id"]: s for s in data["songs"]}
        assert by_id["track-1"]["rating"] == 3
        assert by_id["track-1"]["comment"] == "classic"
        assert by_id["track-1"]["favorited"] is False
        assert by_id["track-1"]["album_name"] == "OK Computer"
        assert by_id["track-2"]["rating"] is None
        assert by_id["track-2"]["favorited"] is True
        assert by_id["track-3"]["artist_name"] == "Aphex Twin"
        assert all(s["last_interaction"] for s in data["songs"])

    @pytest.mark.parametrize("filter_by, expected", [
        ("rated", {"track-1", "track-3"}),
        ("favorited", {"track-2"}),
        ("commented", {"track-1"}),
    ])
    def test_filter(self, client, headers, filter_by, expected):
        data = self._catalog(client, headers, f"?filter={filter_by}")

        assert {s["external_id"] for s in data["songs"]} == expected
        assert data["pagination"]["total"] == len(expected)

    def test_sort_by_rating_puts_unrated_last(self, client, headers):
        desc = self._catalog(client, headers, "?sort=rating")
        asc = self._catalog(client, headers, "?sort=rating&order=asc")

        assert [s["external_id"] for s in desc["songs"]] == ["track-3", "track-1", "track-2"]
        assert [s["external_id"] for s in asc["songs"]] == ["track-1", "track-3", "track-2"]

    def test_sort_by_name_and_paginate(self, client, headers):
        page_1 = self._catalog(client, headers, "?sort=name&order=asc&limit=2")
        page_2 = self._catalog(client, headers, "?sort=name&order=asc&limit=2&page=2")

        assert [s["name"] for s in page_1["songs"]] == ["Karma Police", "Paranoid Android"]
        assert [s["name"] for s in page_2["songs"]] == ["Windowlicker"]
        assert page_2["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}

    def test_empty_catalog(self, client):
        headers = auth_headers(register(client, name="bob")["access_token"])

        data = self._catalog(client, headers)

        assert data["songs"] == []
        assert data["pagination"]["total_pages"] == 0

    @pytest.mark.parametrize("query", ["?sort=plays", "?filter=skipped", "?limit=0", "?page=0"])
    def test_bad_query_is_rejected(self, client, headers, query):
        resp = client.get(f"/api/v1/users/me/catalog{query}", headers=headers)

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_FIELD"


class TestPublicProfile:

    def _setup(self, client):
        alice = register(client, name="alice")
        bob = register(client, name="bob")
        bob_headers = auth_headers(bob["access_token"])
        client.post("/api/v1/songs/track-3/rate", json={"rating": 5}, headers=bob_headers)
        return alice, bob

    def test_non_friend_sees_public_fields_only(self, client):
        alice, bob = self._setup(client)

        resp = client.get(
            f"/api/v1/users/{bob['user']['id']}/profile",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["is_friend"] is False
        assert data["user"]["display_name"] == "bob"
        assert "email" not in data["user"]
        assert "role" not in data["user"]
        assert "stats" not in data
        assert "top_songs" not in data

    def test_friend_sees_stats_and_top_songs(self, client):
        alice, bob = self._setup(client)
        alice_headers = auth_headers(alice["access_token"])
        client.post(f"/api/v1/friends/request/{bob['user']['id']}", headers=alice_headers)
        client.post(
            f"/api/v1/friends/accept/{alice['user']['id']}",
            headers=auth_headers(bob["access_token"]),
        )

        data = client.get(
            f"/api/v1/users/{bob['user']['id']}/profile", headers=alice_headers,
        ).get_json()["data"]

        assert data["is_friend"] is True
        assert data["stats"] == {"total_ratings": 1, "avg_rating": 5.0, "total_favorites": 0}
        assert [s["external_id"] for s in data["top_songs"]] == ["track-3"]

    def test_pending_request_is_not_enough(self, client):
        alice, bob = self._setup(client)
        alice_headers = auth_headers(alice["access_token"])
        client.post(f"/api/v1/friends/request/{bob['user']['id']}", headers=alice_headers)

        data = client.get(
            f"/api/v1/users/{bob['user']['id']}/profile", headers=alice_headers,
        ).get_json()["data"]

        assert data["is_friend"] is False
        assert "stats" not in data

    def test_unknown_user(self, client):
        headers = auth_headers(register(client)["access_token"])

        resp = client.get("/api/v1/users/999999/profile", headers=headers)

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"
