"""
tests/fakes.py — In-memory stand-ins for Redis and the catalog HTTP API.

FakeTokenCache has the same get / set / delete / connect surface as
services/token_cache.TokenCache and records the TTL of every write.

FakeCatalogSession replaces the requests.Session inside CatalogClient. It
answers the client-credentials grant and the /search, /tracks, /albums and
/artists endpoints with real requests.Response objects built from the
Spotify-shaped fixtures below, and counts every call.
"""

from __future__ import annotations

import copy
import json
import time
from typing import Callable

import requests

from backend.musicbox.errors import CacheUnavailable

API_URL = "https://catalog.test/v1"
TOKEN_URL = "https://catalog.test/api/token"


# ── Catalog fixtures ───────────────────────────────────────────────────────

ARTISTS = {
    "artist-1": {
        "id": "artist-1",
        "name": "Radiohead",
        "images": [{"url": "https://img.test/artist-1.jpg"}],
        "genres": ["alternative rock", "art rock"],
        "popularity": 80,
    },
    "artist-2": {
        "id": "artist-2",
        "name": "Aphex Twin",
        "images": [],
        "genres": ["electronic", "art rock"],
        "popularity": 65,
    },
}

ALBUMS = {
    "album-1": {
        "id": "album-1",
        "name": "OK Computer",
        "images": [{"url": "https://img.test/album-1.jpg"}],
        "release_date": "1997-05-21",
        "total_tracks": 2,
        "artists": [{"id": "artist-1", "name": "Radiohead"}],
        "genres": [],
        "tracks": {
            "items": [
                {"id": "track-1", "name": "Paranoid Android", "duration_ms": 387000, "track_number": 1},
                {"id": "track-2", "name": "Karma Police", "duration_ms": 264000, "track_number": 2},
            ]
        },
    },
}

_ALBUM_REF = {
    "id": "album-1",
    "name": "OK Computer",
    "images": [{"url": "https://img.test/album-1.jpg"}],
    "release_date": "1997-05-21",
}

TRACKS = {
    "track-1": {
        "id": "track-1",
        "name": "Paranoid Android",
        "duration_ms": 387000,
        "preview_url": "https://preview.test/track-1.mp3",
        "popularity": 75,
        "artists": [{"id": "artist-1", "name": "Radiohead"}],
        "album": _ALBUM_REF,
    },
    "track-2": {
        "id": "track-2",
        "name": "Karma Police",
        "duration_ms": 264000,
        "preview_url": None,
        "popularity": 70,
        "artists": [{"id": "artist-1", "name": "Radiohead"}],
        "album": _ALBUM_REF,
    },
    # A loose single: no album on the track payload.
    "track-3": {
        "id": "track-3",
        "name": "Windowlicker",
        "duration_ms": 366000,
        "popularity": 60,
        "artists": [{"id": "artist-2", "name": "Aphex Twin"}],
    },
}


def make_response(url: str, status: int, body) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.reason = "OK" if status < 400 else "Error"
    response._content = json.dumps(body).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response


# ── Fakes ──────────────────────────────────────────────────────────────────

class Clock:
    """Settable stand-in for time.time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeTokenCache:
    """Keys written with a ttl disappear once `clock` passes their expiry."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.expires_at: dict[str, float] = {}
        self.clock = clock
        self.connected = False
        self.fail = False

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.connected = False

    def _check(self) -> None:
        if self.fail:
            raise CacheUnavailable()

    def _evict_if_expired(self, key: str) -> None:
        expiry = self.expires_at.get(key)
        if expiry is not None and self.clock() >= expiry:
            self.store.pop(key, None)
            self.ttls.pop(key, None)
            self.expires_at.pop(key, None)

    def get(self, key: str) -> str | None:
        self._check()
        self._evict_if_expired(key)
        return self.store.get(key)

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._check()
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store[key] = value
        self.ttls[key] = ttl_seconds
        if ttl_seconds is None:
            self.expires_at.pop(key, None)
        else:
            self.expires_at[key] = self.clock() + ttl_seconds

    def delete(self, key: str) -> None:
        self._check()
        self.store.pop(key, None)
        self.ttls.pop(key, None)
        self.expires_at.pop(key, None)


class FakeCatalogSession:

    def __init__(self, expires_in: int = 3600) -> None:
        self.expires_in = expires_in
        self.tracks = copy.deepcopy(TRACKS)
        self.albums = copy.deepcopy(ALBUMS)
        self.artists = copy.deepcopy(ARTISTS)

        self.grant_calls: list[dict] = []
        self.get_calls: list[str] = []
        self.last_headers: dict | None = None

        self.grant_status = 200
        self.fail_paths: set[str] = set()
        self.raise_on_get: Exception | None = None
        self.closed = False

    # -- requests.Session surface --

    def post(self, url, data=None, auth=None, timeout=None):
        self.grant_calls.append({"url": url, "data": data, "auth": auth, "timeout": timeout})
        if self.grant_status != 200:
            return make_response(url, self.grant_status, {"error": "invalid_client"})
        return make_response(url, 200, {
            "access_token": f"svc-token-{len(self.grant_calls)}",
            "token_type": "Bearer",
            "expires_in": self.expires_in,
        })

    def get(self, url, params=None, headers=None, timeout=None):
        path = url[len(API_URL):]
        self.get_calls.append(path)
        self.last_headers = headers

        if self.raise_on_get is not None:
            raise self.raise_on_get
        if path in self.fail_paths:
            return make_response(url, 503, {"error": {"status": 503, "message": "unavailable"}})

        if path == "/search":
            if params["type"] == "track":
                items = list(self.tracks.values())
                return make_response(url, 200, {"tracks": {"items": items}})
            items = [
                {k: v for k, v in album.items() if k != "tracks"}
                for album in self.albums.values()
            ]
            return make_response(url, 200, {"albums": {"items": items}})

        kind, _, external_id = path.strip("/").partition("/")
        store = {"tracks": self.tracks, "albums": self.albums, "artists": self.artists}.get(kind, {})
        if external_id in store:
            return make_response(url, 200, store[external_id])
        return make_response(url, 404, {"error": {"status": 404, "message": "non existing id"}})

    def close(self) -> None:
        self.closed = True

    # -- helpers --

    def entity_calls(self, prefix: str) -> list[str]:
        return [p for p in self.get_calls if p.startswith(prefix)]
