"""
services/catalog_client.py — HTTP client for the external music catalog.

The catalog speaks the Spotify Web API dialect. This client owns:
  - its own service credential (client-credentials grant), independent of any
    end user, held in memory and mirrored into the shared TokenCache so that
    other processes reuse one grant
  - response caching for searches (1 hour) and entity lookups (24 hours)
  - normalisation of provider payloads into the internal shape used by
    catalog_service and the routes

Every provider failure (HTTP error, timeout, connection error, malformed
body) is raised as CatalogUnavailable. Nothing is retried.

Normalised shapes (snake_case keys, always present, None when unknown):

  track:  {external_id, name, duration_ms, preview_url, popularity,
           artist: {external_id, name} | None,
           album:  {external_id, name, image_url, release_date} | None}
  album:  {external_id, name, image_url, release_date, total_tracks,
           artist: {external_id, name} | None}
  album (lookup by id) adds:  tracks: [{external_id, name, duration_ms, track_number}],
                              genres: [str]
  artist: {external_id, name, image_url, genres, popularity}

Only the first listed artist of a track or album is kept.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

import requests

from backend.musicbox.errors import CatalogUnavailable, NotConnected

logger = logging.getLogger(__name__)

SERVICE_TOKEN_KEY = "catalog:access_token"
TOKEN_EXPIRY_MARGIN_MS = 60_000

SEARCH_TTL_SECONDS = 3600       # searches go stale quickly
ENTITY_TTL_SECONDS = 86400      # a given track/album/artist rarely changes

SEARCH_KINDS = {"song": ("track", "tracks"), "album": ("album", "albums")}


# ── Normalisation ──────────────────────────────────────────────────────────

def _first_image(images: list[dict] | None) -> str | None:
    if not images:
        return None
    return images[0].get("url")


def _first_artist(artists: list[dict] | None) -> dict | None:
    if not artists:
        return None
    artist = artists[0]
    return {"external_id": artist.get("id"), "name": artist.get("name")}


def format_track(track: dict) -> dict:
    album = track.get("album")
    return {
        "external_id": track["id"],
        "name": track["name"],
        "duration_ms": track.get("duration_ms"),
        "preview_url": track.get("preview_url"),
        "popularity": track.get("popularity"),
        "artist": _first_artist(track.get("artists")),
        "album": {
            "external_id": album["id"],
            "name": album.get("name"),
            "image_url": _first_image(album.get("images")),
            "release_date": album.get("release_date"),
        } if album else None,
    }


def format_album(album: dict) -> dict:
    return {
        "external_id": album["id"],
        "name": album["name"],
        "image_url": _first_image(album.get("images")),
        "release_date": album.get("release_date"),
        "total_tracks": album.get("total_tracks"),
        "artist": _first_artist(album.get("artists")),
    }


def format_album_full(album: dict) -> dict:
    tracks = (album.get("tracks") or {}).get("items") or []
    return {
        **format_album(album),
        "tracks": [
            {
                "external_id": t["id"],
                "name": t["name"],
                "duration_ms": t.get("duration_ms"),
                "track_number": t.get("track_number"),
            }
            for t in tracks
        ],
        "genres": list(album.get("genres") or []),
    }


def format_artist(artist: dict) -> dict:
    return {
        "external_id": artist["id"],
        "name": artist["name"],
        "image_url": _first_image(artist.get("images")),
        "genres": list(artist.get("genres") or []),
        "popularity": artist.get("popularity"),
    }


# ── Client ─────────────────────────────────────────────────────────────────

class CatalogClient:

    def __init__(
            self,
            client_id: str,
            client_secret: str,
            cache,
            api_url: str = "https://api.spotify.com/v1",
            token_url: str = "https://accounts.spotify.com/api/token",
            timeout: float = 10.0,
            http_session: requests.Session | None = None,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._cache = cache
        self._api_url = api_url.rstrip("/")
        self._token_url = token_url
        self._timeout = timeout
        self._http = http_session
        self._clock = clock
        self._connected = False

        self._token: str | None = None
        self._token_expiry_ms = 0

    # ── Lifecycle ──────────────────────────────────────────────────────────

    def connect(self) -> None:
        if self._connected:
            return
        if self._http is None:
            self._http = requests.Session()
        self._connected = True
        logger.info("Catalog client ready (%s)", self._api_url)

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
        self._http = None
        self._connected = False

    def _require_http(self) -> requests.Session:
        if not self._connected or self._http is None:
            raise NotConnected("CatalogClient.connect() has not been called.")
        return self._http

    # ── Service token ──────────────────────────────────────────────────────

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_fresh(self, expiry_ms: int) -> bool:
        return self._now_ms() < expiry_ms - TOKEN_EXPIRY_MARGIN_MS

    def ensure_service_token(self) -> str:
        """
        Returns a usable service bearer token, in order of preference:
          1. the in-memory token, if more than 60 s from expiry
          2. a token another process minted into the shared cache
          3. a fresh client-credentials grant

        Two processes may both reach step 3 at the same time; the provider
        tolerates that and the later write to the cache simply wins.
        """
        http = self._require_http()

        if self._token and self._is_fresh(self._token_expiry_ms):
            return self._token

        cached = self._cache.get(SERVICE_TOKEN_KEY)
        if cached:
            try:
                entry = json.loads(cached)
                token, expiry = entry["token"], int(entry["expiry"])
            except (ValueError, KeyError, TypeError):
                logger.warning("Ignoring malformed cached catalog token")
            else:
                if self._is_fresh(expiry):
                    self._token, self._token_expiry_ms = token, expiry
                    return token

        try:
            response = http.post(
                self._token_url,
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
            token = body["access_token"]
            expires_in = int(body["expires_in"])
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.error("Catalog client-credentials grant failed: %s", exc)
            raise CatalogUnavailable("Could not authenticate with the music catalog.") from exc

        expiry = self._now_ms() + expires_in * 1000
        self._token, self._token_expiry_ms = token, expiry

        cache_ttl = expires_in - TOKEN_EXPIRY_MARGIN_MS // 1000
        if cache_ttl > 0:
            self._cache.set(
                SERVICE_TOKEN_KEY,
                json.dumps({"token": token, "expiry": expiry}),
                cache_ttl,
            )
        logger.info("Obtained catalog service token (expires in %ss)", expires_in)
        return token

    # ── HTTP ───────────────────────────────────────────────────────────────

    def _get(self, path: str, params: dict | None = None) -> dict:
        token = self.ensure_service_token()
        http = self._require_http()
        try:
            response = http.get(
                f"{self._api_url}{path}",
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Catalog request %s failed: %s", path, exc)
            raise CatalogUnavailable() from exc

    def _cached(self, key: str, ttl: int, fetch: Callable[[], Any]) -> Any:
        cached = self._cache.get(key)
        if cached is not None:
            return json.loads(cached)
        value = fetch()
        self._cache.set(key, json.dumps(value), ttl)
        return value

    # ── Public operations ──────────────────────────────────────────────────

    def search(self, kind: str, query: str, limit: int = 20, offset: int = 0) -> list[dict]:
        """
        kind: "song" or "album". Results are cached per (kind, query, limit, offset).
        """
        if kind not in SEARCH_KINDS:
            raise ValueError(f"Unsupported search kind: {kind!r}")
        self.ensure_service_token()
        provider_type, result_key = SEARCH_KINDS[kind]
        formatter = format_track if kind == "song" else format_album

        def fetch() -> list[dict]:
            body = self._get(
                "/search",
                {"q": query, "type": provider_type, "limit": limit, "offset": offset},
            )
            items = (body.get(result_key) or {}).get("items") or []
            try:
                return [formatter(item) for item in items if item]
            except (KeyError, TypeError) as exc:
                raise CatalogUnavailable("The music catalog returned an unexpected payload.") from exc

        return self._cached(f"catalog:search:{kind}:{query}:{limit}:{offset}", SEARCH_TTL_SECONDS, fetch)

    def search_songs(self, query: str, limit: int = 20, offset: int = 0) -> list[dict]:
        return self.search("song", query, limit, offset)

    def search_albums(self, query: str, limit: int = 20, offset: int = 0) -> list[dict]:
        return self.search("album", query, limit, offset)

    def _lookup(self, kind: str, path: str, external_id: str, formatter) -> dict:
        self.ensure_service_token()

        def fetch() -> dict:
            body = self._get(f"{path}/{external_id}")
            try:
                return formatter(body)
            except (KeyError, TypeError) as exc:
                raise CatalogUnavailable("The music catalog returned an unexpected payload.") from exc

        return self._cached(f"catalog:{kind}:{external_id}", ENTITY_TTL_SECONDS, fetch)

    def get_track(self, external_id: str) -> dict:
        return self._lookup("track", "/tracks", external_id, format_track)

    def get_album(self, external_id: str) -> dict:
        return self._lookup("album", "/albums", external_id, format_album_full)

    def get_artist(self, external_id: str) -> dict:
        return self._lookup("artist", "/artists", external_id, format_artist)
