"""Spotify track search (secondary metadata source).

Authentication is a capability: anything exposing
`get_auth_token() -> (token, expires_at_epoch)` can back the service. The
token is reused until it expires. Results are cached per query text with no
validity check and no expiry.
"""
from __future__ import annotations

import logging
import math
import time
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

import httpx
from pydantic import ValidationError

from ..core.errors import SpotifyAuthError, SpotifySearchError
from ..schemas.models import SpotifyTrack
from ..storage.json_store import JsonFileStore

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    async def get_auth_token(self) -> Tuple[str, float]:
        ...


class StaticTokenProvider:
    """Hands out a pre-issued access token with a fixed lifetime."""

    def __init__(self, token: Optional[str], ttl_seconds: int = 3600, clock: Callable[[], float] = time.time) -> None:
        self._token = token
        self._ttl = ttl_seconds
        self._clock = clock

    async def get_auth_token(self) -> Tuple[str, float]:
        if not self._token:
            raise SpotifyAuthError()
        return self._token, self._clock() + self._ttl


class SpotifySearchCache(JsonFileStore[Dict[str, SpotifyTrack]]):
    def decode(self, payload: Dict[str, Any]) -> Dict[str, Dict[str, SpotifyTrack]]:
        out: Dict[str, Dict[str, SpotifyTrack]] = {}
        for query, tracks in payload.items():
            if not isinstance(tracks, dict):
                continue
            try:
                out[query] = {tid: SpotifyTrack.model_validate(t) for tid, t in tracks.items()}
            except ValidationError:
                logger.warning("Dropping malformed Spotify cache entry for %r", query)
        return out

    def encode(self) -> Dict[str, Any]:
        return {
            query: {tid: t.model_dump(mode="json") for tid, t in tracks.items()}
            for query, tracks in self._data.items()
        }

    async def get(self, query: str) -> Optional[Dict[str, SpotifyTrack]]:
        async with self._lock:
            tracks = self._data.get(query)
            return dict(tracks) if tracks is not None else None

    async def put(self, query: str, tracks: Dict[str, SpotifyTrack]) -> None:
        async with self._lock:
            self._data[query] = dict(tracks)
            await self._persist_locked()


def _str(item: Any, key: str) -> str:
    value = item.get(key) if isinstance(item, Mapping) else None
    return value if isinstance(value, str) else ""


def _first(values: Any) -> Any:
    return values[0] if isinstance(values, list) and values else None


def minify_track(track: Mapping[str, Any]) -> Optional[SpotifyTrack]:
    """First artist, first album image, duration rounded to seconds. None without an id."""
    track_id = _str(track, "id")
    if not track_id:
        return None
    album = track.get("album")
    images = album.get("images") if isinstance(album, Mapping) else None
    duration_ms = track.get("duration_ms")
    if isinstance(duration_ms, bool) or not isinstance(duration_ms, (int, float)) or not math.isfinite(duration_ms):
        duration_ms = 0
    return SpotifyTrack(
        id=track_id,
        title=_str(track, "name"),
        artist=_str(_first(track.get("artists")), "name"),
        thumbnail_url=_str(_first(images), "url"),
        duration_seconds=round(duration_ms / 1000),
    )


class SpotifySearchService:
    def __init__(
        self,
        http: httpx.AsyncClient,
        token_provider: TokenProvider,
        cache: SpotifySearchCache,
        search_url: str = "https://api.spotify.com/v1/search",
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._token_provider = token_provider
        self._cache = cache
        self.search_url = search_url
        self.timeout = timeout
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    async def _access_token(self) -> str:
        if self._token and self._clock() < self._expires_at:
            return self._token
        self._token, self._expires_at = await self._token_provider.get_auth_token()
        return self._token

    async def search(self, query: str) -> Tuple[Dict[str, SpotifyTrack], bool]:
        """Return (tracks keyed by id, served_from_cache)."""
        cached = await self._cache.get(query)
        if cached is not None:
            return cached, True

        token = await self._access_token()
        try:
            response = await self._http.get(
                self.search_url,
                params={"q": query, "type": "track"},
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Spotify search error for %r: %s", query, e)
            raise SpotifySearchError(str(e)) from e

        page = payload.get("tracks") if isinstance(payload, Mapping) else None
        items = page.get("items") if isinstance(page, Mapping) else None
        tracks: Dict[str, SpotifyTrack] = {}
        for raw in items if isinstance(items, list) else []:
            if not isinstance(raw, Mapping):
                continue
            track = minify_track(raw)
            if track is not None:
                tracks[track.id] = track
        await self._cache.put(query, tracks)
        return tracks, False
