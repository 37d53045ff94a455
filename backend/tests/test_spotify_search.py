import json

import httpx
import pytest

from backend.app.core.errors import SpotifyAuthError, SpotifySearchError
from backend.app.utils.spotify_search import (
    SpotifySearchCache,
    SpotifySearchService,
    StaticTokenProvider,
    minify_track,
)

SEARCH_URL = "https://spotify.test/v1/search"


def _track(i, duration_ms=187_400):
    return {
        "id": f"sp{i}",
        "name": f"Track {i}",
        "artists": [{"name": f"Artist {i}"}, {"name": "Feat"}],
        "album": {"images": [{"url": f"https://img.test/{i}.jpg"}, {"url": "small.jpg"}]},
        "duration_ms": duration_ms,
    }


class CountingProvider:
    def __init__(self, expires_at=10_000.0):
        self.calls = 0
        self.expires_at = expires_at

    async def get_auth_token(self):
        self.calls += 1
        return f"token-{self.calls}", self.expires_at


class FakeSpotify:
    def __init__(self, items=None, status=200):
        self.items = items if items is not None else [_track(1), _track(2)]
        self.status = status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "nope"})
        return httpx.Response(200, json={"tracks": {"items": self.items}})


@pytest.fixture
def clock():
    class Clock:
        now = 1_000.0

        def __call__(self):
            return self.now

    return Clock()


async def _service(tmp_path, upstream, provider, clock):
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    cache = SpotifySearchCache(tmp_path / "spotify_cache.json")
    return SpotifySearchService(http, provider, cache, search_url=SEARCH_URL, clock=clock), http


def test_minify_track_keeps_first_artist_and_image():
    track = minify_track(_track(1, duration_ms=187_600))
    assert track.model_dump() == {
        "id": "sp1",
        "title": "Track 1",
        "artist": "Artist 1",
        "thumbnail_url": "https://img.test/1.jpg",
        "duration_seconds": 188,
    }


def test_minify_track_tolerates_missing_fields():
    track = minify_track({"id": "x", "artists": [], "album": None})
    assert (track.artist, track.thumbnail_url, track.duration_seconds) == ("", "", 0)
    assert minify_track({"name": "no id"}) is None


@pytest.mark.parametrize(
    "raw",
    [
        {"id": "x", "name": 42, "artists": [{"name": None}], "album": {"images": [{"url": 7}]}},
        {"id": "x", "name": ["odd"], "artists": "nobody", "album": {"images": "none"}, "duration_ms": True},
        {"id": "x", "artists": [], "album": None, "duration_ms": "187000"},
    ],
)
def test_minify_track_tolerates_odd_field_types(raw):
    track = minify_track(raw)
    assert track.model_dump() == {
        "id": "x",
        "title": "",
        "artist": "",
        "thumbnail_url": "",
        "duration_seconds": 0,
    }


async def test_odd_track_fields_do_not_fail_the_search(tmp_path, clock):
    upstream = FakeSpotify(items=[{"id": "sp1", "name": {"en": "Track"}}, _track(2)])
    service, http = await _service(tmp_path, upstream, CountingProvider(), clock)
    try:
        tracks, _ = await service.search("abba")
        assert tracks["sp1"].title == ""
        assert tracks["sp2"].title == "Track 2"
    finally:
        await http.aclose()


async def test_search_queries_with_bearer_token_and_caches(tmp_path, clock):
    upstream = FakeSpotify()
    provider = CountingProvider()
    service, http = await _service(tmp_path, upstream, provider, clock)
    try:
        tracks, cached = await service.search("abba")
        assert not cached
        assert list(tracks) == ["sp1", "sp2"]
        request = upstream.requests[0]
        assert request.headers["Authorization"] == "Bearer token-1"
        assert request.url.params["q"] == "abba"
        assert request.url.params["type"] == "track"

        again, cached = await service.search("abba")
        assert cached
        assert again == tracks
        assert len(upstream.requests) == 1
    finally:
        await http.aclose()

    on_disk = json.loads((tmp_path / "spotify_cache.json").read_text(encoding="utf-8"))
    assert on_disk["abba"]["sp2"]["title"] == "Track 2"


async def test_empty_result_is_cached_too(tmp_path, clock):
    upstream = FakeSpotify(items=[])
    service, http = await _service(tmp_path, upstream, CountingProvider(), clock)
    try:
        assert await service.search("nothing") == ({}, False)
        assert await service.search("nothing") == ({}, True)
        assert len(upstream.requests) == 1
    finally:
        await http.aclose()


async def test_token_is_reused_until_expiry(tmp_path, clock):
    provider = CountingProvider(expires_at=clock.now + 60)
    service, http = await _service(tmp_path, FakeSpotify(), provider, clock)
    try:
        await service.search("one")
        await service.search("two")
        assert provider.calls == 1
        clock.now += 61
        provider.expires_at = clock.now + 60
        await service.search("three")
        assert provider.calls == 2
    finally:
        await http.aclose()


async def test_upstream_failure_raises_search_error(tmp_path, clock):
    service, http = await _service(tmp_path, FakeSpotify(status=502), CountingProvider(), clock)
    try:
        with pytest.raises(SpotifySearchError):
            await service.search("abba")
        # Failures are not cached
        assert len(service._cache) == 0
    finally:
        await http.aclose()


async def test_missing_token_is_an_auth_error(tmp_path, clock):
    upstream = FakeSpotify()
    service, http = await _service(tmp_path, upstream, StaticTokenProvider(None), clock)
    try:
        with pytest.raises(SpotifyAuthError):
            await service.search("abba")
        assert upstream.requests == []
    finally:
        await http.aclose()


async def test_static_token_provider_reports_expiry(clock):
    provider = StaticTokenProvider("abc", ttl_seconds=120, clock=clock)
    assert await provider.get_auth_token() == ("abc", clock.now + 120)
