from pathlib import Path
import asyncio
import os
import sys
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Ensure project root and backend paths are importable for tests
ROOT = Path(__file__).resolve().parents[2]
for p in (str(ROOT),):
    if p not in sys.path:
        sys.path.insert(0, p)

"""
Test configuration

No test touches the network: Piped mirrors and Spotify are simulated with
httpx.MockTransport handlers, and every store writes into tmp_path.
"""
os.environ.setdefault("DISABLE_INSTANCE_PROBE", "1")
os.environ.setdefault("PIPED_REPROBE_INTERVAL", "0")

from backend.app.core.config import Settings  # noqa: E402
from backend.app.core.services import build_services  # noqa: E402

BASE = "https://piped.test"


def album_item(i: str, uploader: str = "/channel/UCartist") -> Dict[str, Any]:
    return {
        "url": f"/playlist?list=ALB{i}",
        "name": f"Album {i}",
        "uploaderName": f"Artist {i}",
        "uploaderUrl": uploader,
        "thumbnail": f"https://img.test/album{i}.jpg",
    }


def playlist_item(i: str) -> Dict[str, Any]:
    return {
        "url": f"/playlist?list=PL{i}",
        "name": f"Playlist {i}",
        "uploaderName": f"Curator {i}",
        "thumbnail": f"https://img.test/pl{i}.jpg",
    }


def song_item(i: str, duration: int = 200) -> Dict[str, Any]:
    return {
        "url": f"/watch?v=SONG{i}",
        "title": f"Song {i}",
        "uploaderName": f"Singer {i}",
        "thumbnail": f"https://img.test/song{i}.jpg",
        "duration": duration,
    }


class FakePiped:
    """Async handler emulating one Piped mirror.

    `search_items` maps the upstream filter name (music_albums, ...) to the
    items it returns. Set `gate` to an asyncio.Event to hold /search calls
    until the event is set. `overrides` maps a path prefix to a factory returning a canned response.
    """

    def __init__(self) -> None:
        self.search_items: Dict[str, List[Dict[str, Any]]] = {
            "music_albums": [album_item("1"), album_item("2")],
            "music_playlists": [playlist_item("1")],
            "music_songs": [song_item("1"), song_item("2")],
        }
        self.playlists: Dict[str, Dict[str, Any]] = {
            "ALB1": {"name": "Album 1", "relatedStreams": [song_item("A1"), song_item("A2")]},
            "ALB2": {"name": "Album 2", "relatedStreams": [song_item("B1")]},
            "PL1": {"name": "Playlist 1", "relatedStreams": [song_item("P1")]},
        }
        self.channels: Dict[str, Dict[str, Any]] = {
            "UCartist": {"avatarUrl": "https://img.test/avatar.jpg"},
        }
        self.overrides: Dict[str, Callable[[], httpx.Response]] = {}
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[httpx.Request] = []

    def paths(self, prefix: str) -> List[str]:
        return [r.url.path for r in self.calls if r.url.path.startswith(prefix)]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        for prefix, make_response in self.overrides.items():
            if path.startswith(prefix):
                return make_response()
        if path == "/healthcheck":
            return httpx.Response(200, text="OK")
        if path == "/search":
            if self.gate is not None:
                await self.gate.wait()
            items = self.search_items.get(request.url.params.get("filter", ""), [])
            return httpx.Response(200, json={"items": items, "nextpage": None})
        if path.startswith("/playlists/"):
            payload = self.playlists.get(path.rsplit("/", 1)[-1])
            if payload is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=payload)
        if path.startswith("/channel/"):
            payload = self.channels.get(path.rsplit("/", 1)[-1])
            if payload is None:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json=payload)
        return httpx.Response(404, json={"error": "unknown route"})


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        search_cache_file=str(tmp_path / "search_cache.json"),
        search_weights_file=str(tmp_path / "search_weights.json"),
        spotify_cache_file=str(tmp_path / "spotify_cache.json"),
        piped_instances=[("test", BASE)],
        piped_extra_instances=[],
        probe_attempts=3,
        probe_timeout=0.5,
        reprobe_interval=0,
        upstream_timeout=2.0,
        search_cache_ttl=0,
        spotify_access_token=None,
    )


@pytest.fixture
def fake_piped() -> FakePiped:
    return FakePiped()


@pytest.fixture
async def services(settings, fake_piped):
    svc = build_services(settings, transport=httpx.MockTransport(fake_piped))
    svc.prober.selected.set(BASE)
    yield svc
    await svc.aclose()


@pytest.fixture
async def api_client(services):
    from backend.app.main import app

    app.state.services = services
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.state.services = None
