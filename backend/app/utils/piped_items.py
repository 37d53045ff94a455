"""Tolerant decoding of Piped API payloads into typed search items.

Piped mirrors disagree on which fields they fill in, so every lookup here
falls back to an empty string or zero instead of raising. The only hard
requirement is an id derivable from the item's canonical URL; items without
one are dropped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..schemas.models import Album, Playlist, SearchFilter, Song

_PLAYLIST_MARKER = "list="
_TRACK_MARKER = "v="


def extract_id(url: Optional[str]) -> str:
    """Derive an item id from a Piped URL.

    '/playlist?list=xyz' -> 'xyz', '/watch?v=abc' -> 'abc', otherwise the last
    path segment ('/channel/UC123' -> 'UC123'). Trailing query parameters after
    the marker value are not part of the id.
    """
    if not url or not isinstance(url, str):
        return ""
    for marker in (_PLAYLIST_MARKER, _TRACK_MARKER):
        if marker in url:
            value = url.split(marker, 1)[1]
            return value.split("&", 1)[0].strip()
    return url.rstrip("/").split("/")[-1].strip() if "/" in url else url.strip()


def _str(item: Mapping[str, Any], key: str) -> str:
    value = item.get(key)
    return value if isinstance(value, str) else ""


def _int(item: Mapping[str, Any], key: str) -> int:
    value = item.get(key)
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _mappings(values: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, Mapping)]


def decode_album(item: Mapping[str, Any]) -> Optional[Album]:
    item_id = extract_id(item.get("url"))
    if not item_id:
        return None
    return Album(
        id=item_id,
        name=_str(item, "name"),
        artist=_str(item, "uploaderName"),
        cover_url=_str(item, "thumbnail"),
    )


def decode_playlist(item: Mapping[str, Any]) -> Optional[Playlist]:
    item_id = extract_id(item.get("url"))
    if not item_id:
        return None
    return Playlist(
        id=item_id,
        name=_str(item, "name"),
        artist=_str(item, "uploaderName"),
        artist_cover_url=_str(item, "artistCover"),
        cover_url=_str(item, "thumbnail"),
    )


def decode_song(item: Mapping[str, Any], album: str = "") -> Optional[Song]:
    item_id = extract_id(item.get("url"))
    if not item_id:
        return None
    return Song(
        id=item_id,
        title=_str(item, "title") or _str(item, "name"),
        artist=_str(item, "uploaderName"),
        artist_cover_url=_str(item, "artistCover"),
        cover_url=_str(item, "thumbnail"),
        album=album,
        duration_seconds=_int(item, "duration"),
    )


_DECODERS = {
    SearchFilter.albums: decode_album,
    SearchFilter.playlists: decode_playlist,
    SearchFilter.songs: decode_song,
}


@dataclass
class SearchPage:
    """Decoded /search response for one filter."""

    search_filter: SearchFilter
    items: list = field(default_factory=list)
    # item id -> uploader URL, needed to resolve album avatars
    uploader_urls: Dict[str, str] = field(default_factory=dict)


def decode_search_items(search_filter: SearchFilter, payload: Any) -> SearchPage:
    """Map the `items` array of a /search payload to typed items of one category."""
    page = SearchPage(search_filter=search_filter)
    if not isinstance(payload, Mapping):
        return page
    decoder = _DECODERS[search_filter]
    for raw in _mappings(payload.get("items")):
        decoded = decoder(raw)
        if decoded is None:
            continue
        page.items.append(decoded)
        page.uploader_urls[decoded.id] = _str(raw, "uploaderUrl")
    return page


def decode_playlist_tracks(payload: Any, as_album: bool) -> List[Song]:
    """Map a /playlists/{id} payload to its member tracks.

    Album tracks carry the album title (the payload `name`); playlist tracks
    leave `album` empty.
    """
    if not isinstance(payload, Mapping):
        return []
    album_name = _str(payload, "name") if as_album else ""
    songs: List[Song] = []
    for stream in _mappings(payload.get("relatedStreams")):
        song = decode_song(stream, album=album_name)
        if song is not None:
            songs.append(song.model_copy(update={"artist_cover_url": ""}))
    return songs


def channel_id_from(uploader_url: str) -> str:
    """'/channel/UC123' -> 'UC123'."""
    if not uploader_url:
        return ""
    return uploader_url.rstrip("/").split("/")[-1]


def avatar_url_of(payload: Any) -> str:
    if not isinstance(payload, Mapping):
        return ""
    return _str(payload, "avatarUrl")
