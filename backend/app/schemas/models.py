from __future__ import annotations

import enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class SearchFilter(str, enum.Enum):
    albums = "albums"
    playlists = "playlists"
    songs = "songs"

    @property
    def upstream_name(self) -> str:
        """Filter value understood by the upstream /search endpoint."""
        return f"music_{self.value}"


ALL_FILTERS: Tuple[SearchFilter, ...] = (
    SearchFilter.albums,
    SearchFilter.playlists,
    SearchFilter.songs,
)


class SearchMode(str, enum.Enum):
    full = "full"
    minimal = "minimal"


class Song(BaseModel):
    id: str
    title: str = ""
    artist: str = ""
    artist_cover_url: str = ""
    cover_url: str = ""
    album: str = ""
    duration_seconds: int = 0


class Album(BaseModel):
    id: str
    name: str = ""
    artist: str = ""
    artist_cover_url: str = ""
    cover_url: str = ""
    songs: List[Song] = Field(default_factory=list)


class Playlist(BaseModel):
    id: str
    name: str = ""
    artist: str = ""
    artist_cover_url: str = ""
    cover_url: str = ""
    songs: List[Song] = Field(default_factory=list)


class SearchResult(BaseModel):
    albums: List[Album] = Field(default_factory=list)
    playlists: List[Playlist] = Field(default_factory=list)
    songs: List[Song] = Field(default_factory=list)

    def items_for(self, search_filter: SearchFilter) -> list:
        return getattr(self, search_filter.value)

    def scoped_to(self, search_filter: Optional[SearchFilter]) -> "SearchResult":
        """Return a copy holding only the requested category (all when None)."""
        if search_filter is None:
            return self.model_copy()
        return SearchResult(**{search_filter.value: list(self.items_for(search_filter))})


class CacheEntry(BaseModel):
    result: SearchResult
    created_at: int

    def satisfies(self, filters: List[SearchFilter] | Tuple[SearchFilter, ...]) -> bool:
        """True when every requested category holds at least one item."""
        return all(len(self.result.items_for(f)) > 0 for f in filters)


class SearchQuery(BaseModel):
    text: str
    filter: Optional[SearchFilter] = None
    mode: SearchMode = SearchMode.full

    model_config = {"frozen": True}

    @property
    def filters_to_search(self) -> Tuple[SearchFilter, ...]:
        if self.filter is not None:
            return (self.filter,)
        return ALL_FILTERS

    @property
    def is_full(self) -> bool:
        return self.mode == SearchMode.full


class SearchCancelled(BaseModel):
    error: str = "Search cancelled"
    message: str = "A new search request was initiated"


class WeightUpdate(BaseModel):
    query: str = Field(..., min_length=1)
    selected_id: str = Field(..., min_length=1)


class InstanceRead(BaseModel):
    name: str
    api_url: str
    regions: List[str] = Field(default_factory=list)
    mean_latency_ms: Optional[float] = None
    samples: int = 0


class InstanceReport(BaseModel):
    selected: Optional[str] = None
    probed_at: Optional[int] = None
    instances: List[InstanceRead] = Field(default_factory=list)


class SpotifyTrack(BaseModel):
    id: str
    title: str = ""
    artist: str = ""
    thumbnail_url: str = ""
    duration_seconds: int = 0


SpotifySearchResult = Dict[str, SpotifyTrack]
