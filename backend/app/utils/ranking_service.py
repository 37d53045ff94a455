"""
Click-weight ranking for merged search results.

Results the user picked before for the same query float to the top; every
other ordering decision is by id so the output is reproducible.
"""
from __future__ import annotations

from typing import Mapping, Sequence, TypeVar

from ..schemas.models import SearchResult

T = TypeVar("T")


class RankingService:
    """Stable-sorts result lists by descending weight, ties by ascending id."""

    def sort_key(self, item, weights: Mapping[str, int]):
        item_id = getattr(item, "id", "") or ""
        return (-int(weights.get(item_id, 0)), item_id)

    def rank(self, items: Sequence[T], weights: Mapping[str, int]) -> list[T]:
        """Return a new list; `items` is left untouched. Missing ids weigh 0."""
        return sorted(items, key=lambda it: self.sort_key(it, weights))

    def rank_result(self, result: SearchResult, weights: Mapping[str, int]) -> SearchResult:
        """Rank albums, playlists and songs independently."""
        return SearchResult(
            albums=self.rank(result.albums, weights),
            playlists=self.rank(result.playlists, weights),
            songs=self.rank(result.songs, weights),
        )
