"""Search fan-out over the selected Piped mirror.

A search is served from the cache when the stored entry has items for every
requested category. Otherwise the orchestrator supersedes whatever search
is still fetching (last request wins), queries one /search per filter,
optionally enriches albums and playlists with their tracks and album
uploaders with their avatars, merges, and writes the merged result through
to the cache. Results are re-ranked by click weight and scoped to the
requested filter before being returned.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

import httpx

from ..core.errors import NoInstanceSelected
from ..schemas.models import Album, Playlist, SearchQuery, SearchResult
from ..storage.search_cache import SearchCache
from ..storage.weight_store import WeightStore
from ..utils.piped_client import PipedClient
from ..utils.piped_items import SearchPage
from ..utils.ranking_service import RankingService

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    result: Optional[SearchResult] = None
    cached: bool = False
    superseded: bool = False


class CancellationToken:
    """One-shot signal a newer search uses to abort an older one."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def _gather_or_cancel(aws: Iterable[Awaitable]) -> list:
    """gather() that cancels the remaining calls as soon as one fails."""
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _dedupe(items: list) -> list:
    seen = set()
    out = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        out.append(item)
    return out


class SearchOrchestrator:
    def __init__(
        self,
        client: PipedClient,
        selected_instance: Callable[[], Optional[str]],
        cache: SearchCache,
        weights: WeightStore,
        ranker: Optional[RankingService] = None,
    ) -> None:
        self._client = client
        self._selected_instance = selected_instance
        self._cache = cache
        self._weights = weights
        self._ranker = ranker or RankingService()
        self._current: Optional[CancellationToken] = None

    def _supersede(self) -> CancellationToken:
        if self._current is not None:
            self._current.cancel()
        token = CancellationToken()
        self._current = token
        return token

    async def search(self, query: SearchQuery) -> SearchOutcome:
        start = time.perf_counter()
        instance = self._selected_instance()
        if not instance:
            raise NoInstanceSelected()

        filters = query.filters_to_search
        entry = await self._cache.get(query.text)
        cached = entry is not None and entry.satisfies(filters)
        if cached:
            result = entry.result  # type: ignore[union-attr]
        else:
            token = self._supersede()
            fetched = await self._fetch_unless_superseded(instance, query, token)
            if fetched is None:
                logger.info("Search superseded query=%r filter=%s", query.text, (query.filter.value if query.filter else "all"))
                return SearchOutcome(superseded=True)
            result = fetched
            await self._cache.store_result(query.text, result)

        weights = await self._weights.weights_for(query.text)
        ranked = self._ranker.rank_result(result, weights).scoped_to(query.filter)

        logger.info(
            "Search completed%s query=%r filter=%s mode=%s duration=%dms albums=%d playlists=%d songs=%d",
            " (cached)" if cached else "",
            query.text,
            query.filter.value if query.filter else "all",
            query.mode.value,
            (time.perf_counter() - start) * 1000,
            len(ranked.albums),
            len(ranked.playlists),
            len(ranked.songs),
        )
        return SearchOutcome(result=ranked, cached=cached)

    async def _fetch_unless_superseded(
        self, instance: str, query: SearchQuery, token: CancellationToken
    ) -> Optional[SearchResult]:
        """Race the fetch against `token`; None when a newer search won."""
        fetch = asyncio.ensure_future(self._fetch(instance, query))
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({fetch, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            fetch.cancel()
            waiter.cancel()
            raise
        finally:
            if self._current is token and fetch.done():
                self._current = None

        if token.cancelled:
            fetch.cancel()
            # Late results and late failures of a superseded fetch are dropped
            await asyncio.gather(fetch, return_exceptions=True)
            return None
        waiter.cancel()
        return fetch.result()

    async def _fetch(self, instance: str, query: SearchQuery) -> SearchResult:
        pages: List[SearchPage] = await _gather_or_cancel(
            self._client.search(instance, query.text, f) for f in query.filters_to_search
        )
        result = SearchResult()
        uploader_urls: Dict[str, str] = {}
        for page in pages:
            setattr(result, page.search_filter.value, _dedupe(page.items))
            uploader_urls.update(page.uploader_urls)

        if query.is_full:
            await self._enrich(instance, result, uploader_urls)
        return result

    async def _enrich(self, instance: str, result: SearchResult, uploader_urls: Dict[str, str]) -> None:
        jobs: List[Awaitable[None]] = []
        for album in result.albums:
            jobs.append(self._attach_tracks(instance, album, as_album=True))
            jobs.append(self._attach_avatar(instance, album, uploader_urls.get(album.id, "")))
        for playlist in result.playlists:
            jobs.append(self._attach_tracks(instance, playlist, as_album=False))
        if jobs:
            await asyncio.gather(*jobs)

    async def _attach_tracks(self, instance: str, container: Union[Album, Playlist], as_album: bool) -> None:
        kind = "album" if as_album else "playlist"
        try:
            container.songs = await self._client.playlist_tracks(instance, container.id, as_album=as_album)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Error fetching songs for %s %s: %s", kind, container.id, e)

    async def _attach_avatar(self, instance: str, album: Album, uploader_url: str) -> None:
        try:
            avatar = await self._client.channel_avatar(instance, uploader_url)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Error fetching avatarUrl for album %s: %s", album.id, e)
            return
        if avatar:
            album.artist_cover_url = avatar

    async def record_selection(self, query: str, result_id: str) -> int:
        """Count one user pick of `result_id` for `query`; returns the new weight."""
        weight = await self._weights.increment(query, result_id)
        logger.info("Weight updated query=%r id=%s weight=%d", query, result_id, weight)
        return weight
