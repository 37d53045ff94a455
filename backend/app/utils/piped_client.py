"""Thin async wrapper over the Piped HTTP API.

Every call takes the mirror base URL explicitly: callers snapshot the
selected instance once per request and pass it down, so a re-probe never
redirects calls that are already in flight.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, List, Optional

import httpx

from ..core.errors import UpstreamCorruptResponse
from ..schemas.models import SearchFilter, Song
from .piped_items import (
    SearchPage,
    avatar_url_of,
    channel_id_from,
    decode_playlist_tracks,
    decode_search_items,
)

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {"User-Agent": USER_AGENT, "Accept": "application/json"}


def _is_json(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.lower().startswith("application/json")


class PipedClient:
    def __init__(self, http: httpx.AsyncClient, timeout: float = 10.0) -> None:
        self._http = http
        self.timeout = timeout

    async def healthcheck(self, base_url: str, timeout: float) -> float:
        """Return the latency in seconds of one successful GET /healthcheck.

        Transport errors, timeouts and non-2xx statuses raise httpx.HTTPError.
        """
        start = time.perf_counter()
        response = await self._http.get(f"{base_url}/healthcheck", timeout=timeout, headers=DEFAULT_HEADERS)
        response.raise_for_status()
        return time.perf_counter() - start

    async def search(self, base_url: str, query: str, search_filter: SearchFilter) -> SearchPage:
        """One /search call for one filter.

        A transport failure or a non-JSON body (mirrors sometimes answer with an
        HTML error page) yields an empty page. A JSON-typed body that does not
        parse raises UpstreamCorruptResponse.
        """
        url = f"{base_url}/search"
        try:
            response = await self._http.get(
                url,
                params={"q": query, "filter": search_filter.upstream_name},
                timeout=self.timeout,
                headers=DEFAULT_HEADERS,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Search call failed url=%s filter=%s: %s", url, search_filter.value, e)
            return SearchPage(search_filter=search_filter)

        if not _is_json(response):
            logger.warning(
                "Invalid content type url=%s content-type=%s status=%s",
                response.request.url,
                response.headers.get("content-type", ""),
                response.status_code,
            )
            return SearchPage(search_filter=search_filter)

        try:
            payload = json.loads(response.text)
        except ValueError as e:
            logger.error("JSON parsing failed query=%r url=%s: %s", query, response.request.url, e)
            raise UpstreamCorruptResponse(str(response.request.url), str(e)) from e
        return decode_search_items(search_filter, payload)

    async def _get_json(self, url: str) -> Any:
        response = await self._http.get(url, timeout=self.timeout, headers=DEFAULT_HEADERS)
        response.raise_for_status()
        return response.json()

    async def playlist_tracks(self, base_url: str, playlist_id: str, as_album: bool) -> List[Song]:
        payload = await self._get_json(f"{base_url}/playlists/{playlist_id}")
        return decode_playlist_tracks(payload, as_album=as_album)

    async def channel_avatar(self, base_url: str, uploader_url: str) -> Optional[str]:
        """Avatar URL of the channel behind `uploader_url`; None when no channel id."""
        channel_id = channel_id_from(uploader_url)
        if not channel_id:
            return None
        payload = await self._get_json(f"{base_url}/channel/{channel_id}")
        return avatar_url_of(payload)

    async def list_instances(self, url: str, timeout: float) -> Any:
        response = await self._http.get(url, timeout=timeout, headers=DEFAULT_HEADERS)
        response.raise_for_status()
        return response.json()
