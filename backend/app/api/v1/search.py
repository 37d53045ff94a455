from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

try:
    from ...core.errors import SpotifyAuthError, UpstreamError  # type: ignore
    from ...core.services import Services, get_services  # type: ignore
    from ...schemas.common import Success  # type: ignore
    from ...schemas.models import (  # type: ignore
        SearchCancelled,
        SearchFilter,
        SearchMode,
        SearchQuery,
        SearchResult,
        SpotifyTrack,
        WeightUpdate,
    )
except Exception:  # pragma: no cover
    from core.errors import SpotifyAuthError, UpstreamError  # type: ignore
    from core.services import Services, get_services  # type: ignore
    from schemas.common import Success  # type: ignore
    from schemas.models import (  # type: ignore
        SearchCancelled,
        SearchFilter,
        SearchMode,
        SearchQuery,
        SearchResult,
        SpotifyTrack,
        WeightUpdate,
    )

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", responses={200: {"model": SearchResult}, 500: {"description": "Corrupt upstream JSON or no instance selected"}})
async def search(
    query: str = Query(..., min_length=1, description="Raw search text; also the cache and weight key"),
    filter: Optional[SearchFilter] = Query(None, description="Restrict to one category"),
    mode: SearchMode = Query(SearchMode.full, description="'minimal' skips track listings and avatars"),
    services: Services = Depends(get_services),
):
    try:
        outcome = await services.orchestrator.search(SearchQuery(text=query, filter=filter, mode=mode))
    except UpstreamError as e:
        logger.error("Search error for %r: %s", query, e)
        raise HTTPException(status_code=500, detail=str(e))
    if outcome.superseded:
        return SearchCancelled()
    return outcome.result


@router.post("/update-weight", response_model=Success)
async def update_weight(payload: WeightUpdate, services: Services = Depends(get_services)):
    await services.orchestrator.record_selection(payload.query, payload.selected_id)
    return Success()


@router.get("/spotify", response_model=Dict[str, SpotifyTrack])
async def search_spotify(
    query: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
):
    try:
        tracks, cached = await services.spotify.search(query)
    except SpotifyAuthError as e:
        logger.error("Spotify authentication failed for query %r", query)
        raise HTTPException(status_code=500, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=500, detail=str(e))
    logger.info("Spotify search%s query=%r results=%d", " (cached)" if cached else "", query, len(tracks))
    return tracks
