"""Construction and lookup of the long-lived gateway objects.

Everything that holds shared state (the selected instance, the persisted
maps, the cancellation slot of the orchestrator) is created once here and
handed to the routers through `get_services`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from .config import Settings
from ..services.search_orchestrator import SearchOrchestrator
from ..storage.search_cache import SearchCache
from ..storage.weight_store import WeightStore
from ..utils.instance_prober import InstanceProber
from ..utils.piped_client import PipedClient
from ..utils.piped_instances import InstanceCatalog, instances_from_pairs
from ..utils.spotify_search import SpotifySearchCache, SpotifySearchService, StaticTokenProvider, TokenProvider
from ..worker.probe_worker import ProbeWorker


@dataclass
class Services:
    settings: Settings
    http: httpx.AsyncClient
    piped: PipedClient
    catalog: InstanceCatalog
    prober: InstanceProber
    search_cache: SearchCache
    weights: WeightStore
    orchestrator: SearchOrchestrator
    spotify: SpotifySearchService
    probe_worker: ProbeWorker

    async def aclose(self) -> None:
        await self.probe_worker.stop()
        await self.http.aclose()


def build_services(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    token_provider: Optional[TokenProvider] = None,
) -> Services:
    """Wire the gateway. `transport` replaces the network (tests use httpx.MockTransport)."""
    http = httpx.AsyncClient(transport=transport, timeout=settings.upstream_timeout, follow_redirects=True)
    piped = PipedClient(http, timeout=settings.upstream_timeout)
    catalog = InstanceCatalog(
        piped,
        list_url=settings.piped_instances_url,
        static=instances_from_pairs(settings.piped_instances),
        extra=instances_from_pairs(settings.piped_extra_instances),
        excluded=settings.piped_excluded_instances,
        timeout=settings.probe_timeout,
    )
    prober = InstanceProber(
        piped,
        catalog,
        fallback_url=settings.piped_fallback_url,
        attempts=settings.probe_attempts,
        timeout=settings.probe_timeout,
    )
    search_cache = SearchCache(settings.search_cache_file, ttl_seconds=settings.search_cache_ttl)
    weights = WeightStore(settings.search_weights_file)
    orchestrator = SearchOrchestrator(piped, prober.get_selected_instance, search_cache, weights)
    spotify = SpotifySearchService(
        http,
        token_provider or StaticTokenProvider(settings.spotify_access_token, settings.spotify_token_ttl),
        SpotifySearchCache(settings.spotify_cache_file),
        search_url=settings.spotify_search_url,
        timeout=settings.upstream_timeout,
    )
    return Services(
        settings=settings,
        http=http,
        piped=piped,
        catalog=catalog,
        prober=prober,
        search_cache=search_cache,
        weights=weights,
        orchestrator=orchestrator,
        spotify=spotify,
        probe_worker=ProbeWorker(prober, interval=settings.reprobe_interval),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
