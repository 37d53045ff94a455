"""Latency race across Piped mirrors.

Each candidate gets `attempts` concurrent health checks; all candidates are
probed concurrently. An instance's score is the mean latency of its
successful checks, and an instance without any success is left out of the
race rather than penalised. The winner (or the fallback URL when nobody
answered) is published once per round.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import httpx

from .piped_client import PipedClient
from .piped_instances import Instance, InstanceCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    instance: Instance
    latencies: Tuple[float, ...] = ()

    @property
    def mean_latency(self) -> Optional[float]:
        if not self.latencies:
            return None
        return sum(self.latencies) / len(self.latencies)


def pick_best(results: Sequence[ProbeResult]) -> Optional[ProbeResult]:
    """Lowest mean latency among instances with at least one success.

    Ties go to the earlier entry, so a fixed catalog order and fixed
    latencies always produce the same winner.
    """
    best: Optional[ProbeResult] = None
    for result in results:
        mean = result.mean_latency
        if mean is None:
            continue
        if best is None or mean < best.mean_latency:  # type: ignore[operator]
            best = result
    return best


class SelectedInstance:
    """Process-wide selected base URL.

    Readers get the current string (immutable, so a later swap never changes
    what a reader already holds); the prober replaces it once per round.
    """

    def __init__(self, initial: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._value = initial

    def get(self) -> Optional[str]:
        with self._lock:
            return self._value

    def set(self, value: str) -> None:
        with self._lock:
            self._value = value


class InstanceProber:
    def __init__(
        self,
        client: PipedClient,
        catalog: InstanceCatalog,
        fallback_url: str,
        attempts: int = 5,
        timeout: float = 5.0,
        selected: Optional[SelectedInstance] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._catalog = catalog
        self.fallback_url = fallback_url.rstrip("/")
        self.attempts = max(1, attempts)
        self.timeout = timeout
        self.selected = selected or SelectedInstance()
        self._clock = clock
        self._round_lock = asyncio.Lock()
        self.last_results: List[ProbeResult] = []
        self.probed_at: Optional[int] = None

    def get_selected_instance(self) -> Optional[str]:
        return self.selected.get()

    async def _timed_check(self, instance: Instance) -> Optional[float]:
        try:
            return await asyncio.wait_for(
                self._client.healthcheck(instance.api_url, timeout=self.timeout),
                timeout=self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
            logger.debug("Health check failed for %s: %s", instance.name, e or type(e).__name__)
            return None

    async def probe_instance(self, instance: Instance) -> ProbeResult:
        samples = await asyncio.gather(*(self._timed_check(instance) for _ in range(self.attempts)))
        latencies = tuple(s for s in samples if s is not None)
        result = ProbeResult(instance=instance, latencies=latencies)
        if result.mean_latency is None:
            logger.info("Ping test for %s: no successful checks (0/%d)", instance.name, self.attempts)
        else:
            logger.info(
                "Ping test for %s: %.0fms (%d/%d)",
                instance.name, result.mean_latency * 1000, len(latencies), self.attempts,
            )
        return result

    async def select_best(self, instances: Optional[Sequence[Instance]] = None) -> str:
        """Run one probing round and publish its winner. Never raises for upstream failures."""
        async with self._round_lock:
            if instances is None:
                instances = await self._catalog.list_candidate_instances()
            logger.info("Testing %d instances", len(instances))
            results = list(await asyncio.gather(*(self.probe_instance(inst) for inst in instances)))
            best = pick_best(results)
            if best is None:
                chosen = self.fallback_url
                logger.warning("No suitable Piped instance found, using fallback %s", chosen)
            else:
                chosen = best.instance.api_url
                logger.info("Selected Piped instance: %s (%.0fms)", chosen, best.mean_latency * 1000)  # type: ignore[operator]
            self.last_results = results
            self.probed_at = int(self._clock())
            self.selected.set(chosen)
            return chosen
