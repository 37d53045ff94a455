from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

import httpx

from .piped_client import PipedClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Instance:
    name: str
    api_url: str
    regions: FrozenSet[str] = field(default_factory=frozenset)


def _dedupe(instances: Iterable[Instance]) -> List[Instance]:
    seen = set()
    out: List[Instance] = []
    for inst in instances:
        if inst.api_url in seen:
            continue
        seen.add(inst.api_url)
        out.append(inst)
    return out


def parse_api_url(value: str) -> Optional[str]:
    """Base URL without trailing slash, or None when `value` is not an absolute http(s) URL."""
    cleaned = value.strip().rstrip("/")
    try:
        url = httpx.URL(cleaned)
    except httpx.InvalidURL:
        return None
    if url.scheme not in ("http", "https") or not url.host:
        return None
    return cleaned


def instances_from_pairs(pairs: Iterable[Tuple[str, str]]) -> List[Instance]:
    out: List[Instance] = []
    for name, url in pairs:
        api_url = parse_api_url(url)
        if api_url is None:
            logger.warning("Ignoring instance %s: invalid URL %r", name, url)
            continue
        out.append(Instance(name=name, api_url=api_url))
    return out


def decode_instance_list(payload: Any, excluded: Sequence[str] = ()) -> List[Instance]:
    """Decode the public instance list, dropping excluded names and kavin.rocks mirrors.

    Entries look like {"name": "...", "api_url": "...", "locations": "DE, NL"}.
    """
    if not isinstance(payload, list):
        return []
    blocked = set(excluded)
    out: List[Instance] = []
    for raw in payload:
        if not isinstance(raw, Mapping):
            continue
        name, api_url = raw.get("name"), raw.get("api_url")
        if not isinstance(name, str) or not isinstance(api_url, str) or not api_url:
            continue
        if name in blocked or "kavin.rocks" in api_url:
            continue
        base_url = parse_api_url(api_url)
        if base_url is None:
            logger.warning("Skipping instance %s: invalid api_url %r", name, api_url)
            continue
        locations = raw.get("locations")
        regions = frozenset(
            part.strip() for part in locations.split(",") if part.strip()
        ) if isinstance(locations, str) else frozenset()
        out.append(Instance(name=name, api_url=base_url, regions=regions))
    return out


class InstanceCatalog:
    """Candidate mirrors for a probing round.

    A static list wins when configured; otherwise the public list is fetched
    on every call. Extra instances are always appended.
    """

    def __init__(
        self,
        client: PipedClient,
        list_url: str,
        static: Optional[Sequence[Instance]] = None,
        extra: Sequence[Instance] = (),
        excluded: Sequence[str] = (),
        timeout: float = 5.0,
    ) -> None:
        self._client = client
        self.list_url = list_url
        self.static = list(static or [])
        self.extra = list(extra)
        self.excluded = list(excluded)
        self.timeout = timeout

    async def list_candidate_instances(self) -> List[Instance]:
        if self.static:
            return _dedupe([*self.static, *self.extra])
        try:
            payload = await self._client.list_instances(self.list_url, timeout=self.timeout)
            fetched = decode_instance_list(payload, self.excluded)
            logger.info("Fetched %d instances from %s", len(fetched), self.list_url)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching Piped instances from %s: %s", self.list_url, e)
            fetched = []
        return _dedupe([*fetched, *self.extra])
