from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from ..schemas.models import CacheEntry, SearchResult
from .json_store import JsonFileStore

logger = logging.getLogger(__name__)


class SearchCache(JsonFileStore[CacheEntry]):
    """Aggregated search results keyed by raw query text.

    On disk: {"<query>": {"result": {albums, playlists, songs}, "created_at": <epoch s>}}.
    With ttl_seconds=0 entries never expire.
    """

    def __init__(self, path: str | Path, ttl_seconds: int = 0, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = max(0, int(ttl_seconds))
        self._clock = clock
        super().__init__(path)

    def decode(self, payload: Dict[str, Any]) -> Dict[str, CacheEntry]:
        entries: Dict[str, CacheEntry] = {}
        for key, raw in payload.items():
            try:
                entries[key] = CacheEntry.model_validate(raw)
            except ValidationError:
                logger.warning("Dropping malformed cache entry for %r", key)
        return entries

    def encode(self) -> Dict[str, Any]:
        return {key: entry.model_dump(mode="json") for key, entry in self._data.items()}

    def now(self) -> int:
        return int(self._clock())

    def _is_expired(self, entry: CacheEntry) -> bool:
        return bool(self.ttl_seconds) and self.now() - entry.created_at >= self.ttl_seconds

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            entry = self._data.get(key)
        if entry is None or self._is_expired(entry):
            return None
        return entry.model_copy(deep=True)

    async def put(self, key: str, entry: CacheEntry) -> None:
        async with self._lock:
            self._data[key] = entry.model_copy(deep=True)
            await self._persist_locked()

    async def store_result(self, key: str, result: SearchResult) -> CacheEntry:
        """Replace the entry for `key` with `result` stamped now.

        Only what was just fetched is stored: a single-filter search leaves the
        other categories empty, so no list outlives its own timestamp.
        """
        entry = CacheEntry(result=result.model_copy(deep=True), created_at=self.now())
        await self.put(key, entry)
        return entry.model_copy(deep=True)
