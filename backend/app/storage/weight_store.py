from __future__ import annotations

import logging
from typing import Any, Dict

from .json_store import JsonFileStore

logger = logging.getLogger(__name__)


class WeightStore(JsonFileStore[Dict[str, int]]):
    """Per-query click counters: {"<query>": {"<result id>": <count>}}."""

    def decode(self, payload: Dict[str, Any]) -> Dict[str, Dict[str, int]]:
        table: Dict[str, Dict[str, int]] = {}
        for query, counters in payload.items():
            if not isinstance(counters, dict):
                logger.warning("Dropping malformed weights for %r", query)
                continue
            table[query] = {
                str(result_id): int(count)
                for result_id, count in counters.items()
                if isinstance(count, int) and not isinstance(count, bool)
            }
        return table

    def encode(self) -> Dict[str, Any]:
        return {query: dict(counters) for query, counters in self._data.items()}

    async def weights_for(self, query: str) -> Dict[str, int]:
        """Snapshot of the counters for `query` (empty when never selected)."""
        async with self._lock:
            return dict(self._data.get(query, {}))

    async def increment(self, query: str, result_id: str) -> int:
        async with self._lock:
            counters = self._data.setdefault(query, {})
            counters[result_id] = counters.get(result_id, 0) + 1
            await self._persist_locked()
            return counters[result_id]
