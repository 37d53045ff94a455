from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Generic, TypeVar

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

V = TypeVar("V")


class JsonFileStore(Generic[V]):
    """In-memory map mirrored to a single JSON document.

    The whole file is read once at construction and rewritten on every
    mutation while `_lock` is held, so writers never interleave. A missing or
    unreadable file starts the store empty.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._data: Dict[str, V] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def decode(self, payload: Dict[str, Any]) -> Dict[str, V]:
        """Turn the parsed JSON document into the in-memory map."""
        return dict(payload)

    def encode(self) -> Dict[str, Any]:
        return dict(self._data)

    def _load(self) -> Dict[str, V]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable store %s: %s", self._path, e)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring store %s: top-level JSON is not an object", self._path)
            return {}
        return self.decode(payload)

    async def _persist_locked(self) -> None:
        payload = json.dumps(self.encode(), ensure_ascii=False, separators=(",", ":"))
        tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        try:
            await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as fh:
                await fh.write(payload)
            await aiofiles.os.replace(tmp_path, self._path)
        except OSError as e:
            # In-memory state stays authoritative until the next successful write
            logger.warning("Failed to persist %s: %s", self._path, e)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data
