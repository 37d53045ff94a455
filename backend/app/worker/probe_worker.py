from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from ..utils.instance_prober import InstanceProber

logger = logging.getLogger(__name__)


class ProbeWorker:
    """Re-runs the instance latency race every `interval` seconds."""

    def __init__(self, prober: InstanceProber, interval: float = 3600.0) -> None:
        self.prober = prober
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()
        self.rounds = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.interval <= 0 or self.running:
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info("Probe worker started interval=%.0fs", self.interval)

    async def stop(self) -> None:
        self._stopped.set()
        task, self._task = self._task, None
        if task is None:
            return
        # Give an in-progress round a moment, then cancel as a fallback
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(asyncio.shield(task), timeout=0.5)
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _loop(self) -> None:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.prober.select_best()
                self.rounds += 1
            except Exception:
                logger.exception("Probing round failed; keeping previous selection")
