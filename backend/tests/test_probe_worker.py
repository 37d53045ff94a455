import asyncio

import pytest

from backend.app.worker.probe_worker import ProbeWorker


class FakeProber:
    def __init__(self, fail_first=False):
        self.rounds = 0
        self.fail_first = fail_first

    async def select_best(self):
        self.rounds += 1
        if self.fail_first and self.rounds == 1:
            raise RuntimeError("catalog exploded")
        return "https://piped.test"


@pytest.mark.asyncio
async def test_worker_reprobes_on_interval():
    prober = FakeProber()
    worker = ProbeWorker(prober, interval=0.02)
    await worker.start()
    assert worker.running
    await asyncio.sleep(0.15)
    await worker.stop()
    assert not worker.running
    assert prober.rounds >= 2
    assert worker.rounds == prober.rounds


@pytest.mark.asyncio
async def test_worker_survives_failed_round():
    prober = FakeProber(fail_first=True)
    worker = ProbeWorker(prober, interval=0.02)
    await worker.start()
    await asyncio.sleep(0.15)
    await worker.stop()
    assert prober.rounds >= 2
    assert worker.rounds == prober.rounds - 1


@pytest.mark.asyncio
async def test_zero_interval_disables_worker():
    worker = ProbeWorker(FakeProber(), interval=0)
    await worker.start()
    assert not worker.running
    await worker.stop()


@pytest.mark.asyncio
async def test_stop_does_not_wait_for_interval():
    prober = FakeProber()
    worker = ProbeWorker(prober, interval=3600)
    await worker.start()
    await asyncio.wait_for(worker.stop(), timeout=1)
    assert prober.rounds == 0
