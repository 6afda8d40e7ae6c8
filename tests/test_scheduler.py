# test_scheduler.py

import asyncio

from pool_balancer.scheduler import Job

def test_tick_is_dropped_while_running():
    calls = []

    async def scenario():
        release = asyncio.Event()

        async def cycle():
            calls.append(len(calls))
            await release.wait()

        job = Job(60, cycle)
        first = job.tick()
        await asyncio.sleep(0)

        assert job.running
        assert job.tick() is None

        release.set()
        await first
        assert not job.running

        await job.tick()

    asyncio.run(scenario())
    assert calls == [0, 1]

def test_failing_run_is_logged_not_raised(caplog):
    async def cycle():
        raise RuntimeError("boom")

    async def scenario():
        job = Job(60, cycle)
        await job.tick()
        return job.running

    assert asyncio.run(scenario()) is False
    assert "boom" in caplog.text

def test_timer_ticks_until_stopped():
    calls = []

    async def cycle():
        calls.append(1)

    async def scenario():
        job = Job(0.01, cycle)
        assert not job.enabled
        job.start()
        assert job.enabled
        await asyncio.sleep(0.1)
        job.stop()
        await job.wait_idle()
        count = len(calls)
        await asyncio.sleep(0.05)
        return count

    count = asyncio.run(scenario())
    assert count >= 2
    assert len(calls) == count

def test_wait_idle_without_run():
    async def cycle():
        pass

    asyncio.run(Job(60, cycle).wait_idle())
