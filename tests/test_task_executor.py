"""
Tests for the worker pool.
"""
import asyncio

import pytest

from skill_translation.task_executor import TaskExecutor


def test_rejects_empty_pool():
    with pytest.raises(ValueError):
        TaskExecutor(lambda item: None, max_workers=0)


def test_processes_every_item():
    processed = []

    async def process(item):
        await asyncio.sleep(0)
        processed.append(item)

    async def scenario():
        executor = TaskExecutor(process, max_workers=2)
        executor.start()
        for i in range(5):
            executor.submit(i)
        await executor.join()
        status = executor.get_status()
        await executor.stop()
        return status

    status = asyncio.run(scenario())

    assert sorted(processed) == [0, 1, 2, 3, 4]
    assert status["pending_count"] == 0
    assert status["active_count"] == 0


def test_error_does_not_kill_worker():
    processed = []

    async def process(item):
        if item == "bad":
            raise RuntimeError("boom")
        processed.append(item)

    async def scenario():
        executor = TaskExecutor(process, max_workers=1)
        executor.start()
        executor.submit("bad")
        executor.submit("good")
        await executor.join()
        await executor.stop()

    asyncio.run(scenario())

    assert processed == ["good"]


def test_stop_returns_undelivered_items():
    async def scenario():
        gate = asyncio.Event()

        async def process(item):
            await gate.wait()

        executor = TaskExecutor(process, max_workers=1)
        executor.start()
        sizes = [executor.submit(i) for i in range(3)]
        await asyncio.sleep(0.01)
        active = executor.get_status()["active_count"]
        leftovers = await executor.stop()
        return sizes, active, leftovers, executor.is_running

    sizes, active, leftovers, running = asyncio.run(scenario())

    assert sizes == [1, 2, 3]
    assert active == 1
    assert leftovers == [1, 2]
    assert running is False


def test_stop_without_start_is_harmless():
    async def scenario():
        executor = TaskExecutor(lambda item: None)
        return await executor.stop()

    assert asyncio.run(scenario()) == []
