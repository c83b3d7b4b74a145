"""Tests for the deferred task queue."""

import asyncio

import pytest

from services.scheduler import DeferredTaskQueue, get_task_queue, set_task_queue


@pytest.mark.asyncio
async def test_job_runs_after_delay():
    queue = DeferredTaskQueue()
    ran = asyncio.Event()

    async def job():
        ran.set()

    queue.enqueue(job, delay=0.05)
    assert not ran.is_set()
    assert queue.pending_count == 1

    await queue.drain()

    assert ran.is_set()
    assert queue.pending_count == 0


@pytest.mark.asyncio
async def test_duplicate_pending_key_is_ignored():
    queue = DeferredTaskQueue()
    runs = []

    async def job():
        runs.append(1)

    first = queue.enqueue(job, delay=0.01, key="avatar:42")
    second = queue.enqueue(job, delay=0.01, key="avatar:42")
    await queue.drain()

    assert first == second == "avatar:42"
    assert runs == [1]


@pytest.mark.asyncio
async def test_key_can_be_reused_after_completion():
    queue = DeferredTaskQueue()
    runs = []

    async def job():
        runs.append(1)

    queue.enqueue(job, key="k")
    await queue.drain()
    queue.enqueue(job, key="k")
    await queue.drain()

    assert runs == [1, 1]


@pytest.mark.asyncio
async def test_failing_job_does_not_propagate():
    queue = DeferredTaskQueue()
    ran_after = []

    async def bad():
        raise ValueError("boom")

    async def good():
        ran_after.append(True)

    queue.enqueue(bad)
    queue.enqueue(good)
    await queue.drain()

    assert ran_after == [True]


@pytest.mark.asyncio
async def test_drain_waits_for_jobs_enqueued_by_jobs():
    queue = DeferredTaskQueue()
    order = []

    async def child():
        order.append("child")

    async def parent():
        order.append("parent")
        queue.enqueue(child, delay=0.01)

    queue.enqueue(parent)
    await queue.drain()

    assert order == ["parent", "child"]


@pytest.mark.asyncio
async def test_stop_cancels_pending_and_rejects_new_jobs():
    queue = DeferredTaskQueue()
    runs = []

    async def job():
        runs.append(1)

    queue.enqueue(job, delay=10)
    await queue.stop()
    queue.enqueue(job)
    await asyncio.sleep(0)

    assert runs == []
    assert queue.pending_count == 0


def test_global_registration():
    queue = DeferredTaskQueue()
    set_task_queue(queue)
    try:
        assert get_task_queue() is queue
    finally:
        set_task_queue(None)
