import asyncio

import pytest

from contract_intake.pipeline.task_queue import AnalysisTaskQueue


@pytest.mark.asyncio
async def test_processes_enqueued_ids():
    handled = []

    async def handler(analysis_id):
        handled.append(analysis_id)

    queue = AnalysisTaskQueue(handler, workers=2)
    await queue.start()
    queue.enqueue("a")
    queue.enqueue("b")
    await queue.join()
    await queue.stop()

    assert sorted(handled) == ["a", "b"]


@pytest.mark.asyncio
async def test_ignores_ids_already_queued():
    handled = []

    async def handler(analysis_id):
        handled.append(analysis_id)

    queue = AnalysisTaskQueue(handler, workers=1)
    assert queue.enqueue("a") is True
    assert queue.enqueue("a") is False
    await queue.start()
    await queue.join()
    await queue.stop()

    assert handled == ["a"]


@pytest.mark.asyncio
async def test_forgets_ids_once_handled():
    async def handler(analysis_id):
        pass

    queue = AnalysisTaskQueue(handler, workers=2)
    await queue.start()
    for index in range(5):
        queue.enqueue(f"id-{index}")
    await queue.join()

    assert queue.active_count == 0
    assert queue.enqueue("id-0") is True
    await queue.join()
    await queue.stop()


@pytest.mark.asyncio
async def test_stop_waits_for_running_handler():
    started = asyncio.Event()
    finished = []

    async def handler(analysis_id):
        started.set()
        await asyncio.sleep(0.2)
        finished.append(analysis_id)

    queue = AnalysisTaskQueue(handler, workers=1)
    await queue.start()
    queue.enqueue("slow")
    await started.wait()
    await queue.stop()

    assert finished == ["slow"]
    assert not queue.running


@pytest.mark.asyncio
async def test_stop_holds_back_waiting_ids():
    started = asyncio.Event()
    handled = []

    async def handler(analysis_id):
        started.set()
        await asyncio.sleep(0.1)
        handled.append(analysis_id)

    queue = AnalysisTaskQueue(handler, workers=1)
    await queue.start()
    queue.enqueue("first")
    queue.enqueue("second")
    await started.wait()
    await queue.stop()

    assert handled == ["first"]
    assert queue.enqueue("second") is False

    await queue.start()
    await queue.join()
    await queue.stop()
    assert handled == ["first", "second"]

@pytest.mark.asyncio
async def test_ids_queued_before_start_run_after_start():
    handled = []

    async def handler(analysis_id):
        handled.append(analysis_id)

    queue = AnalysisTaskQueue(handler, workers=1)
    queue.enqueue("early")
    await asyncio.sleep(0)
    assert handled == []

    await queue.start()
    await queue.join()
    await queue.stop()

    assert handled == ["early"]


@pytest.mark.asyncio
async def test_handler_errors_do_not_stop_workers():
    handled = []

    async def handler(analysis_id):
        if analysis_id == "bad":
            raise RuntimeError("boom")
        handled.append(analysis_id)

    queue = AnalysisTaskQueue(handler, workers=1)
    await queue.start()
    queue.enqueue("bad")
    queue.enqueue("good")
    await queue.join()

    assert queue.running
    await queue.stop()
    assert handled == ["good"]
    assert not queue.running
