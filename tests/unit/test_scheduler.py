import asyncio
import pytest

from pagewise.content_cache import PendingContent
from pagewise.schemas import JobStatus
from pagewise.utils.errors import JobInProgress

from conftest import make_issue, make_job, paged_text


async def _enqueue(state, content_cache, owner_store, scheduler, pages=1, store_content=True, **job_fields):
    job = state.create(make_job(**job_fields))
    if store_content:
        content_cache.put(
            job.id,
            PendingContent(data=paged_text(pages), filename="manuscript.txt"),
        )
    await owner_store.apply_update(job.owner_id, lambda data: data.upsert_job(job))
    scheduler.submit(job.id)
    return job


async def _stored(owner_store, job):
    return (await owner_store.get(job.owner_id)).find_job(job.id)


@pytest.mark.asyncio
async def test_jobs_start_in_submission_order(state, content_cache, owner_store, scheduler):
    started = []

    def observer(job):
        if job.logs and job.logs[-1].endswith("Processing started."):
            started.append(job.id)

    state.subscribe_all(observer)

    jobs = [await _enqueue(state, content_cache, owner_store, scheduler) for _ in range(3)]
    await scheduler.wait_idle()

    assert started == [job.id for job in jobs]
    statuses = [(await _stored(owner_store, job)).status for job in jobs]
    assert statuses == [JobStatus.COMPLETED] * 3


@pytest.mark.asyncio
async def test_single_flight(state, content_cache, owner_store, scheduler):
    """Never more than one job processing at a time"""
    max_active = 0

    def observer(_):
        nonlocal max_active
        active = sum(1 for job in state.list_jobs() if job.status == JobStatus.PROCESSING)
        max_active = max(max_active, active)

    state.subscribe_all(observer)
    for _ in range(3):
        await _enqueue(state, content_cache, owner_store, scheduler, pages=2)
    await scheduler.wait_idle()

    assert max_active == 1
    assert not scheduler.busy
    assert scheduler.pending() == []


@pytest.mark.asyncio
async def test_terminal_job_committed_and_content_released(
    state, content_cache, owner_store, usage_recorder, scheduler
):
    job = await _enqueue(state, content_cache, owner_store, scheduler)
    await scheduler.wait_idle()

    stored = (await owner_store.get(job.owner_id)).find_job(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert stored.result == [make_issue()]
    assert job.id not in content_cache
    assert content_cache.total_bytes == 0
    assert len(usage_recorder.entries) == 1
    assert usage_recorder.entries[0].tool_name == "Manuscript Analyzer"
    assert usage_recorder.entries[0].job_id == job.id


@pytest.mark.asyncio
async def test_missing_content_fails_job_and_queue_advances(
    state, content_cache, owner_store, usage_recorder, scheduler
):
    orphan = await _enqueue(state, content_cache, owner_store, scheduler, store_content=False)
    follower = await _enqueue(state, content_cache, owner_store, scheduler)
    await scheduler.wait_idle()

    failed = await _stored(owner_store, orphan)
    assert failed.status == JobStatus.ERROR
    assert failed.logs[-1].endswith("ERROR: File content not found.")
    assert (await _stored(owner_store, follower)).status == JobStatus.COMPLETED
    assert [entry.job_id for entry in usage_recorder.entries] == [follower.id]


@pytest.mark.asyncio
async def test_failed_job_records_no_usage(state, content_cache, owner_store, usage_recorder, scheduler):
    job = state.create(make_job(source_name="broken.pdf"))
    content_cache.put(job.id, PendingContent(data=b"garbage", filename="broken.pdf"))
    scheduler.submit(job.id)
    await scheduler.wait_idle()

    assert job.id not in state
    assert usage_recorder.entries == []
    assert (await _stored(owner_store, job)).status == JobStatus.ERROR


@pytest.mark.asyncio
async def test_usage_failure_does_not_block_commit(state, content_cache, owner_store, usage_recorder, scheduler, mocker):
    mocker.patch.object(usage_recorder, "record_usage", side_effect=RuntimeError("ledger offline"))

    job = await _enqueue(state, content_cache, owner_store, scheduler)
    await scheduler.wait_idle()

    assert (await owner_store.get(job.owner_id)).find_job(job.id).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_remove_queued_job(state, content_cache, owner_store, inference_client, scheduler):
    gate = asyncio.Event()
    original_call = inference_client.call

    async def slow_call(kind, payload, model):
        await gate.wait()
        return await original_call(kind, payload, model)

    inference_client.call = slow_call

    first = await _enqueue(state, content_cache, owner_store, scheduler)
    second = await _enqueue(state, content_cache, owner_store, scheduler)
    for _ in range(3):
        await asyncio.sleep(0)

    assert scheduler.active_job_id == first.id
    with pytest.raises(JobInProgress):
        scheduler.remove(first.id)
    assert scheduler.remove(second.id) is True
    assert scheduler.remove("unknown") is False

    gate.set()
    await scheduler.wait_idle()

    assert (await _stored(owner_store, first)).status == JobStatus.COMPLETED
    assert state.get(second.id).status == JobStatus.QUEUED


@pytest.mark.asyncio
async def test_finished_jobs_leave_live_state(state, content_cache, owner_store, scheduler):
    jobs = [await _enqueue(state, content_cache, owner_store, scheduler) for _ in range(2)]
    await scheduler.wait_idle()

    assert state.list_jobs() == []
    assert [(await _stored(owner_store, job)).status for job in jobs] == [JobStatus.COMPLETED] * 2


@pytest.mark.asyncio
async def test_job_stays_live_when_commit_fails(state, content_cache, owner_store, scheduler, mocker):
    job = await _enqueue(state, content_cache, owner_store, scheduler)
    mocker.patch.object(owner_store, "apply_update", side_effect=RuntimeError("store offline"))
    await scheduler.wait_idle()

    assert state.get(job.id).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_processor_crash_fails_job_and_queue_advances(
    state, content_cache, owner_store, usage_recorder, processor, scheduler, mocker
):
    """A processor that raises still leaves the job terminal and the queue moving"""
    original_process = processor.process
    crashing = []

    async def process(job_id, content, model, strategy):
        if not crashing:
            crashing.append(job_id)
            raise RuntimeError("processor crashed")
        return await original_process(job_id, content, model, strategy)

    mocker.patch.object(processor, "process", side_effect=process)

    crashed = await _enqueue(state, content_cache, owner_store, scheduler)
    follower = await _enqueue(state, content_cache, owner_store, scheduler)
    await scheduler.wait_idle()

    failed = await _stored(owner_store, crashed)
    assert crashing == [crashed.id]
    assert failed.status == JobStatus.ERROR
    assert failed.result is None
    assert failed.logs[-1].endswith("FATAL ERROR: processor crashed")
    assert crashed.id not in content_cache
    assert (await _stored(owner_store, follower)).status == JobStatus.COMPLETED
    assert [entry.job_id for entry in usage_recorder.entries] == [follower.id]
    assert not scheduler.busy
    assert scheduler.pending() == []
