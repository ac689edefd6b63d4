import asyncio
from datetime import timedelta

from reportgen.jobs.deferred import GENERATION_FAILED, DeferredCompletionDispatcher
from reportgen.jobs.models import JobRecord, JobStatus, utcnow
from reportgen.jobs.store import InMemoryJobStore


def make_dispatcher(store, worker_fn=None, delay=0.01, cleanup_interval=3600.0):
    return DeferredCompletionDispatcher(
        store=store,
        worker_fn=worker_fn or (lambda job: f"/reports/{job.id}.csv"),
        delay_fn=lambda job: delay,
        expiry=timedelta(minutes=30),
        cleanup_interval=cleanup_interval,
    )


def test_submitted_job_completes_after_delay():
    async def scenario():
        store = InMemoryJobStore()
        dispatcher = make_dispatcher(store)
        job = store.create("Inventory")

        assert await dispatcher.submit(job) == job.id
        assert store.get(job.id).status == JobStatus.PENDING
        await asyncio.sleep(0.1)
        return store.get(job.id)

    done = asyncio.run(scenario())
    assert done.status == JobStatus.COMPLETED
    assert done.file_path == f"/reports/{done.id}.csv"


def test_worker_exception_marks_job_failed():
    def broken(job):
        raise RuntimeError("disk full")

    async def scenario():
        store = InMemoryJobStore()
        dispatcher = make_dispatcher(store, worker_fn=broken)
        job = store.create("Inventory")
        await dispatcher.submit(job)
        await asyncio.sleep(0.1)
        return store.get(job.id)

    failed = asyncio.run(scenario())
    assert failed.status == JobStatus.FAILED
    assert failed.error == GENERATION_FAILED


def test_cancel_prevents_completion():
    async def scenario():
        store = InMemoryJobStore()
        dispatcher = make_dispatcher(store, delay=0.05)
        job = store.create("Inventory")
        await dispatcher.submit(job)

        assert dispatcher.cancel(job.id) is True
        assert dispatcher.cancel(job.id) is False
        await asyncio.sleep(0.1)
        return store.get(job.id), dispatcher.is_scheduled(job.id)

    job, scheduled = asyncio.run(scenario())
    assert job.status == JobStatus.PENDING
    assert scheduled is False


def test_deleted_job_is_not_recreated():
    async def scenario():
        store = InMemoryJobStore()
        dispatcher = make_dispatcher(store, delay=0.02)
        job = store.create("Inventory")
        await dispatcher.submit(job)
        store.delete(job.id)
        await asyncio.sleep(0.1)
        return store.all()

    assert asyncio.run(scenario()) == []


def test_sweep_evicts_expired_jobs_and_cancels_work():
    async def scenario():
        store = InMemoryJobStore()
        dispatcher = make_dispatcher(store, delay=60, cleanup_interval=0.02)
        old = JobRecord(name="Old", created_at=utcnow() - timedelta(hours=1))
        store.set(old)
        await dispatcher.submit(old)

        await dispatcher.start()
        await asyncio.sleep(0.1)
        await dispatcher.stop()
        return store.get(old.id), dispatcher.is_scheduled(old.id)

    job, scheduled = asyncio.run(scenario())
    assert job is None
    assert scheduled is False


def test_stop_cancels_outstanding_work():
    async def scenario():
        store = InMemoryJobStore()
        dispatcher = make_dispatcher(store, delay=60)
        await dispatcher.start()
        jobs = [store.create(f"Report {i}") for i in range(3)]
        for job in jobs:
            await dispatcher.submit(job)
        assert dispatcher.scheduled_count == 3

        await dispatcher.stop()
        return dispatcher.scheduled_count, [store.get(job.id).status for job in jobs]

    scheduled, statuses = asyncio.run(scenario())
    assert scheduled == 0
    assert statuses == [JobStatus.PENDING] * 3
