"""Tests for the in-memory job store."""
from concurrent.futures import ThreadPoolExecutor

import pytest

from flask_app.services.job_store import InMemoryJobStore
from models.job import JobStatus
from utils.exceptions import JobNotFoundError


def _complete(job):
    job.status = JobStatus.COMPLETED


def test_create_returns_initiated_job(url_source):
    store = InMemoryJobStore()
    job_id = store.create(url_source, title="Lecture")

    job = store.get(job_id)
    assert job.id == job_id
    assert job.status is JobStatus.INITIATED
    assert job.title == "Lecture"
    assert set(job.stage_progress.values()) == {0}
    assert list(job.stage_progress) == [
        "validating", "extracting", "transcribing", "translating", "generating"
    ]


def test_get_unknown_job_raises():
    store = InMemoryJobStore()
    with pytest.raises(JobNotFoundError) as exc_info:
        store.get("missing")
    assert "missing" in str(exc_info.value)


def test_get_returns_independent_copy(url_source):
    store = InMemoryJobStore()
    job_id = store.create(url_source)

    snapshot = store.get(job_id)
    snapshot.stage_progress["extracting"] = 80
    snapshot.title = "changed"

    fresh = store.get(job_id)
    assert fresh.stage_progress["extracting"] == 0
    assert fresh.title is None


def test_update_applies_mutator_and_bumps_updated_at(url_source):
    store = InMemoryJobStore()
    job_id = store.create(url_source)
    before = store.get(job_id)

    after = store.update(job_id, lambda job: setattr(job, "status", JobStatus.DOWNLOADING))

    assert after.status is JobStatus.DOWNLOADING
    assert after.updated_at >= before.updated_at
    assert store.get(job_id).status is JobStatus.DOWNLOADING


def test_failed_mutator_leaves_record_untouched(url_source):
    store = InMemoryJobStore()
    job_id = store.create(url_source)

    def broken(job):
        job.title = "half written"
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.update(job_id, broken)
    assert store.get(job_id).title is None


def test_update_of_terminal_job_is_noop(url_source):
    store = InMemoryJobStore()
    job_id = store.create(url_source)
    store.update(job_id, _complete)

    result = store.update(job_id, lambda job: setattr(job, "status", JobStatus.FAILED))

    assert result.status is JobStatus.COMPLETED
    assert store.get(job_id).status is JobStatus.COMPLETED


def test_concurrent_increments_are_not_lost(url_source):
    store = InMemoryJobStore()
    job_id = store.create(url_source)

    def increment(job):
        job.stage_progress["extracting"] += 1

    with ThreadPoolExecutor(max_workers=16) as pool:
        for future in [pool.submit(store.update, job_id, increment) for _ in range(100)]:
            future.result()

    assert store.get(job_id).stage_progress["extracting"] == 100


def test_list_is_most_recently_updated_first(url_source):
    store = InMemoryJobStore()
    first = store.create(url_source)
    second = store.create(url_source)
    third = store.create(url_source)
    store.update(first, lambda job: setattr(job, "message", "touched"))

    assert [summary.id for summary in store.list(10)] == [first, third, second]
    assert [summary.id for summary in store.list(2)] == [first, third]
    assert store.list(0) == []


def test_bound_evicts_oldest_finished_jobs(url_source):
    evicted = []
    store = InMemoryJobStore(max_jobs=2, on_evict=evicted.append)

    ids = []
    for _ in range(3):
        job_id = store.create(url_source)
        store.update(job_id, _complete)
        ids.append(job_id)

    recent = store.list(10)
    assert [summary.id for summary in recent] == [ids[2], ids[1]]
    assert len(store) == 2
    assert ids[0] not in store
    assert [job.id for job in evicted] == [ids[0]]
    with pytest.raises(JobNotFoundError):
        store.get(ids[0])


def test_active_jobs_are_never_evicted(url_source):
    store = InMemoryJobStore(max_jobs=2)
    ids = [store.create(url_source) for _ in range(3)]

    assert len(store) == 3
    assert all(job_id in store for job_id in ids)

    # Once one finishes, the store shrinks back to its bound.
    store.update(ids[1], _complete)
    assert len(store) == 2
    assert ids[1] not in store


def test_delete_is_idempotent(url_source):
    store = InMemoryJobStore()
    job_id = store.create(url_source)

    store.delete(job_id)
    store.delete(job_id)

    assert job_id not in store
    with pytest.raises(JobNotFoundError):
        store.update(job_id, _complete)


def test_max_jobs_must_be_positive():
    with pytest.raises(ValueError):
        InMemoryJobStore(max_jobs=0)
