"""Tests for job submission, cancellation and result access."""
import pytest

from flask_app.services.job_supervisor import PDF_PREVIEW_MESSAGE
from models.job import JobStatus, SourceKind, SourceRef
from utils.exceptions import (
    ArtifactNotFoundError,
    InvalidInputError,
    InvalidJobStateError,
    JobNotFoundError,
    JobNotReadyError,
    ServiceError,
)

URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
FINISHED = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


def _finished(supervisor, job_id, wait_for):
    return wait_for(lambda: supervisor.status(job_id), lambda job: job.status in FINISHED)


def test_submit_url_runs_job_to_completion(build_supervisor, make_stages, wait_for):
    supervisor = build_supervisor(make_stages())

    job_id = supervisor.submit_url(URL + "&t=42s")
    job = _finished(supervisor, job_id, wait_for)

    assert job.status is JobStatus.COMPLETED
    assert job.source.value == URL
    artifacts = supervisor.results(job_id)
    assert len(artifacts.translation) == 2
    assert set(artifacts.files) == {"pdf", "markdown", "srt"}


@pytest.mark.parametrize("url", ["", "   ", "https://vimeo.com/123", "not a url"])
def test_submit_rejects_invalid_urls(build_supervisor, make_stages, url):
    supervisor = build_supervisor(make_stages())

    with pytest.raises(InvalidInputError):
        supervisor.submit_url(url)
    assert supervisor.recent() == []


@pytest.mark.parametrize("start, end", [(30, 10), (10, 10), (-1, 5), (5, None), ("abc", 10)])
def test_submit_rejects_invalid_time_ranges(build_supervisor, make_stages, start, end):
    supervisor = build_supervisor(make_stages())

    with pytest.raises(InvalidInputError):
        supervisor.submit_url(URL, start, end)
    assert supervisor.recent() == []


def test_submit_keeps_valid_time_range(build_supervisor, make_stages):
    supervisor = build_supervisor(make_stages())

    job_id = supervisor.submit_url(URL, "10", 25.5)

    assert supervisor.status(job_id).source.time_range == (10.0, 25.5)


def test_submit_upload_requires_existing_audio_file(build_supervisor, make_stages, tmp_path):
    supervisor = build_supervisor(make_stages())
    text_file = tmp_path / "notes.txt"
    text_file.write_text("hello")

    with pytest.raises(InvalidInputError):
        supervisor.submit_upload(tmp_path / "missing.mp3")
    with pytest.raises(InvalidInputError):
        supervisor.submit_upload(text_file)


def test_status_of_unknown_job(build_supervisor, make_stages):
    supervisor = build_supervisor(make_stages())
    with pytest.raises(JobNotFoundError):
        supervisor.status("nope")
    with pytest.raises(JobNotFoundError):
        supervisor.cancel("nope")


def test_results_not_ready_while_running(build_supervisor, make_stages, fake_stage, gate, wait_for):
    stages = make_stages(
        transcribing=fake_stage("transcribing", output=make_stages()[1].output,
                                on_run=lambda ctx: gate.wait(5)),
    )
    supervisor = build_supervisor(stages)

    job_id = supervisor.submit_url(URL)
    wait_for(lambda: supervisor.status(job_id), lambda job: job.status is JobStatus.TRANSCRIBING)

    with pytest.raises(JobNotReadyError):
        supervisor.results(job_id)
    gate.set()
    assert _finished(supervisor, job_id, wait_for).status is JobStatus.COMPLETED


def test_cancel_running_job_takes_effect_at_next_stage(
        build_supervisor, make_stages, fake_stage, gate, wait_for):
    stages = make_stages(
        transcribing=fake_stage("transcribing", output=make_stages()[1].output,
                                on_run=lambda ctx: gate.wait(5)),
    )
    supervisor = build_supervisor(stages)
    job_id = supervisor.submit_url(URL)
    wait_for(lambda: supervisor.status(job_id), lambda job: job.status is JobStatus.TRANSCRIBING)

    requested = supervisor.cancel(job_id)
    assert requested.cancel_requested is True
    assert requested.status is JobStatus.TRANSCRIBING

    gate.set()
    job = _finished(supervisor, job_id, wait_for)
    assert job.status is JobStatus.CANCELLED
    assert stages[2].calls == []


def test_cancel_queued_job_is_immediate(build_supervisor, make_stages, fake_stage, gate, wait_for):
    stages = make_stages(
        extracting=fake_stage("extracting", output=make_stages()[0].output,
                              on_run=lambda ctx: gate.wait(5)),
    )
    supervisor = build_supervisor(stages, max_workers=1)
    running = supervisor.submit_url(URL)
    queued = supervisor.submit_url(URL)
    wait_for(lambda: supervisor.status(running), lambda job: job.status is JobStatus.DOWNLOADING)

    job = supervisor.cancel(queued)

    assert job.status is JobStatus.CANCELLED
    assert job.cancel_requested is True
    gate.set()
    assert _finished(supervisor, running, wait_for).status is JobStatus.COMPLETED
    assert queued not in stages[0].calls
    assert supervisor.status(queued).status is JobStatus.CANCELLED


def test_cancel_finished_jobs(build_supervisor, make_stages, fake_stage, wait_for):
    stages = make_stages(
        translating=fake_stage("translating", error=RuntimeError("provider unreachable")),
    )
    supervisor = build_supervisor(stages)
    failed = supervisor.submit_url(URL)
    _finished(supervisor, failed, wait_for)

    with pytest.raises(InvalidJobStateError):
        supervisor.cancel(failed)
    job = supervisor.status(failed)
    assert job.status is JobStatus.FAILED
    assert job.cancel_requested is False


def test_cancel_completed_job_is_rejected(build_supervisor, make_stages, wait_for):
    supervisor = build_supervisor(make_stages())
    job_id = supervisor.submit_url(URL)
    _finished(supervisor, job_id, wait_for)

    with pytest.raises(InvalidJobStateError):
        supervisor.cancel(job_id)
    assert supervisor.status(job_id).status is JobStatus.COMPLETED


def test_cancel_twice_returns_snapshot(build_supervisor, make_stages):
    supervisor = build_supervisor(make_stages())
    job_id = supervisor.store.create(SourceRef(SourceKind.URL, URL))
    supervisor.store.update(job_id, lambda job: setattr(job, "status", JobStatus.CANCELLED))

    assert supervisor.cancel(job_id).status is JobStatus.CANCELLED


def test_failed_job_has_no_results(build_supervisor, make_stages, fake_stage, wait_for):
    stages = make_stages(
        translating=fake_stage("translating", error=RuntimeError("provider unreachable")),
    )
    supervisor = build_supervisor(stages)
    job_id = supervisor.submit_url(URL)
    job = _finished(supervisor, job_id, wait_for)

    assert job.error.message == "provider unreachable"
    with pytest.raises(JobNotReadyError):
        supervisor.results(job_id)


def test_artifact_access(build_supervisor, make_stages, wait_for):
    supervisor = build_supervisor(make_stages(), preview_chars=20)
    job_id = supervisor.submit_url(URL)
    _finished(supervisor, job_id, wait_for)

    assert supervisor.artifact_path(job_id, "md").suffix == ".md"
    assert supervisor.artifact_path(job_id, "SRT").suffix == ".srt"

    preview = supervisor.artifact_preview(job_id, "markdown")
    assert len(preview) == 23 and preview.endswith("...")
    assert supervisor.artifact_preview(job_id, "srt", max_chars=1000).startswith("srt for")
    assert supervisor.artifact_preview(job_id, "pdf") == PDF_PREVIEW_MESSAGE

    with pytest.raises(InvalidInputError):
        supervisor.artifact_path(job_id, "docx")

    supervisor.artifact_path(job_id, "pdf").unlink()
    with pytest.raises(ArtifactNotFoundError):
        supervisor.artifact_path(job_id, "pdf")


def test_upload_file_cleanup(build_supervisor, make_stages, fake_stage, audio_file, tmp_path, wait_for):
    supervisor = build_supervisor(make_stages())
    job_id = supervisor.submit_upload(audio_file)
    _finished(supervisor, job_id, wait_for)

    wait_for(lambda: job_id in supervisor.cleanup, bool)
    assert audio_file.exists()

    failing = build_supervisor(make_stages(
        transcribing=fake_stage("transcribing", error=RuntimeError("no speech")),
    ))
    second = tmp_path / "uploads" / "second.wav"
    second.write_bytes(b"RIFF")
    failed_id = failing.submit_upload(second)
    _finished(failing, failed_id, wait_for)
    wait_for(lambda: second.exists(), lambda exists: not exists)


def test_recent_lists_newest_first(build_supervisor, make_stages, wait_for):
    supervisor = build_supervisor(make_stages(), max_jobs=2)
    ids = []
    for _ in range(3):
        job_id = supervisor.submit_url(URL)
        _finished(supervisor, job_id, wait_for)
        ids.append(job_id)

    assert [summary.id for summary in supervisor.recent(10)] == [ids[2], ids[1]]
    with pytest.raises(JobNotFoundError):
        supervisor.status(ids[0])


def test_shutdown_rejects_new_jobs(build_supervisor, make_stages):
    supervisor = build_supervisor(make_stages())
    supervisor.shutdown()

    with pytest.raises(ServiceError):
        supervisor.submit_url(URL)


def test_shutdown_cancels_queued_jobs_and_removes_their_uploads(
        build_supervisor, make_stages, fake_stage, gate, audio_file, wait_for):
    stages = make_stages(
        extracting=fake_stage("extracting", output=make_stages()[0].output,
                              on_run=lambda ctx: gate.wait(5)),
    )
    supervisor = build_supervisor(stages, max_workers=1)
    running = supervisor.submit_url(URL)
    wait_for(lambda: supervisor.status(running), lambda job: job.status is JobStatus.DOWNLOADING)
    queued = supervisor.submit_upload(audio_file)

    supervisor.shutdown(wait=False)

    job = supervisor.status(queued)
    assert job.status is JobStatus.CANCELLED
    assert job.message == "Service shutting down"
    assert not audio_file.exists()
    gate.set()
    assert queued not in stages[0].calls


def test_evicted_upload_job_removes_its_file(build_supervisor, make_stages, audio_file, wait_for):
    supervisor = build_supervisor(make_stages(), max_jobs=1)
    upload_id = supervisor.submit_upload(audio_file)
    _finished(supervisor, upload_id, wait_for)
    wait_for(lambda: upload_id in supervisor.cleanup, bool)

    later = supervisor.submit_url(URL)
    _finished(supervisor, later, wait_for)

    with pytest.raises(JobNotFoundError):
        supervisor.status(upload_id)
    assert upload_id not in supervisor.cleanup
    assert not audio_file.exists()


def test_no_cleanup_is_scheduled_for_a_job_evicted_while_finishing(
        build_supervisor, make_stages, audio_file):
    supervisor = build_supervisor(make_stages())
    job_id = supervisor.store.create(SourceRef(SourceKind.UPLOAD, str(audio_file)))
    supervisor.store.update(job_id, lambda job: setattr(job, "status", JobStatus.COMPLETED))
    finished_job = supervisor.status(job_id)
    supervisor.store.delete(job_id)

    supervisor._after_run(finished_job)

    assert job_id not in supervisor.cleanup
    assert len(supervisor.cleanup) == 0
