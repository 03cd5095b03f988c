"""Pytest configuration and fixtures."""
import os
import threading
import time
import pytest

from flask_app.services.stages import ExtractedAudio, StageRunner
from models.job import SourceKind, SourceRef
from models.segment import TimedSegment

YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment(tmp_path_factory):
    """Set up test environment variables for all tests."""
    base_dir = tmp_path_factory.mktemp("app")
    test_env_vars = {
        "APP_BASE_DIR": str(base_dir),
        "USE_SIMULATION": "true",
        "DEEPGRAM_API_KEY": "test-deepgram-key",
        "OPENAI_API_KEY": "test-openai-key",
        "DEEPSEEK_API_KEY": "test-deepseek-key",
        "UPLOAD_CLEANUP_DELAY_SECONDS": "3600",
        "FLASK_ENV": "testing",
    }

    for key, value in test_env_vars.items():
        os.environ[key] = value

    yield

    # Clean up environment variables after tests
    for key in test_env_vars:
        os.environ.pop(key, None)


@pytest.fixture(autouse=True)
def fresh_config():
    from utils.config import get_app_config
    get_app_config.cache_clear()
    yield
    get_app_config.cache_clear()


class FakeStage(StageRunner):
    """Stage returning a canned output; records which jobs ran it."""

    def __init__(self, name, output=None, error=None, on_run=None):
        self.name = name
        self.output = output
        self.error = error
        self.on_run = on_run
        self.calls = []

    def run(self, ctx):
        self.calls.append(ctx.job_id)
        if self.on_run:
            self.on_run(ctx)
        if self.error:
            raise self.error
        return self.output(ctx) if callable(self.output) else self.output


TRANSCRIPT = [
    TimedSegment(0.0, 3.2, "مرحبا بكم في هذا الفيديو التعليمي"),
    TimedSegment(3.5, 7.8, "اليوم سنتحدث عن أهمية اللغة العربية"),
]
TRANSLATION = [
    TimedSegment(0.0, 3.2, "Welcome to this educational video", original=TRANSCRIPT[0].text),
    TimedSegment(3.5, 7.8, "Today we will talk about the Arabic language", original=TRANSCRIPT[1].text),
]


def _write_documents(ctx, output_dir):
    files = {}
    for file_type, ext in (("pdf", ".pdf"), ("markdown", ".md"), ("srt", ".srt")):
        path = output_dir / f"{ctx.job_id}{ext}"
        path.write_text(f"{file_type} for {ctx.job_id}\n" + "x" * 50, encoding="utf-8")
        ctx.output_files.append(path)
        files[file_type] = str(path)
    return files


@pytest.fixture
def make_stages(tmp_path):
    """Factory for the four pipeline stages with working fake outputs.

    Keyword arguments override a stage by name (``extracting=FakeStage(...)``).
    """
    output_dir = tmp_path / "fake_outputs"
    output_dir.mkdir(exist_ok=True)

    def factory(**overrides):
        stages = {
            "extracting": FakeStage(
                "extracting",
                output=lambda ctx: ExtractedAudio(path=tmp_path / f"{ctx.job_id}.mp3", title="Test Video"),
            ),
            "transcribing": FakeStage("transcribing", output=list(TRANSCRIPT)),
            "translating": FakeStage("translating", output=list(TRANSLATION)),
            "generating": FakeStage("generating", output=lambda ctx: _write_documents(ctx, output_dir)),
        }
        stages.update(overrides)
        return [stages[name] for name in ("extracting", "transcribing", "translating", "generating")]

    return factory


@pytest.fixture
def fake_stage():
    return FakeStage


@pytest.fixture
def url_source():
    return SourceRef(SourceKind.URL, YOUTUBE_URL)


@pytest.fixture
def gate():
    """An event a fake stage can block on until the test releases it."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def wait_for():
    def waiter(fetch, predicate, timeout=5.0):
        deadline = time.monotonic() + timeout
        while True:
            value = fetch()
            if predicate(value):
                return value
            if time.monotonic() > deadline:
                raise AssertionError(f"Timed out waiting, last value: {value!r}")
            time.sleep(0.01)

    return waiter


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "uploads" / "lecture.mp3"
    path.parent.mkdir(exist_ok=True)
    path.write_bytes(b"ID3" + b"\x00" * 128)
    return path


@pytest.fixture
def app_config(tmp_path):
    from utils.config import load_app_config, StorageSettings
    import dataclasses

    config = load_app_config()
    storage = StorageSettings(
        upload_dir=tmp_path / "uploads",
        output_dir=tmp_path / "outputs",
        temp_dir=tmp_path / "temp",
    )
    return dataclasses.replace(config, storage=storage)


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: runs the simulated provider stack end to end")

@pytest.fixture
def build_supervisor(tmp_path):
    """Factory for supervisors wired to the given stages; shut down at teardown."""
    from flask_app.services.cleanup import DeferredCleanup
    from flask_app.services.job_orchestrator import JobOrchestrator
    from flask_app.services.job_store import InMemoryJobStore
    from flask_app.services.job_supervisor import JobSupervisor

    created = []

    def factory(stages, max_workers=2, max_jobs=100, preview_chars=20, cleanup_delay=3600.0):
        store = InMemoryJobStore(max_jobs=max_jobs)
        orchestrator = JobOrchestrator(store, stages, workspace_root=tmp_path / "work")
        supervisor = JobSupervisor(
            store,
            orchestrator,
            max_workers=max_workers,
            cleanup=DeferredCleanup(cleanup_delay),
            preview_chars=preview_chars,
        )
        created.append(supervisor)
        return supervisor

    yield factory
    for supervisor in created:
        supervisor.shutdown(wait=False)
