"""Test configuration and fixtures."""

import pytest
import os
from typing import Callable, List, Optional


# Set up test database URL before importing pagewise
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from pagewise.content_cache import RawContentCache
from pagewise.database import create_engine, create_session_factory, init_db
from pagewise.owner_store import InMemoryOwnerStore
from pagewise.processor import UnitProcessor
from pagewise.retry import RetryingInvoker
from pagewise.scheduler import JobScheduler
from pagewise.schemas import Job, JobKind, ManuscriptIssue
from pagewise.state import JobStateStore
from pagewise.usage import InMemoryUsageRecorder


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeInferenceClient:
    """Inference client double.

    ``handler(kind, payload, model)`` returns findings or raises; the
    default returns one issue per call.
    """

    def __init__(self, handler: Optional[Callable] = None):
        self.handler = handler or (lambda kind, payload, model: [make_issue()])
        self.calls = []

    async def call(self, kind, payload, model):
        self.calls.append((kind, payload, model))
        return self.handler(kind, payload, model)


def make_issue(summary: str = "Missing caption", page: int = 1) -> ManuscriptIssue:
    return ManuscriptIssue(
        issue_category="Structural Integrity",
        priority="High",
        summary=summary,
        quote="Figure 2 shows",
        page_number=page,
        recommendation="Add a caption below Figure 2.",
    )


def make_job(**overrides) -> Job:
    fields = {
        "owner_id": "owner_1",
        "kind": JobKind.MANUSCRIPT_ANALYSIS,
        "model": "test-model",
        "source_name": "manuscript.txt",
    }
    fields.update(overrides)
    return Job(**fields)


def paged_text(pages: int, words_per_page: int = 300) -> bytes:
    """TXT upload that paginates into exactly ``pages`` pseudo-pages."""
    words = [f"word{i}" for i in range(pages * words_per_page)]
    return " ".join(words).encode("utf-8")


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def inference_client():
    return FakeInferenceClient()


@pytest.fixture
def state():
    return JobStateStore()


@pytest.fixture
def content_cache():
    return RawContentCache(max_bytes=10 * 1024 * 1024)


@pytest.fixture
def owner_store():
    return InMemoryOwnerStore()


@pytest.fixture
def usage_recorder():
    return InMemoryUsageRecorder()


@pytest.fixture
def invoker(inference_client, sleep_recorder):
    return RetryingInvoker(inference_client, max_attempts=5, base_delay=2.0, sleep=sleep_recorder)


@pytest.fixture
def processor(state, invoker, sleep_recorder):
    return UnitProcessor(state, invoker, inter_chunk_delay=1.5, sleep=sleep_recorder)


@pytest.fixture
async def scheduler(state, processor, content_cache, owner_store, usage_recorder):
    scheduler = JobScheduler(state, processor, content_cache, owner_store, usage_recorder)
    yield scheduler
    await scheduler.close()


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database file."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()
