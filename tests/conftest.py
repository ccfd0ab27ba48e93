"""Shared test fixtures for run tracking tests."""

import asyncio
import os
import tempfile

# Settings are read at import time; point them at a scratch database and a
# fake remote before anything imports config.
_TMP_DIR = tempfile.mkdtemp(prefix="runwatch-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/runwatch-test.db"
os.environ["API_BASE_URL"] = "http://remote.test"

import pytest
from pydantic import BaseModel, ConfigDict, field_validator

from remotes.base import RunSource
from tracking.errors import PollTransientFailure


class FakeRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    feature: str

    @field_validator("feature")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class FakeSource(RunSource):
    """Scripted in-memory RunSource.

    Status and artifact responses are queued per run id (``"*"`` for any
    run). The last queued response repeats. Queued exceptions are raised.
    Fetches for a run id listed in ``gates`` wait on that event first.
    Submitted requests are recorded as dicts after validation.
    """

    request_model = FakeRequest

    def __init__(self, kind: str = "feature_research", run_ids: list[str] | None = None):
        super().__init__("/fake", base_url="http://remote.test")
        self._kind = kind
        self.run_ids = list(run_ids or ["r-1", "r-2", "r-3"])
        self.submitted: list[dict] = []
        self.submit_error: Exception | None = None
        self.submit_gate: asyncio.Event | None = None
        self.statuses: dict[str, list] = {"*": [{"status": "running"}]}
        self.artifacts: dict[str, list] = {"*": [{}]}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, str]] = []
        self.healthy = True
        self.remote_runs: list[dict] | Exception | None = None

    @property
    def name(self) -> str:
        return self._kind

    def script(self, run_id: str = "*", statuses: list | None = None, artifacts: list | None = None):
        if statuses is not None:
            self.statuses[run_id] = list(statuses)
        if artifacts is not None:
            self.artifacts[run_id] = list(artifacts)

    def fetch_count(self, kind: str | None = None) -> int:
        return len([c for c in self.calls if kind is None or c[0] == kind])

    async def submit(self, request: FakeRequest) -> str:
        self.submitted.append(request.model_dump())
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return self.run_ids.pop(0)

    async def fetch_status(self, run_id: str) -> dict:
        self.calls.append(("status", run_id))
        return await self._respond(self.statuses, run_id)

    async def fetch_artifacts(self, run_id: str) -> dict:
        self.calls.append(("artifacts", run_id))
        return await self._respond(self.artifacts, run_id)

    async def health_check(self) -> bool:
        return self.healthy

    async def get_config(self) -> dict:
        return {"demo_mode": True}

    async def list_runs(self) -> list[dict]:
        if self.remote_runs is None:
            return await super().list_runs()
        if isinstance(self.remote_runs, Exception):
            raise self.remote_runs
        return self.remote_runs

    async def _respond(self, queues: dict, run_id: str):
        gate = self.gates.get(run_id)
        if gate is not None:
            await gate.wait()
        queue = queues.get(run_id) or queues["*"]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


class FakeHistory:
    """In-memory stand-in for RunHistory."""

    def __init__(self):
        self.submitted: list[tuple[str, str, dict]] = []
        self.finished: list[tuple[str, str, str]] = []

    async def record_submitted(self, kind, run_id, request=None):
        self.submitted.append((kind, run_id, request or {}))

    async def record_finished(self, kind, handle, artifacts, outcome, poll_count=0):
        self.finished.append((kind, handle.run_id, outcome))

    async def recent(self, kind=None, limit=50):
        rows = [
            {"kind": k, "run_id": r, "outcome": o}
            for k, r, o in reversed(self.finished)
            if kind is None or k == kind
        ]
        return rows[:limit]


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005):
    """Poll ``predicate`` until it is truthy or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met within timeout")
        await asyncio.sleep(interval)


def transient(message: str = "connection refused") -> PollTransientFailure:
    return PollTransientFailure(message)


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
async def database():
    """Fresh tracked_runs table for each test."""
    from db import create_tables, engine
    from models import Base

    await create_tables()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def empty_source_cache(monkeypatch):
    """Run the source factory against an empty instance cache."""
    from remotes import factory

    monkeypatch.setattr(factory, "_sources", {})
