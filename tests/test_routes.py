"""Tests for the run watch HTTP API."""

import time
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import FakeHistory, FakeSource
from orchestrator import RunOrchestrator
from routes import router, set_orchestrator
from tracking.errors import PollTransientFailure, SubmissionFailed


def wait_for(predicate, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not met within timeout")
        time.sleep(0.01)


@pytest.fixture
def api():
    sources = {
        "feature_research": FakeSource("feature_research"),
        "decision_operator": FakeSource("decision_operator", run_ids=["d-1"]),
    }
    history = FakeHistory()
    orch = RunOrchestrator(history=history, source_factory=lambda kind: sources[kind], poll_interval=0.01)
    app = FastAPI()
    app.include_router(router)
    set_orchestrator(orch)

    with TestClient(app) as client:
        yield SimpleNamespace(client=client, orch=orch, sources=sources, history=history)
        client.portal.call(orch.stop)

    set_orchestrator(None)


class TestRuns:
    def test_submit_and_follow_a_run(self, api):
        api.sources["feature_research"].script(
            statuses=[{"status": "running", "step": "gathering evidence"}, {"status": "completed"}],
            artifacts=[{}, {"themes": [{"label": "SSO", "count": 5}]}],
        )

        resp = api.client.post("/runs/feature_research", json={"feature": "SSO support", "category": "auth"})

        assert resp.status_code == 200
        assert resp.json()["run"]["run_id"] == "r-1"

        wait_for(lambda: api.client.get("/runs/feature_research").json()["run"]["status"] == "completed")
        snap = api.client.get("/runs/feature_research").json()
        assert snap["artifacts"] == {"themes": [{"label": "SSO", "count": 5}]}
        assert snap["polling"] is False

        artifact = api.client.get("/runs/feature_research/artifacts/themes")
        assert artifact.json() == {"type": "themes", "json": [{"label": "SSO", "count": 5}]}
        assert api.client.get("/runs/feature_research/artifacts/brief").status_code == 404

    def test_all_runs(self, api):
        resp = api.client.get("/runs")

        assert resp.status_code == 200
        assert set(resp.json()) == {"feature_research", "decision_operator"}

    def test_invalid_request_is_400(self, api):
        resp = api.client.post("/runs/feature_research", json={"category": "auth"})

        assert resp.status_code == 400
        assert "feature" in resp.json()["detail"]

    def test_remote_rejection_is_502(self, api):
        api.sources["feature_research"].submit_error = SubmissionFailed("rate limited", status_code=500)

        resp = api.client.post("/runs/feature_research", json={"feature": "SSO support"})

        assert resp.status_code == 502
        assert resp.json()["detail"] == "rate limited"
        assert api.client.get("/runs/feature_research").json()["run"] is None

    def test_submission_in_flight_is_409(self, api):
        api.orch.tracker("feature_research")._submitting = True

        resp = api.client.post("/runs/feature_research", json={"feature": "SSO support"})

        assert resp.status_code == 409

    def test_cancel(self, api):
        api.client.post("/runs/decision_operator", json={"feature": "Dark Mode"})

        first = api.client.delete("/runs/decision_operator")
        second = api.client.delete("/runs/decision_operator")

        assert first.json() == {"status": "cancelled", "kind": "decision_operator"}
        assert second.json() == {"status": "idle", "kind": "decision_operator"}
        assert api.client.get("/runs/decision_operator").json()["run"] is None

    def test_remote_runs(self, api):
        api.sources["decision_operator"].remote_runs = [{"id": "d-7", "status": "running"}]

        resp = api.client.get("/runs/decision_operator/remote")

        assert resp.status_code == 200
        assert resp.json() == {"runs": [{"id": "d-7", "status": "running"}]}

    def test_remote_runs_not_listable_is_404(self, api):
        assert api.client.get("/runs/feature_research/remote").status_code == 404

    def test_remote_runs_unreachable_is_502(self, api):
        api.sources["decision_operator"].remote_runs = PollTransientFailure("GET /decision-runs returned 503")

        resp = api.client.get("/runs/decision_operator/remote")

        assert resp.status_code == 502
        assert "503" in resp.json()["detail"]

    @pytest.mark.parametrize("method", ["get", "post", "delete"])
    def test_unknown_kind_is_404(self, api, method):
        kwargs = {"json": {}} if method == "post" else {}

        resp = getattr(api.client, method)("/runs/kanban", **kwargs)

        assert resp.status_code == 404


class TestService:
    def test_health(self, api):
        api.sources["decision_operator"].healthy = False

        resp = api.client.get("/health")

        assert resp.json() == {
            "status": "degraded",
            "sources": {"feature_research": True, "decision_operator": False},
        }

    def test_config(self, api):
        assert api.client.get("/config").json() == {"demo_mode": True}

    def test_history(self, api):
        api.client.post("/runs/feature_research", json={"feature": "a"})
        api.client.delete("/runs/feature_research")
        wait_for(lambda: api.history.finished)

        resp = api.client.get("/history", params={"kind": "feature_research"})

        assert resp.json() == {"runs": [{"kind": "feature_research", "run_id": "r-1", "outcome": "cancelled"}]}

    def test_orchestrator_not_running(self, api):
        set_orchestrator(None)

        assert api.client.get("/runs").status_code == 503
