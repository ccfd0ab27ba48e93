"""FastAPI routes for the run watch API."""

import logging

from fastapi import APIRouter, Body, HTTPException

from history import RunHistory
from remotes.factory import RUN_KINDS
from tracking.errors import InvalidRunRequest, PollTransientFailure, SubmissionFailed, SubmissionInFlight

logger = logging.getLogger(__name__)
router = APIRouter()

# Set by main.py after the orchestrator is created
_orchestrator = None


def set_orchestrator(orch):
    global _orchestrator
    _orchestrator = orch


def _require_orchestrator():
    if not _orchestrator:
        raise HTTPException(503, "Orchestrator not running")
    return _orchestrator


def _require_kind(kind: str) -> str:
    if kind not in RUN_KINDS:
        raise HTTPException(404, f"Unknown run kind: {kind}")
    return kind


@router.get("/health")
async def get_health():
    """Service status plus reachability of each remote run API."""
    orch = _require_orchestrator()
    sources = await orch.health()
    return {
        "status": "ok" if all(sources.values()) else "degraded",
        "sources": sources,
    }


@router.get("/config")
async def get_config():
    """Feature research agent configuration (demo mode)."""
    orch = _require_orchestrator()
    return await orch.tracker("feature_research").source.get_config()


@router.get("/runs")
async def get_all_runs():
    """Snapshot of every tracker."""
    return _require_orchestrator().snapshot_all()


@router.get("/runs/{kind}")
async def get_run(kind: str):
    """Latest known state of the run tracked for this kind."""
    return _require_orchestrator().snapshot(_require_kind(kind))


@router.post("/runs/{kind}")
async def submit_run(kind: str, request: dict = Body(...)):
    """Start a new run. Any run already tracked for this kind is discarded.

    The body is parsed into the kind's request model (FeatureResearchRequest
    or DecisionRunRequest); validation errors come back as 400.
    """
    orch = _require_orchestrator()
    _require_kind(kind)
    try:
        return await orch.submit(kind, request)
    except InvalidRunRequest as e:
        raise HTTPException(400, e.message)
    except SubmissionInFlight as e:
        raise HTTPException(409, e.message)
    except SubmissionFailed as e:
        raise HTTPException(502, e.message)


@router.delete("/runs/{kind}")
async def cancel_run(kind: str):
    """Stop tracking the current run. The remote job keeps running."""
    cancelled = _require_orchestrator().cancel(_require_kind(kind))
    return {"status": "cancelled" if cancelled else "idle", "kind": kind}


@router.get("/runs/{kind}/remote")
async def get_remote_runs(kind: str):
    """Runs the remote API knows about for this kind, newest first."""
    orch = _require_orchestrator()
    _require_kind(kind)
    try:
        return {"runs": await orch.remote_runs(kind)}
    except NotImplementedError:
        raise HTTPException(404, f"{kind} runs cannot be listed")
    except PollTransientFailure as e:
        raise HTTPException(502, str(e))


@router.get("/runs/{kind}/artifacts/{artifact_type}")
async def get_artifact(kind: str, artifact_type: str):
    """One artifact of the tracked run, e.g. themes, evidence, brief, run_logs."""
    artifacts = _require_orchestrator().tracker(_require_kind(kind)).artifacts
    if artifact_type not in artifacts:
        raise HTTPException(404, f"Artifact {artifact_type} not available")
    return {"type": artifact_type, "json": artifacts[artifact_type]}


@router.get("/history")
async def get_history(kind: str | None = None, limit: int = 50):
    """Recently tracked runs, newest first."""
    if kind is not None:
        _require_kind(kind)
    orch = _require_orchestrator()
    history: RunHistory = orch.history
    return {"runs": await history.recent(kind=kind, limit=max(1, min(limit, 500)))}
