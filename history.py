"""Run history: records every tracked run and how tracking ended."""

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy import select, desc

from db import async_session
from models import TrackedRun
from tracking.state import ArtifactSet, RunHandle

logger = logging.getLogger(__name__)


class RunHistory:
    """Persists tracked runs. Database errors are logged, never raised.

    Writes are serialised so a run's outcome is never stored before its
    submission.
    """

    def __init__(self):
        self._lock = asyncio.Lock()

    async def record_submitted(self, kind: str, run_id: str, request: dict | None = None) -> None:
        try:
            async with self._lock, async_session() as session:
                session.add(TrackedRun(kind=kind, run_id=run_id, request=request or {}))
                await session.commit()
        except Exception:
            logger.warning("Failed to record submission of %s run %s", kind, run_id, exc_info=True)

    async def record_finished(
        self,
        kind: str,
        handle: RunHandle,
        artifacts: ArtifactSet,
        outcome: str,
        poll_count: int = 0,
    ) -> None:
        try:
            async with self._lock, async_session() as session:
                row = (await session.execute(
                    select(TrackedRun)
                    .where(TrackedRun.kind == kind)
                    .where(TrackedRun.run_id == handle.run_id)
                    .order_by(desc(TrackedRun.id))
                    .limit(1)
                )).scalar_one_or_none()
                if row is None:
                    row = TrackedRun(kind=kind, run_id=handle.run_id)
                    session.add(row)

                row.status = handle.status.value
                row.step = handle.step
                row.error = handle.error
                row.artifact_types = sorted(artifacts)
                row.poll_count = poll_count
                row.outcome = outcome
                row.finished_at = datetime.now(timezone.utc)
                await session.commit()
        except Exception:
            logger.warning("Failed to record outcome of %s run %s", kind, handle.run_id, exc_info=True)

    async def recent(self, kind: str | None = None, limit: int = 50) -> list[dict]:
        """Most recently submitted runs first."""
        async with async_session() as session:
            query = select(TrackedRun).order_by(desc(TrackedRun.submitted_at), desc(TrackedRun.id)).limit(limit)
            if kind:
                query = query.where(TrackedRun.kind == kind)
            rows = (await session.execute(query)).scalars().all()

        return [
            {
                "id": r.id,
                "kind": r.kind,
                "run_id": r.run_id,
                "request": r.request,
                "status": r.status,
                "step": r.step,
                "error": r.error,
                "artifact_types": r.artifact_types or [],
                "poll_count": r.poll_count,
                "outcome": r.outcome,
                "submitted_at": r.submitted_at.isoformat() if r.submitted_at else None,
                "finished_at": r.finished_at.isoformat() if r.finished_at else None,
            }
            for r in rows
        ]
