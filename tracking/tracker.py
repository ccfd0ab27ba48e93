"""RunTracker: watches one remote run from submission to a terminal status.

One tracker owns at most one run and one polling task. Poll ticks never
overlap: a tick started while another is in flight waits for it. Every
submission, start/stop of polling and cancellation bumps a generation
counter; a tick remembers the generation it started under and drops its
responses if the counter has moved on by the time they arrive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel

from tracking.errors import (
    PollTransientFailure,
    RemoteJobFailed,
    RunDiscarded,
    SubmissionInFlight,
    TrackerError,
)
from tracking.state import ArtifactSet, RunHandle, RunStatus

if TYPE_CHECKING:
    from remotes.base import RunSource

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0  # seconds
POLL_ERROR_MESSAGE = "Unable to poll run state"

# Outcomes reported to on_finish and stored in run history
OUTCOME_COMPLETED = RunStatus.COMPLETED.value
OUTCOME_FAILED = RunStatus.FAILED.value
OUTCOME_CANCELLED = "cancelled"
OUTCOME_SUPERSEDED = "superseded"

FinishCallback = Callable[[RunHandle, ArtifactSet, str], None]


class RunTracker:
    """Tracks a single in-flight remote run for one run source.

    Usage:
        tracker = RunTracker(FeatureResearchSource())
        await tracker.submit({"feature": "SSO support", "category": "auth"})
        artifacts = await tracker.wait()
    """

    def __init__(
        self,
        source: RunSource,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_finish: FinishCallback | None = None,
    ):
        self.source = source
        self.poll_interval = poll_interval
        self.on_finish = on_finish
        self._handle: RunHandle | None = None
        self._artifacts: ArtifactSet = {}
        self._submitting = False
        self._generation = 0
        self._poll_task: asyncio.Task | None = None
        self._poll_lock = asyncio.Lock()
        self._poll_count = 0
        self._result: asyncio.Future | None = None

    # ── Observed state ───────────────────────────────────

    @property
    def handle(self) -> RunHandle | None:
        return self._handle

    @property
    def artifacts(self) -> ArtifactSet:
        return self._artifacts

    @property
    def run_id(self) -> str | None:
        return self._handle.run_id if self._handle else None

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def poll_count(self) -> int:
        return self._poll_count

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> dict:
        """JSON-serialisable view of the tracker for the presentation layer."""
        return {
            "kind": self.source.name,
            "run": self._handle.to_dict() if self._handle else None,
            "artifacts": dict(self._artifacts),
            "polling": self.is_polling,
            "submitting": self._submitting,
            "poll_count": self._poll_count,
        }

    # ── Lifecycle ────────────────────────────────────────

    async def submit(self, request: dict | BaseModel) -> RunHandle:
        """Start a new remote run and begin polling it.

        Raises SubmissionInFlight if another submission is pending,
        InvalidRunRequest if the request does not fit the source's request
        model and SubmissionFailed if the remote API rejects the run. On
        failure the current state is left as it was.
        """
        if self._submitting:
            raise SubmissionInFlight()
        request = self.source.validate(request)

        self._submitting = True
        try:
            run_id = await self.source.submit(request)
        finally:
            self._submitting = False

        if self._handle is not None:
            logger.info("Run %s superseded by new %s run", self._handle.run_id, self.source.name)
        self._discard(OUTCOME_SUPERSEDED)

        self._handle = RunHandle(run_id=run_id)
        self._artifacts = {}
        self._poll_count = 0
        self._result = asyncio.get_running_loop().create_future()
        logger.info("Started %s run %s", self.source.name, run_id)

        self.start_polling(run_id)
        return self._handle

    def start_polling(self, run_id: str) -> None:
        """(Re)start the polling cycle for the tracked run.

        Any existing cycle is cancelled first, so there is never more than
        one polling task. A run that already reached a terminal status is
        not polled again.
        """
        if self._handle is None or self._handle.run_id != run_id:
            raise ValueError(f"Run {run_id} is not the tracked run")
        self._stop_timer()
        if self._handle.is_terminal:
            logger.debug("Run %s is %s, not polling", run_id, self._handle.status.value)
            return

        generation = self._generation
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_loop(generation), name=f"poll-{self.source.name}-{run_id}",
        )

    def stop_polling(self) -> None:
        """Stop the polling cycle. Safe to call when nothing is polling."""
        self._stop_timer()

    def cancel(self) -> bool:
        """Stop tracking the current run and forget its state.

        The remote job is not told about this. Returns False when there was
        nothing to cancel.
        """
        if self._handle is None:
            return False
        logger.info("Cancelled tracking of %s run %s", self.source.name, self._handle.run_id)
        self._discard(OUTCOME_CANCELLED)
        return True

    async def wait(self, timeout: float | None = None) -> ArtifactSet:
        """Wait until tracking of the current run ends.

        Returns the final artifacts of a completed run. Raises
        RemoteJobFailed when the remote job failed and RunDiscarded when the
        run was cancelled or superseded first.
        """
        if self._result is None:
            raise TrackerError("No run is being tracked")
        outcome, handle, artifacts = await asyncio.wait_for(asyncio.shield(self._result), timeout)
        if outcome == OUTCOME_COMPLETED:
            return artifacts
        if outcome == OUTCOME_FAILED:
            raise RemoteJobFailed(handle.run_id, handle.error)
        raise RunDiscarded(handle.run_id)

    # ── Polling ──────────────────────────────────────────

    async def poll_once(self) -> None:
        """Fetch run status, then artifacts, and apply whatever succeeded.

        The two fetches are independent and no error escapes either of them.
        When both fail, the handle gets a poll error annotation but keeps its
        status. If a tick is already in flight this one waits for it, so
        responses are applied in the order ticks started.
        """
        lock = self._poll_lock
        async with lock:
            if lock is not self._poll_lock:
                return  # polling was restarted or stopped while waiting
            await self._poll_tick()

    async def _poll_tick(self) -> None:
        if self._handle is None or self._handle.is_terminal:
            return
        generation = self._generation
        run_id = self._handle.run_id
        self._poll_count += 1

        status_ok = False
        try:
            payload = await self.source.fetch_status(run_id)
            if self._is_current(generation, run_id):
                self._handle = RunHandle.from_payload(run_id, payload, previous=self._handle)
            status_ok = True
        except (PollTransientFailure, ValueError) as e:
            logger.debug("Status fetch for run %s failed: %s", run_id, e)
        except Exception:
            logger.warning("Unexpected error fetching status of run %s", run_id, exc_info=True)

        artifacts_ok = False
        try:
            artifacts = await self.source.fetch_artifacts(run_id)
            if self._is_current(generation, run_id):
                self._artifacts = artifacts
            artifacts_ok = True
        except PollTransientFailure as e:
            logger.debug("Artifact fetch for run %s failed: %s", run_id, e)
        except Exception:
            logger.warning("Unexpected error fetching artifacts of run %s", run_id, exc_info=True)

        if not self._is_current(generation, run_id):
            logger.debug("Dropped stale poll responses for run %s", run_id)
            return

        if not status_ok and not artifacts_ok:
            logger.warning("Unable to poll %s run %s", self.source.name, run_id)
            self._handle.error = POLL_ERROR_MESSAGE

        if self._handle.is_terminal:
            self._stop_timer()
            status = self._handle.status.value
            if self._handle.status == RunStatus.FAILED:
                logger.warning("Run %s failed: %s", run_id, self._handle.error or "no error given")
            else:
                logger.info("Run %s completed with %d artifact(s)", run_id, len(self._artifacts))
            self._finish(status)

    async def _poll_loop(self, generation: int) -> None:
        """Poll, then sleep, until the generation moves on."""
        while generation == self._generation:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error("Poll tick for %s failed: %s", self.source.name, e)
            if generation != self._generation:
                return
            await asyncio.sleep(self.poll_interval)

    # ── Internals ────────────────────────────────────────

    def _is_current(self, generation: int, run_id: str) -> bool:
        return (
            generation == self._generation
            and self._handle is not None
            and self._handle.run_id == run_id
        )

    def _stop_timer(self) -> None:
        self._generation += 1
        # ticks of older generations keep their lock and drop their responses
        self._poll_lock = asyncio.Lock()
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _discard(self, outcome: str) -> None:
        self._stop_timer()
        if self._handle is not None:
            self._finish(outcome)
        self._handle = None
        self._artifacts = {}

    def _finish(self, outcome: str) -> None:
        """Resolve the run's result future and notify on_finish, once."""
        if self._result is None or self._result.done():
            return
        handle, artifacts = self._handle, dict(self._artifacts)
        self._result.set_result((outcome, handle, artifacts))
        if self.on_finish is not None:
            try:
                self.on_finish(handle, artifacts, outcome)
            except Exception:
                logger.warning("on_finish callback failed for run %s", handle.run_id, exc_info=True)
