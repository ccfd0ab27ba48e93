"""Run orchestrator: owns one tracker per run kind and the run history."""

import asyncio
import logging
from functools import partial
from typing import Callable

from history import RunHistory
from remotes.base import RunSource
from remotes.factory import RUN_KINDS, get_poll_interval, get_run_source
from tracking.state import ArtifactSet, RunHandle
from tracking.tracker import RunTracker

logger = logging.getLogger(__name__)


class RunOrchestrator:
    """Single owner of all tracker state.

    Each run kind gets exactly one RunTracker, created on first use. The
    presentation layer reads serialisable snapshots and drives runs through
    submit/cancel; tracker outcomes are written to run history.
    """

    def __init__(
        self,
        history: RunHistory | None = None,
        source_factory: Callable[[str], RunSource] = get_run_source,
        poll_interval: float | None = None,
    ):
        self.history = history or RunHistory()
        self._source_factory = source_factory
        self._poll_interval = poll_interval
        self._trackers: dict[str, RunTracker] = {}
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    async def start(self):
        self._running = True
        logger.info("Run orchestrator ready, kinds: %s", ", ".join(RUN_KINDS))

    async def stop(self):
        """Stop all polling and wait for pending history writes."""
        self._running = False
        for tracker in self._trackers.values():
            tracker.stop_polling()
        await self.flush()
        logger.info("Run orchestrator stopped")

    async def flush(self):
        """Wait for pending history writes."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def tracker(self, kind: str) -> RunTracker:
        if kind not in RUN_KINDS:
            raise ValueError(f"Unknown run kind: {kind!r}")
        if kind not in self._trackers:
            interval = self._poll_interval if self._poll_interval is not None else get_poll_interval(kind)
            self._trackers[kind] = RunTracker(
                self._source_factory(kind),
                poll_interval=interval,
                on_finish=partial(self._on_finish, kind),
            )
        return self._trackers[kind]

    async def submit(self, kind: str, request: dict) -> dict:
        """Start a run of this kind. The parsed request is kept in run history."""
        tracker = self.tracker(kind)
        parsed = tracker.source.validate(request)
        handle = await tracker.submit(parsed)
        await self.history.record_submitted(kind, handle.run_id, parsed.model_dump(mode="json"))
        return tracker.snapshot()

    def cancel(self, kind: str) -> bool:
        return self.tracker(kind).cancel()

    def snapshot(self, kind: str) -> dict:
        return self.tracker(kind).snapshot()

    def snapshot_all(self) -> dict:
        return {kind: self.tracker(kind).snapshot() for kind in RUN_KINDS}

    async def remote_runs(self, kind: str) -> list[dict]:
        """Runs the remote API knows about, including ones not tracked here."""
        return await self.tracker(kind).source.list_runs()

    async def wait(self, kind: str, timeout: float | None = None) -> ArtifactSet:
        return await self.tracker(kind).wait(timeout=timeout)

    async def health(self) -> dict[str, bool]:
        kinds = list(RUN_KINDS)
        results = await asyncio.gather(
            *(self.tracker(kind).source.health_check() for kind in kinds),
            return_exceptions=True,
        )
        return {kind: result is True for kind, result in zip(kinds, results)}

    def _on_finish(self, kind: str, handle: RunHandle, artifacts: ArtifactSet, outcome: str):
        poll_count = self._trackers[kind].poll_count
        try:
            task = asyncio.get_running_loop().create_task(
                self.history.record_finished(kind, handle, artifacts, outcome, poll_count=poll_count)
            )
        except RuntimeError:
            logger.warning("No event loop; outcome of %s run %s not recorded", kind, handle.run_id)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
