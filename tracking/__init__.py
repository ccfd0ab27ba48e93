"""Client-side tracking of long-running remote runs.

A RunTracker submits a run to a RunSource, polls its status and artifacts
until the remote job reaches a terminal status, and exposes the latest
known state to the presentation layer.
"""

from tracking.errors import (
    TrackerError,
    SubmissionFailed,
    InvalidRunRequest,
    SubmissionInFlight,
    PollTransientFailure,
    RemoteJobFailed,
    RunDiscarded,
)
from tracking.state import ArtifactSet, RunHandle, RunStatus, TERMINAL_STATUSES
from tracking.tracker import RunTracker

__all__ = [
    "TrackerError",
    "SubmissionFailed",
    "InvalidRunRequest",
    "SubmissionInFlight",
    "PollTransientFailure",
    "RemoteJobFailed",
    "RunDiscarded",
    "ArtifactSet",
    "RunHandle",
    "RunStatus",
    "TERMINAL_STATUSES",
    "RunTracker",
]
