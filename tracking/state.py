"""Run state: status values, the run handle and artifact sets."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RunStatus(str, Enum):
    """Remote job status as reported by the run APIs.

    QUEUED / RUNNING: job accepted, still working
    NEEDS_USER_ACTION: blocked on the user remotely, still polled
    COMPLETED / FAILED: terminal, polling stops
    """
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_USER_ACTION = "needs_user_action"

    @classmethod
    def from_string(cls, value: str) -> "RunStatus":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown run status: {value!r}") from None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.FAILED})

# Artifact type -> arbitrary JSON payload. Replaced wholesale on each fetch.
ArtifactSet = dict[str, Any]


@dataclass
class RunHandle:
    """Latest known state of one remote run."""

    run_id: str
    status: RunStatus = RunStatus.QUEUED
    step: str | None = None
    error: str | None = None
    progress: dict[str, Any] | None = field(default=None)

    @classmethod
    def from_payload(
        cls,
        run_id: str,
        payload: dict,
        previous: "RunHandle | None" = None,
    ) -> "RunHandle":
        """Build a handle from a status response.

        Optional fields default to None. A payload without ``status`` keeps
        the previous status (or QUEUED). The run id always comes from the
        caller, never from the payload.
        """
        raw_status = payload.get("status")
        if raw_status:
            status = RunStatus.from_string(str(raw_status))
        elif previous is not None:
            status = previous.status
        else:
            status = RunStatus.QUEUED

        progress = payload.get("progress")
        return cls(
            run_id=run_id,
            status=status,
            step=payload.get("step") or None,
            error=payload.get("error") or None,
            progress=progress if isinstance(progress, dict) else None,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "step": self.step,
            "error": self.error,
            "progress": self.progress,
        }
