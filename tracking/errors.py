"""Run tracking exceptions."""


class TrackerError(Exception):
    """Base exception for all run tracking errors"""

    pass


class SubmissionFailed(TrackerError):
    """Raised when a run could not be started. Never retried."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidRunRequest(SubmissionFailed):
    """Raised when required submission fields are missing or empty"""

    def __init__(self, message: str):
        super().__init__(message, status_code=None)


class SubmissionInFlight(SubmissionFailed):
    """Raised when submit is called while another submission is pending"""

    def __init__(self, message: str = "A run submission is already in progress"):
        super().__init__(message, status_code=None)


class PollTransientFailure(TrackerError):
    """A single status or artifact fetch failed. Retried on the next tick."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteJobFailed(TrackerError):
    """The remote system reported the run as failed."""

    def __init__(self, run_id: str, message: str | None = None):
        super().__init__(message or f"Run {run_id} failed")
        self.run_id = run_id
        self.remote_error = message


class RunDiscarded(TrackerError):
    """Tracking ended (cancelled or superseded) before a terminal status."""

    def __init__(self, run_id: str | None):
        super().__init__(f"Tracking for run {run_id} was discarded")
        self.run_id = run_id
