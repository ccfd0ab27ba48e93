"""Tests for run status parsing and RunHandle construction."""

import pytest

from tracking.state import TERMINAL_STATUSES, RunHandle, RunStatus


class TestRunStatus:
    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {RunStatus.COMPLETED, RunStatus.FAILED}
        assert not RunStatus.NEEDS_USER_ACTION.is_terminal
        assert not RunStatus.RUNNING.is_terminal

    def test_from_string_normalises_case_and_whitespace(self):
        assert RunStatus.from_string(" Completed ") == RunStatus.COMPLETED
        assert RunStatus.from_string("needs_user_action") == RunStatus.NEEDS_USER_ACTION

    def test_from_string_rejects_unknown(self):
        with pytest.raises(ValueError, match="paused"):
            RunStatus.from_string("paused")


class TestRunHandleFromPayload:
    def test_optional_fields_default_to_none(self):
        handle = RunHandle.from_payload("r-1", {"status": "running"})

        assert handle.run_id == "r-1"
        assert handle.status == RunStatus.RUNNING
        assert handle.step is None
        assert handle.error is None
        assert handle.progress is None

    def test_all_fields(self):
        handle = RunHandle.from_payload("r-1", {
            "status": "failed",
            "step": "synthesising brief",
            "error": "model timeout",
            "progress": {"pagesVisited": 12, "evidenceCount": 4, "themesCount": 2},
        })

        assert handle.is_terminal
        assert handle.step == "synthesising brief"
        assert handle.error == "model timeout"
        assert handle.progress == {"pagesVisited": 12, "evidenceCount": 4, "themesCount": 2}

    def test_run_id_comes_from_caller(self):
        handle = RunHandle.from_payload("r-1", {"runId": "r-999", "status": "queued"})

        assert handle.run_id == "r-1"

    def test_missing_status_keeps_previous(self):
        previous = RunHandle(run_id="r-1", status=RunStatus.RUNNING)

        handle = RunHandle.from_payload("r-1", {"step": "crawling"}, previous=previous)

        assert handle.status == RunStatus.RUNNING
        assert handle.step == "crawling"

    def test_missing_status_without_previous_is_queued(self):
        assert RunHandle.from_payload("r-1", {}).status == RunStatus.QUEUED

    def test_empty_strings_and_odd_progress_become_none(self):
        handle = RunHandle.from_payload("r-1", {"status": "running", "step": "", "error": "", "progress": [1, 2]})

        assert handle.step is None
        assert handle.error is None
        assert handle.progress is None

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            RunHandle.from_payload("r-1", {"status": "exploded"})

    def test_to_dict(self):
        handle = RunHandle(run_id="r-1", status=RunStatus.NEEDS_USER_ACTION, step="approve plan")

        assert handle.to_dict() == {
            "run_id": "r-1",
            "status": "needs_user_action",
            "step": "approve plan",
            "error": None,
            "progress": None,
        }
