"""Decision operator runs served under the operator API."""

import logging

import httpx
from pydantic import BaseModel, field_validator

from config import settings
from remotes.base import RunSource
from tracking.errors import PollTransientFailure, SubmissionFailed

logger = logging.getLogger(__name__)


class DecisionRunRequest(BaseModel):
    feature_name: str

    @field_validator("feature_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class DecisionOperatorSource(RunSource):
    """Operator API that synthesises a decision for a feature.

    The run detail embeds its artifacts as a list of ``{type, json}``
    records. fetch_status keeps the detail it read so the artifact fetch of
    the same tick reuses it instead of requesting the run again. A run can
    stop in ``needs_user_action`` while it waits on the user; that is not
    terminal.
    """

    request_model = DecisionRunRequest
    submit_error_fallback = "Failed to start decision run"

    def __init__(
        self,
        base_url: str | None = None,
        prefix: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            prefix if prefix is not None else settings.operator_api_prefix,
            base_url=base_url,
            timeout=timeout,
            client=client,
        )
        # run_id -> detail read by the last status fetch, consumed by fetch_artifacts
        self._details: dict[str, dict] = {}

    @property
    def name(self) -> str:
        return "decision_operator"

    def _submission_error(self, data: dict, status_code: int | None) -> str:
        message = data.get("detail") or data.get("error")
        if message:
            return str(message)
        if status_code is not None:
            return f"Failed to start run ({status_code})"
        return self.submit_error_fallback

    async def submit(self, request: dict | DecisionRunRequest) -> str:
        request = self.validate(request)
        data = await self._post_submission("/decision-runs", request.model_dump())

        run_id = str(data.get("decision_run_id") or "").strip()
        if not run_id:
            raise SubmissionFailed(f"No decision_run_id in response: {data}")
        return run_id

    async def fetch_status(self, run_id: str) -> dict:
        self._details.pop(run_id, None)
        detail = await self._get_object(f"/decision-runs/{run_id}")
        self._details[run_id] = detail
        return {
            "status": detail.get("status"),
            "step": detail.get("current_step"),
            "error": detail.get("error"),
            "progress": detail.get("progress"),
        }

    async def fetch_artifacts(self, run_id: str) -> dict:
        detail = self._details.pop(run_id, None)
        if detail is None:
            detail = await self._get_object(f"/decision-runs/{run_id}")
        return artifacts_by_type(detail.get("artifacts"))

    async def list_runs(self) -> list[dict]:
        """Run summaries known to the operator, newest first as served."""
        data = await self._get_json("/decision-runs")
        return data if isinstance(data, list) else []

    async def health_check(self) -> bool:
        try:
            data = await self._get_object("/health")
        except PollTransientFailure as e:
            logger.debug("Decision operator health check failed: %s", e)
            return False
        return str(data.get("status") or "ok").lower() == "ok"


def artifacts_by_type(records) -> dict:
    """Turn ``[{type, json}, ...]`` into ``{type: json}``. Later records win."""
    artifacts = {}
    if not isinstance(records, list):
        return artifacts
    for record in records:
        if isinstance(record, dict) and record.get("type"):
            artifacts[str(record["type"])] = record.get("json")
    return artifacts
