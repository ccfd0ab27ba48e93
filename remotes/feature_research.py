"""Feature research runs served under the agent API."""

import logging

import httpx
from pydantic import BaseModel, Field, field_validator

from config import settings
from remotes.base import RunSource
from tracking.errors import PollTransientFailure, SubmissionFailed

logger = logging.getLogger(__name__)


class FeatureResearchRequest(BaseModel):
    """A feature to research, as entered in the research form.

    ``competitors`` may be a list or a comma-separated string; blank
    entries are dropped. A missing, non-numeric or non-positive
    ``time_window_days`` is left unset so the configured default applies.
    """

    feature: str
    category: str
    competitors: list[str] = Field(default_factory=list)
    time_window_days: int | None = None
    persona: str | None = None

    @field_validator("feature", "category")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("competitors", mode="before")
    @classmethod
    def _split_competitors(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(c).strip() for c in value if str(c).strip()]

    @field_validator("time_window_days", mode="before")
    @classmethod
    def _positive_window(cls, value):
        try:
            window = int(value or 0)
        except (TypeError, ValueError):
            return None
        return window if window > 0 else None

    @field_validator("persona", mode="before")
    @classmethod
    def _blank_persona(cls, value):
        return str(value or "").strip() or None


class FeatureResearchSource(RunSource):
    """Agent API that researches a product feature across the web.

    Runs produce ``themes``, ``evidence`` and ``brief`` artifacts. Status
    responses carry ``progress`` counters (pages visited, evidence found,
    themes found).

    Usage:
        source = FeatureResearchSource()
        run_id = await source.submit({"feature": "SSO support", "category": "auth"})
    """

    request_model = FeatureResearchRequest
    submit_error_fallback = "Failed to start feature research run"

    def __init__(
        self,
        base_url: str | None = None,
        prefix: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        time_window_days: int | None = None,
    ):
        super().__init__(
            prefix if prefix is not None else settings.agent_api_prefix,
            base_url=base_url,
            timeout=timeout,
            client=client,
        )
        self.time_window_days = time_window_days or settings.research_time_window_days
        self.demo_mode = False

    @property
    def name(self) -> str:
        return "feature_research"

    def build_payload(self, request: dict | FeatureResearchRequest) -> dict:
        """Submission body for a research request, with the default window filled in."""
        request = self.validate(request)
        payload = request.model_dump(exclude_none=True)
        payload.setdefault("time_window_days", self.time_window_days)
        return payload

    async def submit(self, request: dict | FeatureResearchRequest) -> str:
        data = await self._post_submission("/feature-research", self.build_payload(request))

        run_id = str(data.get("runId") or "").strip()
        if not run_id:
            raise SubmissionFailed(f"No runId in response: {data}")
        if "demo_mode" in data:
            self.demo_mode = bool(data["demo_mode"])
        return run_id

    async def fetch_status(self, run_id: str) -> dict:
        return await self._get_object(f"/runs/{run_id}")

    async def fetch_artifacts(self, run_id: str) -> dict:
        return await self._get_object(f"/runs/{run_id}/artifacts")

    async def get_config(self) -> dict:
        """Agent configuration. An unreachable agent API reads as non-demo."""
        try:
            data = await self._get_object("/config")
        except PollTransientFailure as e:
            logger.debug("Could not load agent config: %s", e)
            self.demo_mode = False
            return {"demo_mode": False}
        self.demo_mode = bool(data.get("demo_mode"))
        return {**data, "demo_mode": self.demo_mode}

    async def health_check(self) -> bool:
        try:
            await self._get_object("/config")
            return True
        except PollTransientFailure:
            return False
