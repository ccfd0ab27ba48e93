"""Abstract base class for remote run APIs."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from config import settings
from tracking.errors import InvalidRunRequest, PollTransientFailure, SubmissionFailed

logger = logging.getLogger(__name__)


class RunSource(ABC):
    """A remote API that runs long-lived jobs and reports on them.

    Implementations: FeatureResearchSource, DecisionOperatorSource

    Requests are parsed into the source's ``request_model`` before they
    are submitted. Fetch methods raise PollTransientFailure for network
    errors, non-2xx responses and bodies that are not JSON. submit raises
    SubmissionFailed.
    """

    request_model: type[BaseModel]
    submit_error_fallback = "Failed to start run"

    def __init__(
        self,
        prefix: str,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.prefix = "/" + prefix.strip("/") if prefix.strip("/") else ""
        self.timeout = timeout or settings.request_timeout
        self._client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """Run kind served by this source."""
        ...

    def validate(self, request: dict | BaseModel) -> BaseModel:
        """Parse a request into this source's request model.

        Raises InvalidRunRequest naming every field that failed validation.
        """
        if isinstance(request, self.request_model):
            return request
        if isinstance(request, BaseModel):
            request = request.model_dump()
        try:
            return self.request_model.model_validate(request)
        except ValidationError as e:
            raise InvalidRunRequest(describe_validation_error(e)) from e

    @abstractmethod
    async def submit(self, request: BaseModel) -> str:
        """Start a run and return its run id."""
        ...

    @abstractmethod
    async def fetch_status(self, run_id: str) -> dict:
        """Return run status fields: status, step, progress, error."""
        ...

    @abstractmethod
    async def fetch_artifacts(self, run_id: str) -> dict:
        """Return the run's artifacts keyed by artifact type."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the remote API is reachable and healthy."""
        ...

    async def list_runs(self) -> list[dict]:
        """Run summaries known to the remote API."""
        raise NotImplementedError(f"{self.name} does not list runs")

    # ── HTTP helpers ─────────────────────────────────────

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.prefix}{path}"

    async def _request(self, method: str, path: str, json: dict | None = None) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self._client is not None:
            return await self._client.request(method, self._url(path), json=json, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, self._url(path), json=json, headers=headers)

    async def _get_json(self, path: str) -> Any:
        try:
            resp = await self._request("GET", path)
        except httpx.HTTPError as e:
            raise PollTransientFailure(f"GET {path} failed: {e}") from e

        if not resp.is_success:
            raise PollTransientFailure(
                f"GET {path} returned {resp.status_code}", status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise PollTransientFailure(f"GET {path} returned a non-JSON body") from e

    async def _get_object(self, path: str) -> dict:
        data = await self._get_json(path)
        if not isinstance(data, dict):
            raise PollTransientFailure(f"GET {path} returned {type(data).__name__}, expected an object")
        return data

    async def _post_submission(self, path: str, body: dict) -> dict:
        try:
            resp = await self._request("POST", path, json=body)
        except httpx.HTTPError as e:
            logger.warning("%s submission failed: %s", self.name, e)
            raise SubmissionFailed(self._submission_error({}, None)) from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not resp.is_success:
            message = self._submission_error(data, resp.status_code)
            logger.warning("%s submission rejected (%d): %s", self.name, resp.status_code, message)
            raise SubmissionFailed(message, status_code=resp.status_code)
        return data

    def _submission_error(self, data: dict, status_code: int | None) -> str:
        """Server-provided error message, or a generic fallback."""
        error = data.get("error")
        return str(error) if error else self.submit_error_fallback


def describe_validation_error(error: ValidationError) -> str:
    """One-line summary of a pydantic ValidationError, e.g. for HTTP 400s."""
    problems = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "request"
        problems.append(f"{field}: {err['msg']}")
    return "Invalid run request: " + "; ".join(problems)
