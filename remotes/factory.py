"""Run source factory for selecting a remote API by run kind."""

import logging

from config import settings
from remotes.base import RunSource

logger = logging.getLogger(__name__)

RUN_KINDS = ("feature_research", "decision_operator")

# Cache source instances
_sources: dict[str, RunSource] = {}


def get_run_source(kind: str, force_new: bool = False) -> RunSource:
    """Get the run source for a run kind.

    Supports:
    - feature_research: agent API feature research runs
    - decision_operator: operator API decision runs

    Args:
        kind: Run kind.
        force_new: If True, create a new instance instead of using cached.

    Returns:
        Configured RunSource instance.

    Raises:
        ValueError: If the kind is unknown.
    """
    if kind in _sources and not force_new:
        return _sources[kind]

    if kind == "feature_research":
        from remotes.feature_research import FeatureResearchSource

        source = FeatureResearchSource()
    elif kind == "decision_operator":
        from remotes.decision_operator import DecisionOperatorSource

        source = DecisionOperatorSource()
    else:
        raise ValueError(f"Unknown run kind: {kind!r} (expected one of {', '.join(RUN_KINDS)})")

    logger.info("Using %s source at %s%s", kind, settings.api_base_url, source.prefix)
    _sources[kind] = source
    return source


def get_poll_interval(kind: str) -> float:
    """Configured poll interval in seconds for a run kind."""
    if kind == "decision_operator":
        return settings.operator_poll_interval
    return settings.research_poll_interval
