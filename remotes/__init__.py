"""Remote run APIs.

Each source speaks one API's wire format: how a run is submitted, where its
status and artifacts are read from, and how errors are reported.
"""

from remotes.base import RunSource
from remotes.feature_research import FeatureResearchRequest, FeatureResearchSource
from remotes.decision_operator import DecisionOperatorSource, DecisionRunRequest
from remotes.factory import RUN_KINDS, get_run_source, get_poll_interval

__all__ = [
    "RunSource",
    "FeatureResearchRequest",
    "FeatureResearchSource",
    "DecisionRunRequest",
    "DecisionOperatorSource",
    "RUN_KINDS",
    "get_run_source",
    "get_poll_interval",
]
