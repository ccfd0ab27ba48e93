"""SQLAlchemy models: local history of tracked runs."""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    JSON,
)
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TrackedRun(Base):
    """One remote run watched by a tracker, from submission to the end of tracking."""

    __tablename__ = "tracked_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(32), nullable=False, index=True)  # feature_research / decision_operator
    run_id = Column(String(128), nullable=False, index=True)
    request = Column(JSON, nullable=True)  # submitted job parameters
    status = Column(String(32), default="queued")  # last known remote status
    step = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    artifact_types = Column(JSON, nullable=True)  # ["themes", "evidence", ...]
    poll_count = Column(Integer, default=0)
    outcome = Column(String(32), nullable=True, index=True)  # completed / failed / cancelled / superseded
    submitted_at = Column(DateTime, default=_utcnow, nullable=False)
    finished_at = Column(DateTime, nullable=True)
