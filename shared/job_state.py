"""
Controller state for one tracked analysis job.

The controller is always in exactly one of four states:

    Idle       no job, no polling thread
    Polling    job id assigned, thread running
    Completed  terminal, carries the opaque result payload
    Failed     terminal, carries the error that ended the job

Raw backend statuses are first mapped to a canonical JobStatus through the
job kind's status table, and each canonical status belongs to one Phase.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from shared.errors import JobError, JobFailure, JobTimeout


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PENDING = "pending"
    RESEARCHING = "researching"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def phase(self) -> Phase:
        return _PHASES[self]

    @property
    def is_terminal(self) -> bool:
        return self.phase in (Phase.SUCCEEDED, Phase.FAILED)


_PHASES: Dict[JobStatus, Phase] = {
    JobStatus.QUEUED: Phase.NOT_STARTED,
    JobStatus.PENDING: Phase.NOT_STARTED,
    JobStatus.RESEARCHING: Phase.IN_PROGRESS,
    JobStatus.PROCESSING: Phase.IN_PROGRESS,
    JobStatus.COMPLETED: Phase.SUCCEEDED,
    JobStatus.FAILED: Phase.FAILED,
    JobStatus.CANCELLED: Phase.FAILED,
    JobStatus.EXPIRED: Phase.FAILED,
}

# A missing status means the backend is still working on it.
DEFAULT_STATUS = JobStatus.RESEARCHING


def normalize_status(raw: Any, status_map: Dict[str, str]) -> JobStatus:
    """
    Map a raw backend status onto the canonical enumeration.

    The kind's table is consulted first, then the canonical names themselves.
    Anything unrecognised is treated as in progress rather than terminal.
    """
    if raw is None:
        return DEFAULT_STATUS
    key = str(raw).strip().lower()
    if not key:
        return DEFAULT_STATUS
    mapped = status_map.get(key, key)
    try:
        return JobStatus(mapped)
    except ValueError:
        return DEFAULT_STATUS


class FailureKind(str, Enum):
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Idle:
    name: str = "idle"


@dataclass(frozen=True)
class Polling:
    job_id: Any
    symbol: str
    started_at: float
    submitted_at: datetime
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    poll_count: int = 0
    last_poll_at: Optional[datetime] = None
    estimated_time_remaining: Optional[float] = None
    query: Optional[str] = None
    message: Optional[str] = None
    name: str = "polling"


@dataclass(frozen=True)
class Completed:
    result: Any
    symbol: str
    job_id: Any = None
    submitted_at: Optional[datetime] = None
    poll_count: int = 0
    query: Optional[str] = None
    cached: bool = False
    elapsed_sec: float = 0.0
    progress: int = 100
    name: str = "completed"


@dataclass(frozen=True)
class Failed:
    error: JobError
    symbol: str
    job_id: Any = None
    submitted_at: Optional[datetime] = None
    poll_count: int = 0
    progress: int = 0
    elapsed_sec: float = 0.0
    name: str = "failed"

    @property
    def reason(self) -> str:
        return self.error.reason

    @property
    def kind(self) -> FailureKind:
        if isinstance(self.error, JobTimeout):
            return FailureKind.TIMEOUT
        if isinstance(self.error, JobFailure):
            # str-enum compares equal to its plain value
            if self.error.raw_status == JobStatus.CANCELLED:
                return FailureKind.CANCELLED
            if self.error.raw_status == JobStatus.EXPIRED:
                return FailureKind.EXPIRED
        return FailureKind.FAILED


JobState = Union[Idle, Polling, Completed, Failed]

TERMINAL_STATES = (Completed, Failed)


@dataclass
class StatusReport:
    """One parsed status response, already normalized."""

    status: JobStatus
    raw_status: Any = None
    progress: Optional[float] = None
    estimated_time_remaining: Optional[float] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None


@dataclass
class SubmissionOutcome:
    """Either a job id to poll, or a result the backend served right away."""

    job_id: Any = None
    result: Optional[Any] = None
    query: Optional[str] = None

    @property
    def is_immediate(self) -> bool:
        return self.result is not None
