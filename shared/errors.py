from __future__ import annotations

from typing import Any, Optional


class JobError(Exception):
    """Base class for everything that can go wrong with an analysis job."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SubmissionError(JobError):
    """The job never started: bad request, auth failure or backend rejection."""

    def __init__(self, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(reason)
        self.status_code = status_code


class PollTransientError(JobError):
    """A single status check failed. The next tick retries implicitly."""

    def __init__(self, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(reason)
        self.status_code = status_code


class JobFailure(JobError):
    """The backend explicitly reported the job as failed, cancelled or expired."""

    def __init__(self, reason: str, raw_status: Any = None) -> None:
        super().__init__(reason)
        self.raw_status = raw_status


class JobTimeout(JobError):
    """The client-side ceiling passed without a terminal backend answer."""

    def __init__(self, reason: str, elapsed_sec: float) -> None:
        super().__init__(reason)
        self.elapsed_sec = elapsed_sec
