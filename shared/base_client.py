from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from shared.errors import PollTransientError, SubmissionError
from shared.job_state import Phase, StatusReport, SubmissionOutcome, normalize_status
from shared.profile_loader import get_status_map, get_threshold

# (method, url, json body, headers, timeout) -> (http status, decoded json or None)
Transport = Callable[[str, str, Optional[Dict[str, Any]], Dict[str, str], float], Tuple[int, Any]]


def _decode(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except ValueError:
        return None


def urllib_transport(
    method: str,
    url: str,
    body: Optional[Dict[str, Any]],
    headers: Dict[str, str],
    timeout: float,
) -> Tuple[int, Any]:
    """Send one request. Non-2xx answers are returned, not raised; network errors raise."""
    data = json.dumps(body).encode("utf-8") if body is not None else None
    req = Request(url, data=data, headers=headers, method=method)
    try:
        with urlopen(req, timeout=timeout) as resp:
            return resp.status, _decode(resp.read())
    except HTTPError as exc:
        return exc.code, _decode(exc.read())


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


class BaseJobClient(ABC):
    """
    Base contract for the HTTP side of one analysis job kind.

    Endpoints, status vocabulary, polling cadence and timeout all come from the
    kind's YAML profile. Subclasses only decide where the finished payload
    lives in a response.
    """

    def __init__(
        self,
        profile: Dict[str, Any],
        base_url: Optional[str] = None,
        session_cookie: Optional[str] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        self.profile = profile
        self.kind: str = profile["kind"]
        self.label: str = profile.get("label", self.kind)
        self.endpoints: Dict[str, str] = profile["endpoints"]
        self.status_map = get_status_map(profile)
        self.context_fields: List[str] = list(get_threshold(profile, "request", "context_fields", default=[]))
        self.include_symbol = bool(get_threshold(profile, "request", "include_symbol", default=False))

        self.base_url = (
            base_url
            or os.getenv("UCIE_BASE_URL", "").strip()
            or profile.get("base_url", "http://localhost:3000")
        ).rstrip("/")
        self.session_cookie = session_cookie or os.getenv("UCIE_SESSION_COOKIE", "").strip()
        self.http_timeout = float(profile.get("http_timeout_sec", 30))

        self.poll_interval_sec = float(
            os.getenv("UCIE_POLL_INTERVAL_SEC")
            or get_threshold(profile, "polling", "interval_sec", default=60)
        )
        self.timeout_sec = float(
            os.getenv("UCIE_TIMEOUT_SEC")
            or get_threshold(profile, "polling", "timeout_sec", default=900)
        )
        self.expected_minutes = float(get_threshold(profile, "progress", "expected_minutes", default=10))
        self.long_running_sec = float(get_threshold(profile, "progress", "long_running_sec", default=600))
        self.show_stages = bool(get_threshold(profile, "progress", "stages", default=False))

        self._transport: Transport = transport or urllib_transport

    # ------------------------------------------------------------------ #
    #  Submission
    # ------------------------------------------------------------------ #

    def submit(self, symbol: str, context: Optional[Dict[str, Any]] = None) -> SubmissionOutcome:
        """Start a job. Exactly one request, never retried here."""
        url = self.start_url(symbol)
        try:
            code, payload = self._send("POST", url, self.start_body(symbol, context or {}))
        except (URLError, OSError) as exc:
            raise SubmissionError(f"Failed to start analysis: {exc}") from exc

        body = payload if isinstance(payload, dict) else {}
        if not 200 <= code < 300:
            reason = body.get("error") or f"Failed to start analysis: HTTP {code}"
            raise SubmissionError(str(reason), status_code=code)
        if not body.get("success"):
            reason = body.get("error") or f"Failed to start {self.label} analysis"
            raise SubmissionError(str(reason), status_code=code)

        query = body.get("query") if isinstance(body.get("query"), str) else None
        data = body.get("data")
        if data is not None:
            return SubmissionOutcome(result=data, query=query)

        job_id = body.get("jobId")
        if job_id is None or job_id == "":
            raise SubmissionError("Invalid response from start endpoint", status_code=code)
        return SubmissionOutcome(job_id=job_id, query=query)

    def start_url(self, symbol: str) -> str:
        path = self.endpoints["start"].format(symbol=quote(symbol, safe=""))
        return f"{self.base_url}{path}"

    def start_body(self, symbol: str, context: Dict[str, Any]) -> Dict[str, Any]:
        body = {name: context.get(name) for name in self.context_fields}
        if self.include_symbol:
            body["symbol"] = symbol
        return body

    # ------------------------------------------------------------------ #
    #  Status
    # ------------------------------------------------------------------ #

    def fetch_status(self, job_id: Any, symbol: str) -> StatusReport:
        """One status check. Every failure mode is a PollTransientError."""
        url = self.status_url(job_id, symbol)
        try:
            code, payload = self._send("GET", url)
        except (URLError, OSError) as exc:
            raise PollTransientError(f"Failed to check status: {exc}") from exc

        if not 200 <= code < 300:
            raise PollTransientError(f"Failed to check status: HTTP {code}", status_code=code)
        if not isinstance(payload, dict):
            raise PollTransientError("Status response is not a JSON object", status_code=code)
        if payload.get("success") is False:
            raise PollTransientError(str(payload.get("error") or "Failed to check analysis status"), status_code=code)

        status = normalize_status(payload.get("status"), self.status_map)
        raw_progress = payload.get("progress")
        progress = _as_number(raw_progress)
        message = raw_progress.strip() if isinstance(raw_progress, str) and progress is None else None

        report = StatusReport(
            status=status,
            raw_status=payload.get("status"),
            progress=progress,
            estimated_time_remaining=_as_number(payload.get("estimatedTimeRemaining")),
            error=payload.get("error"),
            message=message or None,
        )
        if status.phase is Phase.SUCCEEDED:
            report.result = self.extract_result(payload)
        return report

    def status_url(self, job_id: Any, symbol: str) -> str:
        path = self.endpoints["status"].format(
            symbol=quote(symbol, safe=""),
            job_id=quote(str(job_id), safe=""),
        )
        return f"{self.base_url}{path}"

    def query_from_result(self, result: Any) -> Optional[str]:
        """Prompt the backend used, when it can be recovered from a finished payload."""
        return None

    @abstractmethod
    def extract_result(self, payload: Dict[str, Any]) -> Optional[Any]:
        """Return the finished payload from a status response, or None if absent."""

    # ------------------------------------------------------------------ #
    #  HTTP helper
    # ------------------------------------------------------------------ #

    def _send(self, method: str, url: str, body: Optional[Dict[str, Any]] = None) -> Tuple[int, Any]:
        headers = {"Accept": "application/json", "User-Agent": "ucie-job-tracker/0.1"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        if self.session_cookie:
            headers["Cookie"] = self.session_cookie
        return self._transport(method, url, body, headers, self.http_timeout)
