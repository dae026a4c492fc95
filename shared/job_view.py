from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from shared.job_state import Completed, Failed, FailureKind, Idle, Polling
from shared.progress import stage_label

if TYPE_CHECKING:
    from job_poller.engine import JobPollingController


FAILURE_TITLES = {
    FailureKind.FAILED: "Analysis Failed",
    FailureKind.CANCELLED: "Analysis Cancelled",
    FailureKind.EXPIRED: "Analysis Expired",
    FailureKind.TIMEOUT: "Analysis Timed Out",
}


def format_elapsed(elapsed_sec: float) -> str:
    minutes, seconds = divmod(int(max(0.0, elapsed_sec)), 60)
    return f"{minutes}m {seconds}s"


def format_eta(eta_sec: Optional[float]) -> str:
    if eta_sec and eta_sec > 0:
        return f"{math.ceil(eta_sec / 60)} minutes"
    return "Calculating..."


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def present(controller: "JobPollingController") -> Dict[str, Any]:
    """
    Display-ready view of a controller's current state.

    The result payload is passed through exactly as the backend sent it.
    """
    state = controller.state
    elapsed = controller.elapsed_sec()
    view: Dict[str, Any] = {
        "kind": controller.kind,
        "label": controller.label,
        "symbol": controller.symbol,
        "state": state.name,
        "progress": 0,
        "elapsed_sec": round(elapsed, 1),
        "elapsed": format_elapsed(elapsed),
        "poll_interval_sec": controller.poll_interval_sec,
        "timeout_sec": controller.timeout_sec,
        "errors": list(controller.errors),
    }

    if isinstance(state, Idle):
        view["message"] = "Waiting to start"
        return view

    view.update({
        "job_id": state.job_id,
        "progress": state.progress,
        "poll_count": state.poll_count,
        "submitted_at": _iso(state.submitted_at),
    })

    if isinstance(state, Polling):
        message = state.message
        if not message and controller.client.show_stages:
            message = stage_label(elapsed)
        view.update({
            "status": state.status.value,
            "message": message or f"Analyzing {state.symbol}...",
            "poll_info": f"Poll #{state.poll_count} • Checking every {controller.poll_interval_sec:g} seconds",
            "last_checked": _iso(state.last_poll_at),
            "estimated_time_remaining": state.estimated_time_remaining,
            "eta": format_eta(state.estimated_time_remaining),
            "query": state.query,
        })
        if elapsed > controller.client.long_running_sec:
            view["warning"] = (
                f"Analysis taking longer than expected ({controller.timeout_sec / 60:g} min timeout)"
            )
        return view

    if isinstance(state, Completed):
        view.update({
            "status": "completed",
            "message": "Analysis complete!",
            "cached": state.cached,
            "query": state.query,
            "result": state.result,
        })
        return view

    if isinstance(state, Failed):
        kind = state.kind
        view.update({
            "status": kind.value,
            "failure_kind": kind.value,
            "title": FAILURE_TITLES[kind],
            "error": state.reason,
            "retryable": True,
        })
    return view
