from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

from job_poller.engine import JobPollingController
from shared.base_client import BaseJobClient


def _factories() -> Dict[str, Type[BaseJobClient]]:
    # Imported here so one broken job kind doesn't take the others down.
    from caesar_research.engine import CaesarResearchClient
    from gpt_summary.engine import GPTSummaryClient

    return {
        "gpt_summary": GPTSummaryClient,
        "caesar_research": CaesarResearchClient,
    }


def available_kinds() -> List[str]:
    return sorted(_factories())


def build_client(kind: str, **client_kwargs: Any) -> BaseJobClient:
    factories = _factories()
    if kind not in factories:
        raise KeyError(f"Unknown job kind '{kind}'. Valid kinds: {sorted(factories)}")
    return factories[kind](**client_kwargs)


def build_controller(
    kind: str,
    poll_interval_sec: Optional[float] = None,
    timeout_sec: Optional[float] = None,
    verbose: bool = True,
    **client_kwargs: Any,
) -> JobPollingController:
    client = build_client(kind, **client_kwargs)
    return JobPollingController(
        client,
        poll_interval_sec=poll_interval_sec,
        timeout_sec=timeout_sec,
        verbose=verbose,
    )


def describe_kinds() -> List[Dict[str, Any]]:
    """Configured cadence per job kind, straight from the profiles."""
    rows: List[Dict[str, Any]] = []
    for kind in available_kinds():
        client = build_client(kind)
        rows.append({
            "kind": kind,
            "label": client.label,
            "poll_interval_sec": client.poll_interval_sec,
            "timeout_sec": client.timeout_sec,
            "expected_minutes": client.expected_minutes,
            "start_endpoint": client.endpoints["start"],
            "status_endpoint": client.endpoints["status"],
        })
    return rows
