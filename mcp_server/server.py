"""
UCIE Job Tracker: MCP Server

Exposes analysis job tracking as MCP tools for Claude Desktop, Cursor,
and other MCP-compatible AI assistants.

Tools:
    list_job_kinds      Configured job kinds and their polling cadence
    start_analysis      Submit a GPT summary or Caesar research job
    get_analysis        Progress, ETA, result or error for a tracked job
    list_analyses       Every tracked job
    retry_analysis      Resubmit a tracked job from scratch
    cancel_analysis     Stop polling and forget a tracked job

Run:
    python -m mcp_server.server          # stdio mode (default)
    python -m mcp_server.server --sse    # SSE mode for remote connections
"""
from __future__ import annotations

import json
import os
import sys

from mcp.server.fastmcp import FastMCP

# Add project root to path so we can import shared modules
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from job_poller.kinds import available_kinds, build_controller, describe_kinds
from shared.errors import SubmissionError
from shared.job_registry import registry
from shared.job_view import present

# ---------------------------------------------------------------------------
# MCP Server setup
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "UCIE Job Tracker",
    instructions=(
        "Tracks long-running UCIE AI analysis jobs for crypto assets. "
        "Use start_analysis with kind 'gpt_summary' for a quick GPT summary or "
        "'caesar_research' for a 5-15 minute deep research report, then call "
        "get_analysis with the returned tracking_id until state is 'completed' or 'failed'."
    ),
)


# In stdio mode stdout is the JSON-RPC channel, so controller logs stay off.
# main() turns them on for --sse.
_verbose_jobs = False


def _dump(payload) -> str:
    return json.dumps(payload, indent=2, default=str)


def _not_found(tracking_id: str) -> str:
    return _dump({"error": f"No tracked analysis '{tracking_id}'"})


# ---------------------------------------------------------------------------
# Tool: list_job_kinds
# ---------------------------------------------------------------------------
@mcp.tool()
def list_job_kinds() -> str:
    """
    List the analysis job kinds this tracker can run, with poll interval,
    timeout and the backend endpoints each one uses.
    """
    return _dump({"kinds": describe_kinds()})


# ---------------------------------------------------------------------------
# Tool: start_analysis
# ---------------------------------------------------------------------------
@mcp.tool()
def start_analysis(kind: str, symbol: str) -> str:
    """
    Submit an analysis job and start polling it in the background.

    Args:
        kind: 'gpt_summary' or 'caesar_research'.
        symbol: The crypto asset ticker (e.g. BTC, ETH, SOL). Case-insensitive.

    Returns a tracking_id plus the current view. If the backend had a cached
    answer the job is already 'completed'.
    """
    if kind not in available_kinds():
        return _dump({"error": f"Invalid kind '{kind}'. Valid: {available_kinds()}"})

    controller = build_controller(kind, verbose=_verbose_jobs)
    try:
        controller.start(symbol)
    except SubmissionError as exc:
        return _dump({"error": exc.reason, "retryable": True})
    except ValueError as exc:
        return _dump({"error": str(exc)})

    tracking_id = registry.add(controller)
    return _dump({"tracking_id": tracking_id, **present(controller)})


# ---------------------------------------------------------------------------
# Tool: get_analysis
# ---------------------------------------------------------------------------
@mcp.tool()
def get_analysis(tracking_id: str) -> str:
    """
    Get the state of a tracked analysis: progress %, elapsed time, ETA,
    and the final report or error once it is done.

    Args:
        tracking_id: The id returned by start_analysis.
    """
    controller = registry.get(tracking_id)
    if controller is None:
        return _not_found(tracking_id)
    return _dump({"tracking_id": tracking_id, **present(controller)})


# ---------------------------------------------------------------------------
# Tool: list_analyses
# ---------------------------------------------------------------------------
@mcp.tool()
def list_analyses() -> str:
    """List every tracked analysis with its state and progress (results omitted)."""
    rows = []
    for tracking_id, controller in registry.items():
        view = present(controller)
        view.pop("result", None)
        rows.append({"tracking_id": tracking_id, **view})
    return _dump({"total": len(rows), "analyses": rows})


# ---------------------------------------------------------------------------
# Tool: retry_analysis
# ---------------------------------------------------------------------------
@mcp.tool()
def retry_analysis(tracking_id: str) -> str:
    """
    Resubmit a tracked analysis from scratch (a new backend job, not a resume).

    Args:
        tracking_id: The id returned by start_analysis.
    """
    controller = registry.get(tracking_id)
    if controller is None:
        return _not_found(tracking_id)
    try:
        controller.retry()
    except SubmissionError as exc:
        return _dump({"tracking_id": tracking_id, "error": exc.reason, "retryable": True})
    return _dump({"tracking_id": tracking_id, **present(controller)})


# ---------------------------------------------------------------------------
# Tool: cancel_analysis
# ---------------------------------------------------------------------------
@mcp.tool()
def cancel_analysis(tracking_id: str) -> str:
    """
    Stop polling a tracked analysis and forget it. The backend job itself is
    not cancelled; only this tracker stops watching it.

    Args:
        tracking_id: The id returned by start_analysis.
    """
    controller = registry.get(tracking_id)
    if controller is None:
        return _not_found(tracking_id)
    was_polling = controller.is_active
    registry.remove(tracking_id)
    return _dump({"tracking_id": tracking_id, "stopped": was_polling})


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def main():
    """Run the MCP server."""
    global _verbose_jobs
    transport = "stdio"
    if "--sse" in sys.argv:
        transport = "sse"
        _verbose_jobs = True

    mcp.run(transport=transport)


if __name__ == "__main__":
    main()
