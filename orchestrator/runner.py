"""
Runner: submits one analysis job and follows it to a terminal state.

Usage:
    # Caesar deep research for BTC (60s polls, 15 min ceiling)
    python -m orchestrator.runner --kind caesar_research --symbol BTC

    # GPT summary with previously collected data as context
    python -m orchestrator.runner --kind gpt_summary --symbol ETH --context collected.json

    # Custom cadence
    python -m orchestrator.runner --kind caesar_research --symbol SOL --interval 30 --timeout 600
"""
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from job_poller.engine import JobPollingController
from job_poller.kinds import available_kinds, build_controller
from shared.errors import SubmissionError
from shared.job_state import Completed, Failed, Polling
from shared.job_view import present


def _load_context(path: Optional[str]) -> Optional[Dict[str, Any]]:
    if not path:
        return None
    context = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(context, dict):
        raise ValueError(f"Context file must hold a JSON object, got {type(context).__name__}")
    return context


def follow(controller: JobPollingController) -> int:
    """Poll in the foreground until terminal. Returns the process exit code."""
    state = controller.state
    while isinstance(state, Polling):
        state = controller.poll_once()
        if isinstance(state, Polling):
            view = present(controller)
            print(f"  {view['message']} {view['progress']}% | elapsed {view['elapsed']} | ETA {view['eta']}")
            controller.wait_interval()
            state = controller.state

    view = present(controller)
    if isinstance(state, Completed):
        print(json.dumps(view["result"], indent=2, default=str))
        return 0
    if isinstance(state, Failed):
        print(f"{view['title']}: {view['error']}", file=sys.stderr)
        return 1
    print("Polling stopped before the job finished", file=sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run one UCIE analysis job and wait for the result")
    parser.add_argument("--kind", choices=available_kinds(), default="caesar_research", help="Job kind")
    parser.add_argument("--symbol", required=True, help="Asset symbol, e.g. BTC")
    parser.add_argument("--context", type=str, default=None, help="JSON file with previously collected data")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between polls (default: from profile)")
    parser.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds (default: from profile)")
    parser.add_argument("--base-url", type=str, default=None, help="Backend base URL (default: UCIE_BASE_URL or profile)")
    args = parser.parse_args(argv)

    controller = build_controller(
        args.kind,
        poll_interval_sec=args.interval,
        timeout_sec=args.timeout,
        base_url=args.base_url,
    )
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    print(f"=== {controller.label} analysis for {args.symbol.upper()} at {ts} ===")
    print(f"  interval={controller.poll_interval_sec:g}s timeout={controller.timeout_sec:g}s base_url={controller.client.base_url}")

    try:
        controller.start(args.symbol, _load_context(args.context), background=False)
    except SubmissionError as exc:
        print(f"Could not start analysis: {exc.reason}", file=sys.stderr)
        return 1

    try:
        return follow(controller)
    except KeyboardInterrupt:
        controller.stop()
        print("\nCancelled.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
