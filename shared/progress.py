from __future__ import annotations

import math
from typing import List, Optional, Tuple

# Local estimates stop here; only a backend-confirmed completion reports 100.
FALLBACK_PROGRESS_CEILING = 95.0
DEFAULT_EXPECTED_MINUTES = 10.0

# (upper bound in elapsed seconds, label)
DEFAULT_STAGES: List[Tuple[float, str]] = [
    (10, "Starting analysis..."),
    (30, "Fetching market data..."),
    (60, "Analyzing technical indicators..."),
    (90, "Processing sentiment data..."),
    (120, "Generating comprehensive summary..."),
]
FINAL_STAGE = "Finalizing analysis..."


def estimate_progress(elapsed_sec: float, expected_minutes: float = DEFAULT_EXPECTED_MINUTES) -> float:
    """
    Fallback percentage for a job whose backend reports no progress.

    Logarithmic in elapsed minutes: fast early, slowing towards the expected
    duration, clamped to [0, FALLBACK_PROGRESS_CEILING].
    """
    if expected_minutes <= 0:
        raise ValueError("expected_minutes must be positive")
    elapsed_minutes = max(0.0, elapsed_sec) / 60.0
    raw = math.log(elapsed_minutes + 1) / math.log(expected_minutes + 1) * 100
    return min(FALLBACK_PROGRESS_CEILING, max(0.0, raw))


def display_progress(
    backend_progress: Optional[float],
    elapsed_sec: float,
    previous: int = 0,
    expected_minutes: float = DEFAULT_EXPECTED_MINUTES,
) -> int:
    """
    Percentage to show while a job is still running.

    A nonzero backend value wins outright. Otherwise the local estimate is
    used, never dropping below what was already shown.
    """
    if backend_progress is not None and backend_progress > 0:
        return int(round(min(100.0, float(backend_progress))))
    estimate = int(round(estimate_progress(elapsed_sec, expected_minutes)))
    return max(previous, estimate)


def stage_label(elapsed_sec: float, stages: Optional[List[Tuple[float, str]]] = None) -> str:
    for bound, label in stages or DEFAULT_STAGES:
        if elapsed_sec < bound:
            return label
    return FINAL_STAGE
