"""Fallback progress estimate, backend precedence and stage labels."""
import math

import pytest

from shared.progress import (
    FALLBACK_PROGRESS_CEILING,
    FINAL_STAGE,
    display_progress,
    estimate_progress,
    stage_label,
)


def test_estimate_starts_at_zero():
    assert estimate_progress(0) == 0.0


def test_estimate_is_monotonic_and_capped():
    samples = [estimate_progress(sec) for sec in range(0, 3600, 15)]
    assert samples == sorted(samples)
    assert all(0 <= s <= FALLBACK_PROGRESS_CEILING for s in samples)
    assert max(samples) < 100


def test_estimate_follows_log_curve():
    # 3 minutes of a 10 minute expectation
    expected = math.log(4) / math.log(11) * 100
    assert estimate_progress(180) == pytest.approx(expected)


def test_estimate_hits_ceiling_at_expected_duration():
    assert estimate_progress(600) == FALLBACK_PROGRESS_CEILING
    assert estimate_progress(10 * 3600) == FALLBACK_PROGRESS_CEILING


def test_negative_elapsed_is_treated_as_zero():
    assert estimate_progress(-30) == 0.0


def test_expected_minutes_must_be_positive():
    with pytest.raises(ValueError):
        estimate_progress(60, expected_minutes=0)


def test_backend_progress_wins_over_estimate():
    # at 9 minutes the estimate is ~92, backend says 35
    assert display_progress(35, 540) == 35
    assert display_progress(35.4, 0) == 35


def test_zero_or_missing_backend_progress_falls_back():
    assert display_progress(0, 0) == 0
    assert display_progress(None, 180) == round(estimate_progress(180))


def test_fallback_never_goes_below_what_was_shown():
    assert display_progress(None, 10, previous=40) == 40


def test_backend_progress_is_capped_at_100():
    assert display_progress(250, 0) == 100


def test_stage_labels_follow_elapsed_seconds():
    assert stage_label(0) == "Starting analysis..."
    assert stage_label(15) == "Fetching market data..."
    assert stage_label(45) == "Analyzing technical indicators..."
    assert stage_label(75) == "Processing sentiment data..."
    assert stage_label(100) == "Generating comprehensive summary..."
    assert stage_label(500) == FINAL_STAGE
