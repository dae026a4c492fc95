"""Status normalization across both job vocabularies, failure kinds."""
import pytest

from shared.errors import JobFailure, JobTimeout
from shared.job_state import (
    Failed,
    FailureKind,
    JobStatus,
    Phase,
    normalize_status,
)

GPT_MAP = {"queued": "queued", "processing": "processing", "completed": "completed", "error": "failed"}
CAESAR_MAP = {
    "queued": "queued",
    "pending": "pending",
    "researching": "researching",
    "completed": "completed",
    "failed": "failed",
    "cancelled": "cancelled",
    "expired": "expired",
}


@pytest.mark.parametrize(
    "raw, phase",
    [
        ("queued", Phase.NOT_STARTED),
        ("processing", Phase.IN_PROGRESS),
        ("completed", Phase.SUCCEEDED),
        ("error", Phase.FAILED),
    ],
)
def test_gpt_vocabulary(raw, phase):
    assert normalize_status(raw, GPT_MAP).phase is phase


@pytest.mark.parametrize(
    "raw, phase",
    [
        ("pending", Phase.NOT_STARTED),
        ("researching", Phase.IN_PROGRESS),
        ("cancelled", Phase.FAILED),
        ("expired", Phase.FAILED),
    ],
)
def test_caesar_vocabulary(raw, phase):
    assert normalize_status(raw, CAESAR_MAP).phase is phase


def test_gpt_error_maps_to_failed():
    assert normalize_status("error", GPT_MAP) is JobStatus.FAILED


def test_status_is_case_insensitive():
    assert normalize_status(" Completed ", CAESAR_MAP) is JobStatus.COMPLETED


def test_missing_or_unknown_status_is_in_progress():
    assert normalize_status(None, CAESAR_MAP) is JobStatus.RESEARCHING
    assert normalize_status("", CAESAR_MAP) is JobStatus.RESEARCHING
    assert normalize_status("thinking-hard", CAESAR_MAP) is JobStatus.RESEARCHING


def test_terminal_flags():
    assert JobStatus.COMPLETED.is_terminal
    assert JobStatus.EXPIRED.is_terminal
    assert not JobStatus.QUEUED.is_terminal
    assert not JobStatus.PROCESSING.is_terminal


def test_failed_state_distinguishes_failure_kinds():
    def failed(error):
        return Failed(error=error, symbol="BTC")

    assert failed(JobTimeout("too slow", elapsed_sec=900)).kind is FailureKind.TIMEOUT
    assert failed(JobFailure("nope", raw_status="cancelled")).kind is FailureKind.CANCELLED
    assert failed(JobFailure("nope", raw_status=JobStatus.EXPIRED)).kind is FailureKind.EXPIRED
    assert failed(JobFailure("nope", raw_status="failed")).kind is FailureKind.FAILED
    assert failed(JobFailure("boom")).reason == "boom"
