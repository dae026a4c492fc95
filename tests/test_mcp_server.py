"""MCP tools, called directly as plain functions."""
import json
from urllib.error import URLError

import pytest

import mcp_server.server as tools
from job_poller.kinds import build_controller
from shared.job_registry import registry

from conftest import BASE_URL, FakeTransport


@pytest.fixture
def backend(monkeypatch):
    """Real controllers from the kind registry, talking to a scripted backend."""
    transport = FakeTransport(start=[(200, {"success": True, "data": {"summary": "cached"}})])

    def _build_controller(kind, **kwargs):
        return build_controller(kind, base_url=BASE_URL, transport=transport, **kwargs)

    monkeypatch.setattr(tools, "build_controller", _build_controller)
    return transport


def test_list_job_kinds():
    kinds = json.loads(tools.list_job_kinds())["kinds"]
    assert {row["kind"] for row in kinds} == {"gpt_summary", "caesar_research"}


def test_start_and_get_cached_analysis(backend):
    started = json.loads(tools.start_analysis("gpt_summary", "sol"))
    assert started["state"] == "completed"
    assert started["symbol"] == "SOL"

    fetched = json.loads(tools.get_analysis(started["tracking_id"]))
    assert fetched["result"] == {"summary": "cached"}


def test_start_rejects_unknown_kind(backend):
    assert "Invalid kind" in json.loads(tools.start_analysis("horoscope", "BTC"))["error"]


def test_start_reports_submission_error(backend):
    backend.start = [(500, {"error": "Database unavailable"})]
    body = json.loads(tools.start_analysis("caesar_research", "BTC"))
    assert body == {"error": "Database unavailable", "retryable": True}
    assert len(registry) == 0


def test_list_analyses_omits_results(backend):
    tools.start_analysis("caesar_research", "BTC")
    rows = json.loads(tools.list_analyses())["analyses"]
    assert len(rows) == 1
    assert "result" not in rows[0]


def test_retry_and_cancel(backend):
    tracking_id = json.loads(tools.start_analysis("caesar_research", "BTC"))["tracking_id"]
    backend.start = [(200, {"success": True, "jobId": "job-9"})]
    backend.status = [(200, {"success": True, "status": "researching"})]

    retried = json.loads(tools.retry_analysis(tracking_id))
    assert retried["job_id"] == "job-9"
    assert retried["state"] == "polling"

    cancelled = json.loads(tools.cancel_analysis(tracking_id))
    assert cancelled == {"tracking_id": tracking_id, "stopped": True}
    assert "No tracked analysis" in json.loads(tools.get_analysis(tracking_id))["error"]


def test_stdio_tools_keep_stdout_clean(backend, capsys):
    backend.start = [(200, {"success": True, "jobId": "job-3"})]
    backend.status = [(200, {"success": True, "status": "researching"})]

    started = json.loads(tools.start_analysis("caesar_research", "BTC"))
    tools.retry_analysis(started["tracking_id"])
    tools.cancel_analysis(started["tracking_id"])

    backend.start = [URLError("connection refused")]
    tools.start_analysis("gpt_summary", "ETH")

    assert capsys.readouterr().out == ""
