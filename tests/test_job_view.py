"""Display view of each controller state."""
from shared.job_view import format_elapsed, format_eta, present

from conftest import FakeTransport

STARTED = (200, {"success": True, "jobId": "job-1"})


def test_format_elapsed():
    assert format_elapsed(0) == "0m 0s"
    assert format_elapsed(125.9) == "2m 5s"


def test_format_eta_rounds_up_to_minutes():
    assert format_eta(61) == "2 minutes"
    assert format_eta(None) == "Calculating..."
    assert format_eta(0) == "Calculating..."


def test_idle_view(make_caesar, make_controller):
    view = present(make_controller(make_caesar(FakeTransport())))
    assert view["state"] == "idle"
    assert view["progress"] == 0
    assert view["message"] == "Waiting to start"
    assert "result" not in view


def test_polling_view(make_caesar, make_controller, clock):
    transport = FakeTransport(start=[STARTED], status=[
        (200, {"success": True, "status": "researching", "progress": 45, "estimatedTimeRemaining": 130}),
    ])
    ctrl = make_controller(make_caesar(transport))
    ctrl.start("BTC", background=False)
    clock.advance(65)
    ctrl.poll_once()

    view = present(ctrl)
    assert view["state"] == "polling"
    assert view["status"] == "researching"
    assert view["progress"] == 45
    assert view["elapsed"] == "1m 5s"
    assert view["eta"] == "3 minutes"
    assert view["poll_info"] == "Poll #1 • Checking every 60 seconds"
    assert view["message"] == "Analyzing BTC..."
    assert view["last_checked"] is not None
    assert "warning" not in view


def test_long_running_warning(make_caesar, make_controller, clock):
    transport = FakeTransport(start=[STARTED], status=[(200, {"success": True, "status": "researching"})])
    ctrl = make_controller(make_caesar(transport))
    ctrl.start("BTC", background=False)
    clock.advance(601)
    ctrl.poll_once()

    assert present(ctrl)["warning"] == "Analysis taking longer than expected (15 min timeout)"


def test_gpt_view_uses_stage_labels(make_gpt, make_controller, clock):
    transport = FakeTransport(
        start=[(200, {"success": True, "jobId": 9})],
        status=[(200, {"status": "processing"})],
    )
    ctrl = make_controller(make_gpt(transport))
    ctrl.start("ETH", background=False)
    clock.advance(45)
    ctrl.poll_once()

    assert present(ctrl)["message"] == "Analyzing technical indicators..."


def test_completed_view_passes_result_through(make_caesar, make_controller):
    payload = {"confidence": 72, "sources": [{"url": "https://example.org"}], "rawContent": "x"}
    transport = FakeTransport(start=[(200, {"success": True, "data": payload, "query": "Why BTC?"})])
    ctrl = make_controller(make_caesar(transport))
    ctrl.start("BTC", background=False)

    view = present(ctrl)
    assert view["state"] == "completed"
    assert view["progress"] == 100
    assert view["cached"] is True
    assert view["query"] == "Why BTC?"
    assert view["result"] == payload


def test_failed_view(make_caesar, make_controller):
    transport = FakeTransport(start=[STARTED], status=[(200, {"success": True, "status": "cancelled"})])
    ctrl = make_controller(make_caesar(transport))
    ctrl.start("BTC", background=False)
    ctrl.poll_once()

    view = present(ctrl)
    assert view["state"] == "failed"
    assert view["failure_kind"] == "cancelled"
    assert view["title"] == "Analysis Cancelled"
    assert "cancelled" in view["error"]
    assert view["retryable"] is True


def test_timeout_view(make_caesar, make_controller, clock):
    transport = FakeTransport(start=[STARTED], status=[(200, {"success": True, "status": "researching"})])
    ctrl = make_controller(make_caesar(transport))
    ctrl.start("BTC", background=False)
    clock.advance(900)
    ctrl.poll_once()

    view = present(ctrl)
    assert view["title"] == "Analysis Timed Out"
    assert view["error"] == "Analysis timed out after 15 minutes. Please try again."
    assert view["elapsed"] == "15m 0s"
