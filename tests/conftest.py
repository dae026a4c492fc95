"""Pytest fixtures: scripted HTTP transport, controllable clock, job clients."""
import os

import pytest

# Keep profile values authoritative regardless of the developer's shell.
for _var in ("UCIE_BASE_URL", "UCIE_SESSION_COOKIE", "UCIE_POLL_INTERVAL_SEC", "UCIE_TIMEOUT_SEC"):
    os.environ.pop(_var, None)

from caesar_research.engine import CaesarResearchClient
from gpt_summary.engine import GPTSummaryClient
from job_poller.engine import JobPollingController
from shared.job_registry import registry

BASE_URL = "http://ucie.test"


class FakeTransport:
    """
    Scripted replacement for urllib_transport.

    POST requests consume `start`, GET requests consume `status`. Each entry is
    an (http status, json payload) pair or an exception to raise. The last
    entry of a queue repeats forever.
    """

    def __init__(self, start=None, status=None):
        self.start = list(start or [])
        self.status = list(status or [])
        self.calls = []

    def __call__(self, method, url, body, headers, timeout):
        self.calls.append({"method": method, "url": url, "body": body, "headers": headers})
        queue = self.start if method == "POST" else self.status
        if not queue:
            raise AssertionError(f"unexpected {method} {url}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def polls(self):
        return [c for c in self.calls if c["method"] == "GET"]

    @property
    def submits(self):
        return [c for c in self.calls if c["method"] == "POST"]


class FakeClock:
    """Monotonic clock that only moves when told to. `sleep` advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_caesar():
    def _make(transport, **kwargs):
        return CaesarResearchClient(base_url=BASE_URL, transport=transport, **kwargs)
    return _make


@pytest.fixture
def make_gpt():
    def _make(transport, **kwargs):
        return GPTSummaryClient(base_url=BASE_URL, transport=transport, **kwargs)
    return _make


@pytest.fixture
def make_controller(clock):
    """Foreground controller on the fake clock; drive it with poll_once()."""
    def _make(client, **kwargs):
        kwargs.setdefault("verbose", False)
        return JobPollingController(client, clock=clock, sleep=clock.sleep, **kwargs)
    return _make


@pytest.fixture(autouse=True)
def _clean_registry():
    yield
    for tracking_id, _ in registry.items():
        registry.remove(tracking_id)
