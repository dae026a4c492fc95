"""
Job polling controller: one parametrized state machine for every analysis job kind.

    Idle --submit--> Polling --success+payload--> Completed
      |                 |------failure----------> Failed
      |                 `------deadline---------> Failed (timeout)
      `--immediate result-----------------------> Completed

Polling is poll-then-wait on a background thread. Polls are serialized, and
every state write is checked against a generation counter that is bumped on
stop, retry and every terminal transition, so a response that lands late is
dropped instead of resurrecting a finished job.
"""
from __future__ import annotations

import threading
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from shared.base_client import BaseJobClient
from shared.errors import JobFailure, JobTimeout, PollTransientError, SubmissionError
from shared.job_state import (
    TERMINAL_STATES,
    Completed,
    Failed,
    Idle,
    JobState,
    JobStatus,
    Phase,
    Polling,
)
from shared.progress import display_progress

MAX_ERRORS_KEPT = 20

_FAILURE_MESSAGES = {
    JobStatus.FAILED: "{label} analysis failed. Please try again.",
    JobStatus.CANCELLED: "{label} analysis was cancelled by the backend.",
    JobStatus.EXPIRED: "{label} analysis expired before it completed.",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobPollingController:
    """
    Tracks one analysis job from submission to a terminal state.

    The client supplies the HTTP contract and the kind's cadence; the
    controller owns the state machine, the polling thread and the deadline.
    `clock` must be monotonic; it is injectable so tests can move time.
    """

    def __init__(
        self,
        client: BaseJobClient,
        poll_interval_sec: Optional[float] = None,
        timeout_sec: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utcnow,
        verbose: bool = True,
    ) -> None:
        self.client = client
        self.kind = client.kind
        self.label = client.label
        self.poll_interval_sec = float(poll_interval_sec if poll_interval_sec is not None else client.poll_interval_sec)
        self.timeout_sec = float(timeout_sec if timeout_sec is not None else client.timeout_sec)
        if self.poll_interval_sec <= 0:
            raise ValueError("poll_interval_sec must be positive")
        if self.timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")

        self.verbose = verbose
        self.errors: List[str] = []
        self.symbol: Optional[str] = None
        self.context: Optional[Dict[str, Any]] = None

        self._clock = clock
        self._sleep = sleep
        self._now = now
        self._lock = threading.RLock()
        self._state: JobState = Idle()
        self._generation = 0
        self._background = False
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._deadline: Optional[threading.Timer] = None

    # ------------------------------------------------------------------ #
    #  Read side
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        return isinstance(self.state, Polling)

    def elapsed_sec(self) -> float:
        state = self.state
        if isinstance(state, Polling):
            return max(0.0, self._clock() - state.started_at)
        if isinstance(state, TERMINAL_STATES):
            return state.elapsed_sec
        return 0.0

    # ------------------------------------------------------------------ #
    #  Commands
    # ------------------------------------------------------------------ #

    def start(
        self,
        symbol: str,
        context: Optional[Dict[str, Any]] = None,
        background: bool = True,
    ) -> JobState:
        """
        Submit a job and, unless the backend answers immediately, begin polling.

        Raises SubmissionError if the job could not be started; the state is
        left Idle so the caller can offer a retry. Calling start while a job
        is already polling returns the current state untouched.
        """
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("symbol must not be empty")

        with self._lock:
            if isinstance(self._state, Polling):
                self._log("analysis already in progress, ignoring start")
                return self._state
            self._generation += 1
            gen = self._generation
            self._state = Idle()
            self.errors = []
            self.symbol = symbol
            self.context = context
            self._background = background

        self._log(f"starting analysis for {symbol}...")
        started_at = self._clock()
        submitted_at = self._now()
        try:
            outcome = self.client.submit(symbol, context)
        except SubmissionError as exc:
            self._log(f"SUBMIT FAILED: {exc.reason}")
            raise

        with self._lock:
            if gen != self._generation:
                self._log("submission answered after stop, discarding")
                return self._state

            if outcome.is_immediate:
                self._log("analysis completed (cached)")
                self._state = Completed(
                    result=outcome.result,
                    symbol=symbol,
                    submitted_at=submitted_at,
                    query=outcome.query or self.client.query_from_result(outcome.result),
                    cached=True,
                )
                self._generation += 1
                return self._state

            self._log(f"analysis started with job ID: {outcome.job_id}")
            self._state = Polling(
                job_id=outcome.job_id,
                symbol=symbol,
                started_at=started_at,
                submitted_at=submitted_at,
                query=outcome.query,
            )
            if background:
                self._spawn(gen)
            return self._state

    def poll_once(self) -> JobState:
        """
        Run one poll tick. Only meaningful while Polling.

        Transient failures are logged and leave the state alone.
        """
        with self._lock:
            state = self._state
            if not isinstance(state, Polling):
                return state
            gen = self._generation
            elapsed = self._clock() - state.started_at
            if elapsed >= self.timeout_sec:
                return self._time_out(state, elapsed)
            state = replace(state, poll_count=state.poll_count + 1, last_poll_at=self._now())
            self._state = state

        minutes, seconds = divmod(int(elapsed), 60)
        self._log(f"Poll #{state.poll_count} - checking job {state.job_id} ({minutes}m {seconds}s elapsed)...")

        try:
            report = self.client.fetch_status(state.job_id, state.symbol)
        except PollTransientError as exc:
            self._log(f"poll failed, will retry next tick: {exc.reason}")
            with self._lock:
                if gen == self._generation:
                    self.errors.append(exc.reason)
                    del self.errors[:-MAX_ERRORS_KEPT]
                return self._state

        with self._lock:
            current = self._state
            if gen != self._generation or not isinstance(current, Polling):
                self._log(f"late response for job {state.job_id} discarded")
                return current

            elapsed = self._clock() - current.started_at
            if elapsed >= self.timeout_sec:
                return self._time_out(current, elapsed)

            phase = report.status.phase
            if phase is Phase.SUCCEEDED and report.result is not None:
                self._log(f"analysis completed after {current.poll_count} polls")
                return self._finish(Completed(
                    result=report.result,
                    symbol=current.symbol,
                    job_id=current.job_id,
                    submitted_at=current.submitted_at,
                    poll_count=current.poll_count,
                    query=current.query,
                    elapsed_sec=elapsed,
                ))

            if phase is Phase.FAILED:
                message = report.error or _FAILURE_MESSAGES[report.status].format(label=self.label)
                self._log(f"FAILED: backend reported {report.raw_status!r}: {message}")
                return self._finish(Failed(
                    error=JobFailure(str(message), raw_status=report.status.value),
                    symbol=current.symbol,
                    job_id=current.job_id,
                    submitted_at=current.submitted_at,
                    poll_count=current.poll_count,
                    progress=current.progress,
                    elapsed_sec=elapsed,
                ))

            if phase is Phase.SUCCEEDED:
                self._log("status is completed but no payload yet, still polling")

            progress = display_progress(
                report.progress,
                elapsed,
                previous=current.progress,
                expected_minutes=self.client.expected_minutes,
            )
            self._state = replace(
                current,
                status=report.status,
                progress=progress,
                estimated_time_remaining=report.estimated_time_remaining,
                message=report.message,
            )
            eta = report.estimated_time_remaining
            self._log(
                f"Status: {report.status.value} | Progress: {progress}% | "
                f"ETA: {f'{eta:.0f}s' if eta else 'calculating...'}"
            )
            return self._state

    def stop(self) -> bool:
        """
        Cancel polling and go back to Idle. Safe to call any number of times.

        Returns True only when a running job was actually cancelled.
        """
        with self._lock:
            was_polling = isinstance(self._state, Polling)
            self._generation += 1
            self._release()
            self._state = Idle()
            self.errors = []
        if was_polling:
            self._log("polling cancelled")
        return was_polling

    def retry(self) -> JobState:
        """Drop whatever is there and resubmit from scratch with the same inputs."""
        if self.symbol is None:
            raise RuntimeError("nothing to retry: no job was ever started")
        symbol, context, background = self.symbol, self.context, self._background
        self.stop()
        return self.start(symbol, context, background=background)

    def wait_interval(self) -> None:
        """Foreground pause between polls, for callers that drive poll_once themselves."""
        state = self.state
        if isinstance(state, Polling):
            self._sleep(self._next_wait(state))

    def wait(self, timeout: Optional[float] = None) -> JobState:
        """Block until the background thread exits, then return the state."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return self.state

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    def _spawn(self, gen: int) -> None:
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run,
            args=(gen, stop_event),
            daemon=True,
            name=f"poller-{self.kind}-{self.symbol}",
        )
        remaining = self.timeout_sec
        if isinstance(self._state, Polling):
            remaining = max(0.0, self.timeout_sec - (self._clock() - self._state.started_at))
        # Fires even if a poll is stuck in flight.
        self._deadline = threading.Timer(remaining, self._on_deadline, args=(gen,))
        self._deadline.daemon = True
        self._thread.start()
        self._deadline.start()

    def _run(self, gen: int, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            state = self.poll_once()
            with self._lock:
                if gen != self._generation or not isinstance(state, Polling):
                    return
            stop_event.wait(self._next_wait(state))

    def _next_wait(self, state: Polling) -> float:
        # Wake at the deadline rather than a full interval past it.
        remaining = self.timeout_sec - (self._clock() - state.started_at)
        return max(0.0, min(self.poll_interval_sec, remaining))

    def _on_deadline(self, gen: int) -> None:
        with self._lock:
            state = self._state
            if gen == self._generation and isinstance(state, Polling):
                self._time_out(state, self._clock() - state.started_at)

    def _time_out(self, state: Polling, elapsed: float) -> JobState:
        minutes = self.timeout_sec / 60
        reason = f"Analysis timed out after {minutes:g} minutes. Please try again."
        self._log(f"TIMEOUT: job {state.job_id} gave no terminal answer in {elapsed:.0f}s")
        return self._finish(Failed(
            error=JobTimeout(reason, elapsed_sec=elapsed),
            symbol=state.symbol,
            job_id=state.job_id,
            submitted_at=state.submitted_at,
            poll_count=state.poll_count,
            progress=state.progress,
            elapsed_sec=elapsed,
        ))

    def _finish(self, state: JobState) -> JobState:
        self._generation += 1
        self._release()
        self._state = state
        return state

    def _release(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None

    def _log(self, msg: str) -> None:
        if self.verbose:
            ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
            print(f"  [{ts}] [{self.label}] {msg}")
