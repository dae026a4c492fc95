from __future__ import annotations

import threading
import uuid
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from job_poller.engine import JobPollingController


class JobRegistry:
    """
    In-memory map of tracked jobs: tracking id -> controller.

    Same public API for the HTTP service and the MCP server:
      add(), get(), remove(), items(), counts(), stop_all()

    Nothing is persisted; a restart forgets every job.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: Dict[str, "JobPollingController"] = {}

    def add(self, controller: "JobPollingController") -> str:
        tracking_id = uuid.uuid4().hex[:12]
        with self._lock:
            self._jobs[tracking_id] = controller
        return tracking_id

    def get(self, tracking_id: str) -> Optional["JobPollingController"]:
        with self._lock:
            return self._jobs.get(tracking_id)

    def remove(self, tracking_id: str) -> Optional["JobPollingController"]:
        """Forget a job, stopping its polling first."""
        with self._lock:
            controller = self._jobs.pop(tracking_id, None)
        if controller is not None:
            controller.stop()
        return controller

    def items(self) -> List[Tuple[str, "JobPollingController"]]:
        with self._lock:
            return list(self._jobs.items())

    def counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {"idle": 0, "polling": 0, "completed": 0, "failed": 0}
        for _, controller in self.items():
            name = controller.state.name
            counts[name] = counts.get(name, 0) + 1
        return counts

    def stop_all(self) -> int:
        """Stop every tracked controller; returns how many were actually polling."""
        return sum(1 for _, controller in self.items() if controller.stop())

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


# Process-wide registry shared by the HTTP service and the MCP tools.
registry = JobRegistry()
