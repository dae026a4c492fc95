from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from shared.base_client import BaseJobClient, Transport
from shared.errors import PollTransientError
from shared.profile_loader import load_profile


class GPTSummaryClient(BaseJobClient):
    """
    Starts and polls GPT summary jobs.
    Endpoints, cadence and status vocabulary come from profiles/default.yaml.

    The poll endpoint reports `queued | processing | completed | error` and puts
    the finished summary under `result`, sometimes as a JSON-encoded string.
    """

    def __init__(
        self,
        profile_path: str | None = None,
        base_url: Optional[str] = None,
        session_cookie: Optional[str] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        default = Path(__file__).resolve().parent / "profiles" / "default.yaml"
        profile = load_profile(Path(profile_path) if profile_path else default)
        super().__init__(profile, base_url=base_url, session_cookie=session_cookie, transport=transport)

    def extract_result(self, payload: Dict[str, Any]) -> Optional[Any]:
        result = payload.get("result")
        if result is None:
            result = payload.get("data")
        if isinstance(result, str):
            if not result.strip():
                return None
            try:
                return json.loads(result)
            except ValueError as exc:
                raise PollTransientError(f"Failed to parse analysis result: {exc}") from exc
        return result
