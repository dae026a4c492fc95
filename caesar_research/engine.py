from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, Optional

from shared.base_client import BaseJobClient, Transport
from shared.profile_loader import load_profile

# Cached research carries the prompt inline between these markers.
_QUERY_PATTERN = re.compile(
    r"=== INITIAL QUERY SENT TO CAESAR ===\n\n([\s\S]*?)\n\n=== CAESAR'S RAW RESPONSE ==="
)


def extract_query_prompt(result: Any) -> Optional[str]:
    """Recover the prompt sent to Caesar from a research payload's rawContent."""
    if not isinstance(result, dict):
        return None
    raw = result.get("rawContent")
    if not isinstance(raw, str):
        return None
    match = _QUERY_PATTERN.search(raw)
    return match.group(1) if match else None


class CaesarResearchClient(BaseJobClient):
    """
    Starts and polls Caesar deep research jobs.
    Endpoints, cadence and status vocabulary come from profiles/default.yaml.

    Status vocabulary: queued, pending, researching, completed, failed,
    cancelled, expired. The research report lives under `data`.
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
        return payload.get("data")

    def query_from_result(self, result: Any) -> Optional[str]:
        return extract_query_prompt(result)
