from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml


def load_profile(profile_path: Path) -> Dict[str, Any]:
    """Load a YAML job-kind profile and validate it has required fields."""
    raw = profile_path.read_text(encoding="utf-8")
    profile = yaml.safe_load(raw)
    if not isinstance(profile, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(profile)}")
    if not profile.get("kind"):
        raise ValueError(f"Profile {profile_path.name} must define 'kind'")
    if not isinstance(profile.get("endpoints"), dict):
        raise ValueError(f"Profile {profile.get('kind')} must define an 'endpoints' mapping")
    return profile


def get_threshold(profile: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """
    Safely traverse nested profile keys.
    Example: get_threshold(profile, "polling", "interval_sec", default=60)
    """
    current = profile
    for key in keys:
        if isinstance(current, dict):
            current = current.get(key)
        else:
            return default
        if current is None:
            return default
    return current


def get_status_map(profile: Dict[str, Any]) -> Dict[str, str]:
    """Raw backend status -> canonical status, keys lower-cased."""
    raw = profile.get("status_map", {})
    if not isinstance(raw, dict):
        raise ValueError("'status_map' must be a mapping of raw status to canonical status")
    return {str(k).strip().lower(): str(v).strip().lower() for k, v in raw.items()}
