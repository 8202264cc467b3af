from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def humanize_timestamp(value: datetime) -> str:
    """Return a human-readable timestamp (YYYY-MM-DD HH:MM:SS UTC).

    Args:
        value: datetime object to format.

    Returns:
        Human-readable UTC timestamp string.
    """
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M:%S UTC")


def parse_timestamp(raw: str) -> datetime | None:
    """Parse an ISO 8601 timestamp, accepting a trailing ``Z``.

    Returns None when the text is not a timestamp.
    """
    text = (raw or "").strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def safe_json_dumps(obj: Any, max_length: int = 8000) -> str:
    """Serialize ``obj`` as indented JSON, truncating overly long output."""
    try:
        text = json.dumps(obj, indent=2, default=str)
    except (TypeError, ValueError) as exc:
        return f"[JSON stringify error: {exc}]"
    if len(text) > max_length:
        return text[:max_length] + "\n\n[Output truncated due to length]"
    return text


def percent(value: float) -> str:
    """Format a 0..1 ratio as a percentage with one decimal."""
    return f"{value * 100:.1f}%"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime; the default clock everywhere."""
    return datetime.now(timezone.utc)
