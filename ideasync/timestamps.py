"""Timestamp normalization for last-write-wins comparisons."""

import math
from datetime import datetime, timezone
from typing import Any


def parse_timestamp(value: Any) -> float | None:
    """Convert an ``updated_at`` value into a comparable number.

    Accepts ISO-8601 strings (``Z`` suffix and offsets allowed, naive
    values are taken as UTC), ``datetime`` objects, and epoch numbers.

    Returns:
        Seconds since the epoch (numbers are returned unchanged), or None
        if the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)

    if isinstance(value, datetime):
        return _as_utc(value).timestamp()

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return _as_utc(datetime.fromisoformat(text)).timestamp()
        except ValueError:
            return None

    return None


def timestamp_key(value: Any) -> float:
    """Sort key for timestamps; unparseable values sort before all others."""
    parsed = parse_timestamp(value)
    return parsed if parsed is not None else float("-inf")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
