from __future__ import annotations

from datetime import datetime, timezone


def iso_now_ms() -> str:
    """UTC ISO-8601 timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def clamp_int(v: int, lo: int, hi: int) -> int:
    return int(min(hi, max(lo, v)))
