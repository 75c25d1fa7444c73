"""Minute-quantized clock math.

Every comparison the scheduler makes is between whole minutes since the Unix
epoch, so sub-minute jitter between runs and client writes never re-triggers.
"""

import math
from datetime import datetime, timezone
from typing import Any, Optional

# Numbers below this are seconds, above it milliseconds.
_MILLIS_THRESHOLD = 1e12


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_millis(raw: Any) -> Optional[float]:
    """Best-effort conversion of a stored timestamp to epoch milliseconds."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            raw = raw.replace(tzinfo=timezone.utc)
        return raw.timestamp() * 1000
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw) or raw <= 0:
            return None
        return raw * 1000 if raw < _MILLIS_THRESHOLD else float(raw)
    timestamp = getattr(raw, "timestamp", None)
    if callable(timestamp):
        try:
            return float(timestamp()) * 1000
        except (TypeError, ValueError):
            return None
    return None


def epoch_minutes(raw: Any) -> Optional[int]:
    """Floor a timestamp to whole minutes since the epoch, None if unusable."""
    millis = to_millis(raw)
    if millis is None:
        return None
    return int(millis // 60_000)


def window_start(last_checkin_min: int, interval_min: int) -> int:
    """Minute at which the next check-in becomes due."""
    return last_checkin_min + interval_min
