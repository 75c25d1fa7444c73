"""Normalizers for stored check-in and contact policy fields.

Every function here is total: malformed input degrades to a documented
default instead of raising, so a bad config value can never drop an alert.
"""

import math
from typing import Any, Optional

DEFAULT_CHECKIN_INTERVAL_MIN = 720
DEFAULT_MAX_REPEATS = 3

POLICY_IMMEDIATE = "immediate"
POLICY_DELAY = "delay"


def coerce_number(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def coerce_int(value: Any) -> Optional[int]:
    number = coerce_number(value)
    if number is None:
        return None
    return int(math.floor(number))


def normalize_interval(value: Any) -> int:
    minutes = coerce_int(value)
    if minutes is None or minutes <= 0:
        return DEFAULT_CHECKIN_INTERVAL_MIN
    return minutes


def normalize_policy(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() == POLICY_DELAY:
        return POLICY_DELAY
    return POLICY_IMMEDIATE


def normalize_delay(policy: Any, value: Any) -> int:
    if normalize_policy(policy) != POLICY_DELAY:
        return 0
    minutes = coerce_int(value)
    if minutes is None or minutes <= 0:
        return 0
    return minutes


def normalize_repeat_every(value: Any) -> int:
    """Repeat interval in minutes; 0 means a single send per window."""
    minutes = coerce_int(value)
    if minutes is None or minutes <= 0:
        return 0
    return minutes


def normalize_max_repeats(value: Any, repeat_every_min: int) -> int:
    if repeat_every_min <= 0:
        return 1
    cap = coerce_int(value)
    if cap is None or cap < 1:
        return DEFAULT_MAX_REPEATS
    return cap


def normalize_count(value: Any) -> int:
    count = coerce_int(value)
    if count is None or count < 0:
        return 0
    return count
