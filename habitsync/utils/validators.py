from __future__ import annotations
from typing import Optional
from zoneinfo import available_timezones

from ..models.habit import HABIT_KINDS

def is_valid_timezone(tz: str) -> bool:
    return tz in available_timezones()

def clamp_positive(value: Optional[int], upper: int = 100_000) -> Optional[int]:
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if 1 <= number <= upper:
        return number
    return None

def normalize_kind(kind: Optional[str]) -> str:
    kind = (kind or "boolean").strip().lower()
    return kind if kind in HABIT_KINDS else "boolean"
