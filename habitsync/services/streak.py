from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Union

CheckinLike = Union[tuple, object]


def build_status_map(checkins: Iterable[CheckinLike]) -> Dict[date, str]:
    """
    Map calendar day -> status.
    Accepts Checkin rows (checkin_date/status attributes) or (date, status) pairs.
    """
    status_map: Dict[date, str] = {}
    for item in checkins:
        if isinstance(item, tuple):
            day, status = item
        else:
            day, status = item.checkin_date, item.status
        if isinstance(day, str):
            day = date.fromisoformat(day)
        status_map[day] = status
    return status_map


def _as_date(today: Union[date, datetime]) -> date:
    return today.date() if isinstance(today, datetime) else today


def calculate_current_streak(checkins: Iterable[CheckinLike], today: Union[date, datetime]) -> int:
    """
    Consecutive "done" days ending at `today` (already in the user's timezone).
    A skip or a missing day ends the walk; there is no grace day.
    """
    status_map = build_status_map(checkins)
    streak = 0
    cursor = _as_date(today)

    while status_map.get(cursor) == "done":
        streak += 1
        cursor -= timedelta(days=1)

    return streak


def calculate_completion_for_range(
    checkins: Iterable[CheckinLike],
    range_days: int,
    today: Union[date, datetime],
) -> int:
    """Rounded percentage of "done" days among the last `range_days` days."""
    if range_days <= 0:
        return 0
    status_map = build_status_map(checkins)
    start = _as_date(today)
    done_count = sum(
        1 for offset in range(range_days)
        if status_map.get(start - timedelta(days=offset)) == "done"
    )
    return round(done_count / range_days * 100)
