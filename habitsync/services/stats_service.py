from __future__ import annotations
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func

from ..config import settings
from ..models.habit import Habit, Checkin
from ..models.users import User
from ..utils.get_user_time import get_user_today, local_date
from .habit_service import HabitService
from .streak import calculate_current_streak, calculate_completion_for_range


@dataclass(frozen=True)
class HeatmapCell:
    date: date
    done: int
    total: int
    completion: float
    level: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


def completion_level(done: int, total: int) -> int:
    """
    0: nothing active or nothing done, 1: under half, 2: half or more, 3: everything.
    """
    if total <= 0 or done <= 0:
        return 0
    completion = done / total
    if completion >= 1:
        return 3
    if completion >= 0.5:
        return 2
    return 1


def iter_days(date_from: date, date_to: date) -> Iterable[date]:
    cursor = date_from
    while cursor <= date_to:
        yield cursor
        cursor += timedelta(days=1)


def build_heatmap(
    date_from: date,
    date_to: date,
    habit_created_dates: Iterable[date],
    done_by_date: Dict[date, int],
) -> List[HeatmapCell]:
    """
    One cell per calendar day in [date_from, date_to], whether or not any
    check-in exists. `habit_created_dates` must only contain active habits.
    """
    created = sorted(habit_created_dates)
    cells: List[HeatmapCell] = []
    for day in iter_days(date_from, date_to):
        total = sum(1 for created_on in created if created_on <= day)
        done = done_by_date.get(day, 0)
        completion = done / total if total > 0 else 0
        cells.append(HeatmapCell(
            date=day,
            done=done,
            total=total,
            completion=completion,
            level=completion_level(done, total),
        ))
    return cells


def clamp_heatmap_days(days: Optional[int]) -> int:
    if days is None:
        return settings.HEATMAP_DEFAULT_DAYS
    return min(max(days, settings.HEATMAP_MIN_DAYS), settings.HEATMAP_MAX_DAYS)


def _user_tz(user: User) -> str:
    return user.user_timezone or settings.DEFAULT_TIMEZONE


class StatsService:
    """
    Read-only aggregates computed from persisted check-ins.
    """

    @staticmethod
    async def heatmap(
        session: AsyncSession,
        user: User,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        days = clamp_heatmap_days(days)
        tz_name = _user_tz(user)
        date_to = get_user_today(tz_name, now)
        date_from = date_to - timedelta(days=days - 1)

        habits = await HabitService.list_habits(session, user.id, active_only=True)
        created_dates = [local_date(h.created_at, tz_name) for h in habits]

        result = await session.execute(
            select(Checkin.checkin_date, func.count(Checkin.id))
            .where(
                Checkin.user_id == user.id,
                Checkin.status == "done",
                Checkin.checkin_date >= date_from,
                Checkin.checkin_date <= date_to,
            )
            .group_by(Checkin.checkin_date)
        )
        done_by_date = {row[0]: row[1] for row in result.all()}

        cells = build_heatmap(date_from, date_to, created_dates, done_by_date)
        return {
            "ok": True,
            "days": days,
            "from": date_from.isoformat(),
            "to": date_to.isoformat(),
            "timezone": tz_name,
            "data": [cell.to_dict() for cell in cells],
        }

    @staticmethod
    async def habit_stats(
        session: AsyncSession,
        user: User,
        range_days: int = 7,
        now: Optional[datetime] = None,
    ) -> dict:
        range_days = 30 if range_days == 30 else 7
        today = get_user_today(_user_tz(user), now)

        stats = []
        for habit in await HabitService.list_habits(session, user.id):
            checkins = await HabitService.checkins_for_habit(session, user.id, habit.id)
            stats.append({
                "id": habit.id,
                "title": habit.title,
                "streak": calculate_current_streak(checkins, today),
                "completionPercent": calculate_completion_for_range(checkins, range_days, today),
            })
        return {"ok": True, "range": range_days, "stats": stats}

    @staticmethod
    async def weekly_summary(session: AsyncSession, user: User, now: Optional[datetime] = None) -> dict:
        tz_name = _user_tz(user)
        date_to = get_user_today(tz_name, now)
        date_from = date_to - timedelta(days=6)

        habits = await HabitService.list_habits(session, user.id)
        checkins = await HabitService.checkins_for_range(session, user.id, date_from, date_to)
        status_by_date: Dict[date, Dict[int, str]] = {}
        for row in checkins:
            status_by_date.setdefault(row.checkin_date, {})[row.habit_id] = row.status

        days = []
        for day in iter_days(date_from, date_to):
            statuses = status_by_date.get(day, {})
            days.append({
                "date": day.isoformat(),
                "done": sum(1 for h in habits if statuses.get(h.id) == "done"),
                "skip": sum(1 for h in habits if statuses.get(h.id) == "skip"),
                "total": len(habits),
                "statuses": [
                    {"habit_id": h.id, "title": h.title, "status": statuses.get(h.id, "none")}
                    for h in habits
                ],
            })

        return {
            "ok": True,
            "from": date_from.isoformat(),
            "to": date_to.isoformat(),
            "timezone": tz_name,
            "habits": [{"id": h.id, "title": h.title} for h in habits],
            "days": days,
        }
