from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.users import User
from ..utils.get_user_time import get_user_today
from .habit_service import HabitService
from .profile_services import public_user
from .streak import calculate_current_streak


def entitlement_flags(user: User) -> dict:
    premium = user.is_premium
    return {
        "isPremium": premium,
        "unlimitedHabits": premium,
        "habitLimit": None if premium else settings.FREE_HABIT_LIMIT,
        "heatmap365": premium,
    }


async def build_bootstrap(session: AsyncSession, user: User, now: Optional[datetime] = None) -> dict:
    """
    Everything the mini-app needs on launch: habits with streaks, today's
    check-in map and entitlement flags.
    """
    today = get_user_today(user.user_timezone or settings.DEFAULT_TIMEZONE, now)

    habits = []
    for habit in await HabitService.list_habits(session, user.id):
        checkins = await HabitService.checkins_for_habit(session, user.id, habit.id)
        payload = habit.to_public_dict()
        payload["streak"] = calculate_current_streak(checkins, today)
        habits.append(payload)

    today_checkins = {
        str(row.habit_id): row.status
        for row in await HabitService.checkins_for_date(session, user.id, today)
    }

    profile = public_user(user)
    return {
        "ok": True,
        "user": profile,
        "plan": profile["plan"],
        "trialUntil": profile["trial_until"],
        "date": today.isoformat(),
        "habits": habits,
        "todayCheckins": today_checkins,
        "streak": max((h["streak"] for h in habits), default=0),
        "features": entitlement_flags(user),
    }
