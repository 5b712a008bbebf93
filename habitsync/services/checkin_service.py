from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from loguru import logger

from ..config import settings
from ..models.habit import Checkin, CHECKIN_STATUSES
from ..models.users import User
from ..utils.get_user_time import get_user_today
from .habit_service import HabitService


def calculate_level(total_xp: int) -> int:
    return max(0, int(total_xp or 0)) // settings.XP_PER_LEVEL + 1


@dataclass
class CheckinOutcome:
    habit_id: int
    checkin_date: date
    status: str
    previous_status: Optional[str]
    reward_delta: int
    xp: int
    level: int
    leveled_up: bool

    def to_response(self) -> dict:
        return {
            "ok": True,
            "habitId": self.habit_id,
            "status": self.status,
            "date": self.checkin_date.isoformat(),
            "rewardDelta": self.reward_delta,
            "leveledUp": self.leveled_up,
            "xp": self.xp,
            "level": self.level,
        }


class CheckinService:
    """
    Idempotent write path for daily check-ins.

    Each call runs inside the caller's session: the previous status is read,
    the row is inserted or overwritten and the reward is granted, all before
    a single commit. Two concurrent requests for the same key can still both
    observe the same previous status; that race is not defended here.
    """

    @staticmethod
    async def _existing(session: AsyncSession, user_id: int, habit_id: int, on_date: date) -> Optional[Checkin]:
        result = await session.execute(
            select(Checkin).where(
                Checkin.user_id == user_id,
                Checkin.habit_id == habit_id,
                Checkin.checkin_date == on_date,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(
        session: AsyncSession,
        user: User,
        habit_id: int,
        status: str,
        on_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> CheckinOutcome:
        if status not in CHECKIN_STATUSES:
            raise ValueError(f"Unsupported status '{status}'")

        await HabitService.get_owned_habit(session, user.id, habit_id)
        on_date = on_date or get_user_today(user.user_timezone or settings.DEFAULT_TIMEZONE, now)

        existing = await CheckinService._existing(session, user.id, habit_id, on_date)
        previous_status = existing.status if existing else None

        if existing:
            existing.status = status
            existing.touch()
            session.add(existing)
        else:
            session.add(Checkin(user_id=user.id, habit_id=habit_id, checkin_date=on_date, status=status))

        level_before = user.level or calculate_level(user.xp)
        reward_delta = 0
        if status == "done" and previous_status != "done":
            reward_delta = settings.XP_PER_CHECKIN
            user.xp = (user.xp or 0) + reward_delta
            user.level = calculate_level(user.xp)
            user.touch()
            session.add(user)

        await session.flush()

        outcome = CheckinOutcome(
            habit_id=habit_id,
            checkin_date=on_date,
            status=status,
            previous_status=previous_status,
            reward_delta=reward_delta,
            xp=user.xp or 0,
            level=user.level or calculate_level(user.xp),
            leveled_up=(user.level or 1) > level_before,
        )
        logger.info(
            "Check-in habit {} for user {} on {}: {} -> {} (+{} xp)",
            habit_id, user.id, on_date, previous_status or "none", status, reward_delta,
        )
        return outcome

    @staticmethod
    async def remove(
        session: AsyncSession,
        user: User,
        habit_id: int,
        on_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> date:
        """Undo: delete the day's row. Missing rows are a no-op."""
        await HabitService.get_owned_habit(session, user.id, habit_id)
        on_date = on_date or get_user_today(user.user_timezone or settings.DEFAULT_TIMEZONE, now)

        existing = await CheckinService._existing(session, user.id, habit_id, on_date)
        if existing:
            await session.delete(existing)
            await session.flush()
            logger.info("Undo habit {} for user {} on {}", habit_id, user.id, on_date)
        return on_date
