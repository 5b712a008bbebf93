from __future__ import annotations
from typing import Iterable, List, Optional
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, and_, func
from loguru import logger

from ..config import settings
from ..models.habit import Habit, Checkin
from ..models.users import User
from ..utils.validators import clamp_positive, normalize_kind


class HabitNotFoundError(LookupError):
    """Habit does not exist, belongs to someone else, or is disabled."""

    def __init__(self, habit_id: int):
        super().__init__(f"Habit {habit_id} not found")
        self.habit_id = habit_id


class HabitLimitError(PermissionError):
    """Free plan reached its active habit limit."""

    def __init__(self, limit: int, current: int):
        super().__init__(f"Free plan allows {limit} habits")
        self.limit = limit
        self.current = current


class HabitService:
    """
    CRUD for habits plus the check-in reads shared by stats and bootstrap.
    """

    @staticmethod
    async def create_habit(
        session: AsyncSession,
        user: User,
        title: str,
        kind: str = "boolean",
        counter_target: Optional[int] = None,
        counter_step: Optional[int] = None,
        timer_duration: Optional[int] = None,
    ) -> Habit:
        """Create a new habit at the end of the user's list."""
        title = (title or "").strip()
        if not title:
            raise ValueError("Missing title")

        if not user.is_premium:
            current = await HabitService.count_active(session, user.id)
            if current >= settings.FREE_HABIT_LIMIT:
                logger.info("User {} hit the free habit limit ({})", user.id, current)
                raise HabitLimitError(settings.FREE_HABIT_LIMIT, current)

        kind = normalize_kind(kind)
        result = await session.execute(
            select(func.max(Habit.sort_order)).where(Habit.user_id == user.id)
        )
        max_order = result.scalar_one_or_none() or 0

        habit = Habit(
            user_id=user.id,
            title=title,
            kind=kind,
            counter_target=clamp_positive(counter_target) if kind == "counter" else None,
            counter_step=clamp_positive(counter_step) if kind == "counter" else None,
            timer_duration=clamp_positive(timer_duration) if kind == "timer" else None,
            sort_order=max_order + 1,
        )
        session.add(habit)
        await session.flush()
        logger.info("Created habit {} for user {}", habit.id, user.id)
        return habit

    @staticmethod
    async def count_active(session: AsyncSession, user_id: int) -> int:
        result = await session.execute(
            select(func.count(Habit.id)).where(Habit.user_id == user_id, Habit.active == True)
        )
        return result.scalar_one() or 0

    @staticmethod
    async def list_habits(session: AsyncSession, user_id: int, active_only: bool = True) -> List[Habit]:
        """List user's habits in display order."""
        filters = [Habit.user_id == user_id]
        if active_only:
            filters.append(Habit.active == True)

        result = await session.execute(
            select(Habit).where(and_(*filters)).order_by(Habit.sort_order, Habit.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_owned_habit(
        session: AsyncSession,
        user_id: int,
        habit_id: int,
        active_only: bool = True,
    ) -> Habit:
        habit = await session.get(Habit, habit_id)
        if not habit or habit.user_id != user_id or (active_only and not habit.active):
            raise HabitNotFoundError(habit_id)
        return habit

    @staticmethod
    async def update_habit(
        session: AsyncSession,
        user_id: int,
        habit_id: int,
        title: Optional[str] = None,
        active: Optional[bool] = None,
        sort_order: Optional[int] = None,
        counter_target: Optional[int] = None,
        counter_step: Optional[int] = None,
        timer_duration: Optional[int] = None,
    ) -> Habit:
        habit = await HabitService.get_owned_habit(session, user_id, habit_id, active_only=False)
        if title is not None and title.strip():
            habit.title = title.strip()
        if active is not None:
            habit.active = bool(active)
        if sort_order is not None:
            habit.sort_order = int(sort_order)
        if habit.kind == "counter":
            if counter_target is not None:
                habit.counter_target = clamp_positive(counter_target)
            if counter_step is not None:
                habit.counter_step = clamp_positive(counter_step)
        if habit.kind == "timer" and timer_duration is not None:
            habit.timer_duration = clamp_positive(timer_duration)
        habit.touch()
        session.add(habit)
        await session.flush()
        return habit

    @staticmethod
    async def archive_habit(session: AsyncSession, user_id: int, habit_id: int) -> Habit:
        """Soft-disable a habit; its check-ins stay for history."""
        habit = await HabitService.get_owned_habit(session, user_id, habit_id, active_only=False)
        habit.active = False
        habit.touch()
        session.add(habit)
        await session.flush()
        logger.info("Archived habit {}", habit_id)
        return habit

    @staticmethod
    async def reorder_habits(session: AsyncSession, user_id: int, order: Iterable[dict]) -> int:
        """Apply [{id, sort_order}, ...]; foreign or malformed items are skipped."""
        updated = 0
        for item in order:
            try:
                habit_id = int(item["id"])
                sort_order = int(item["sort_order"])
            except (KeyError, TypeError, ValueError):
                continue
            habit = await session.get(Habit, habit_id)
            if not habit or habit.user_id != user_id:
                continue
            habit.sort_order = sort_order
            habit.touch()
            session.add(habit)
            updated += 1
        await session.flush()
        return updated

    @staticmethod
    async def checkins_for_habit(session: AsyncSession, user_id: int, habit_id: int) -> List[Checkin]:
        result = await session.execute(
            select(Checkin).where(Checkin.user_id == user_id, Checkin.habit_id == habit_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def checkins_for_date(session: AsyncSession, user_id: int, on_date: date) -> List[Checkin]:
        result = await session.execute(
            select(Checkin).where(Checkin.user_id == user_id, Checkin.checkin_date == on_date)
        )
        return list(result.scalars().all())

    @staticmethod
    async def checkins_for_range(
        session: AsyncSession,
        user_id: int,
        date_from: date,
        date_to: date,
    ) -> List[Checkin]:
        result = await session.execute(
            select(Checkin).where(
                Checkin.user_id == user_id,
                Checkin.checkin_date >= date_from,
                Checkin.checkin_date <= date_to,
            )
        )
        return list(result.scalars().all())
