from __future__ import annotations
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from datetime import datetime, timedelta, timezone
from loguru import logger

from ..config import settings
from ..models.users import User
from ..utils.validators import is_valid_timezone

async def get_or_create_user(
    session: AsyncSession,
    tg_user_id: int,
    first_name: Optional[str] = None,
    username: Optional[str] = None,
    language_code: Optional[str] = None,
) -> User:
    result = await session.execute(select(User).where(User.tg_user_id == tg_user_id))
    user = result.scalar_one_or_none()
    if user:
        if language_code and user.language_code != language_code:
            user.language_code = language_code
            user.touch()
            session.add(user)
        return user
    user = User(
        tg_user_id=tg_user_id,
        first_name=first_name,
        username=username,
        language_code=language_code,
        user_timezone=settings.DEFAULT_TIMEZONE,
        trial_until=datetime.now(timezone.utc) + timedelta(days=settings.TRIAL_DAYS),
    )
    session.add(user)
    await session.flush()
    logger.info("Created user {} for Telegram id {}", user.id, tg_user_id)
    return user

async def update_user_settings(
    session: AsyncSession,
    user: User,
    timezone_name: Optional[str] = None,
) -> User:
    changed = False
    if timezone_name is not None:
        timezone_name = timezone_name.strip()
        if not is_valid_timezone(timezone_name):
            raise ValueError(f"Unknown timezone '{timezone_name}'")
        user.user_timezone = timezone_name; changed = True
    if changed:
        user.touch()
        session.add(user)
        await session.flush()
    return user

def public_user(user: User) -> dict:
    return {
        "id": user.id,
        "telegram_id": user.tg_user_id,
        "first_name": user.first_name,
        "username": user.username,
        "timezone": user.user_timezone or settings.DEFAULT_TIMEZONE,
        "language_code": user.language_code or "en",
        "plan": user.effective_plan,
        "is_premium": user.is_premium,
        "trial_until": user.trial_until.isoformat() if user.trial_until else None,
        "xp": user.xp or 0,
        "level": user.level or 1,
    }
