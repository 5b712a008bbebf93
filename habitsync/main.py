from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator
from fastapi import FastAPI, Request, HTTPException, Depends, Query
from loguru import logger
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .db import init_db, session_dependency
from .models.users import User
from .schemas import (
    CheckinRequest,
    UndoRequest,
    HabitCreateRequest,
    HabitUpdateRequest,
    ReorderRequest,
    SettingsRequest,
)
from .security.init_data import (
    DEBUG_INIT_DATA,
    DEBUG_TELEGRAM_ID,
    InitDataError,
    extract_init_data,
    verify_init_data,
)
from .services.bootstrap_service import build_bootstrap
from .services.checkin_service import CheckinService
from .services.habit_service import HabitService, HabitNotFoundError, HabitLimitError
from .services.profile_services import get_or_create_user, update_user_settings, public_user
from .services.stats_service import StatsService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # --- startup ---
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.LOG_LEVEL)

    await init_db()
    logger.info("HabitSync started successfully")

    yield

    # --- shutdown ---
    logger.info("HabitSync shut down")


app = FastAPI(title="HabitSync", lifespan=lifespan)


async def get_current_user(request: Request, session: AsyncSession = Depends(session_dependency)) -> User:
    """Resolve the Telegram user behind the request's initData, creating them on first visit."""
    init_data = extract_init_data(request.headers, request.query_params)

    if init_data == DEBUG_INIT_DATA:
        if not settings.ALLOW_DEBUG_AUTH:
            raise HTTPException(status_code=401, detail="Debug auth disabled")
        return await get_or_create_user(session, DEBUG_TELEGRAM_ID, username="tester")

    try:
        tg_user = verify_init_data(
            init_data,
            bot_token=settings.TELEGRAM_BOT_TOKEN,
            max_age_seconds=settings.INIT_DATA_MAX_AGE_SECONDS,
        )
    except InitDataError as e:
        raise HTTPException(status_code=401, detail=str(e))

    return await get_or_create_user(
        session,
        tg_user.id,
        first_name=tg_user.first_name,
        username=tg_user.username,
        language_code=tg_user.language_code,
    )


def _habit_not_found(e: HabitNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/bootstrap")
async def bootstrap(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    return await build_bootstrap(session, user)


@app.post("/check-in")
async def check_in(
    req: CheckinRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    try:
        outcome = await CheckinService.upsert(session, user, req.habit_id, req.status)
    except HabitNotFoundError as e:
        raise _habit_not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return outcome.to_response()


@app.post("/check-in/undo")
async def check_in_undo(
    req: UndoRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    try:
        undone_on = await CheckinService.remove(session, user, req.habit_id)
    except HabitNotFoundError as e:
        raise _habit_not_found(e)
    return {"ok": True, "habitId": req.habit_id, "date": undone_on.isoformat()}


@app.get("/stats")
async def stats(
    range_days: int = Query(default=7, alias="range"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    return await StatsService.habit_stats(session, user, range_days)


@app.get("/stats/heatmap")
async def stats_heatmap(
    days: int | None = Query(default=None),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    return await StatsService.heatmap(session, user, days)


@app.get("/stats/weekly-summary")
async def stats_weekly_summary(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    return await StatsService.weekly_summary(session, user)


@app.get("/habits")
async def list_habits(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    habits = await HabitService.list_habits(session, user.id)
    return {"ok": True, "habits": [h.to_public_dict() for h in habits]}


@app.post("/habits")
async def create_habit(
    req: HabitCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    try:
        habit = await HabitService.create_habit(
            session,
            user,
            title=req.title,
            kind=req.kind,
            counter_target=req.counter_target,
            counter_step=req.counter_step,
            timer_duration=req.timer_duration,
        )
    except HabitLimitError as e:
        raise HTTPException(
            status_code=403,
            detail={"error": str(e), "code": "premium_required", "limit": e.limit, "current": e.current},
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "habit": habit.to_public_dict()}


@app.post("/habits/reorder")
async def reorder_habits(
    req: ReorderRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    updated = await HabitService.reorder_habits(session, user.id, [item.model_dump() for item in req.order])
    return {"ok": True, "updated": updated}


@app.put("/habits/{habit_id}")
async def update_habit(
    habit_id: int,
    req: HabitUpdateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    try:
        habit = await HabitService.update_habit(session, user.id, habit_id, **req.model_dump())
    except HabitNotFoundError as e:
        raise _habit_not_found(e)
    return {"ok": True, "habit": habit.to_public_dict()}


@app.delete("/habits/{habit_id}")
async def delete_habit(
    habit_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    try:
        await HabitService.archive_habit(session, user.id, habit_id)
    except HabitNotFoundError as e:
        raise _habit_not_found(e)
    return {"ok": True}


@app.post("/settings")
async def save_settings(
    req: SettingsRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(session_dependency),
):
    try:
        user = await update_user_settings(session, user, timezone_name=req.timezone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "user": public_user(user)}
