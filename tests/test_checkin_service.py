import pytest
from datetime import date, datetime, timezone
from sqlmodel import select

from habitsync.models.habit import Checkin
from habitsync.services.checkin_service import CheckinService, calculate_level
from habitsync.services.habit_service import HabitService, HabitNotFoundError
from habitsync.services.profile_services import get_or_create_user

DAY = date(2026, 3, 10)


async def setup_habit(session):
    user = await get_or_create_user(session, 555, first_name="Test")
    habit = await HabitService.create_habit(session, user, title="Meditate")
    return user, habit


async def rows_for(session, habit_id):
    result = await session.execute(select(Checkin).where(Checkin.habit_id == habit_id))
    return list(result.scalars().all())


def test_calculate_level():
    assert calculate_level(0) == 1
    assert calculate_level(99) == 1
    assert calculate_level(100) == 2
    assert calculate_level(250) == 3


@pytest.mark.asyncio
async def test_repeated_done_is_idempotent_with_single_reward(db_session):
    user, habit = await setup_habit(db_session)

    first = await CheckinService.upsert(db_session, user, habit.id, "done", on_date=DAY)
    second = await CheckinService.upsert(db_session, user, habit.id, "done", on_date=DAY)

    assert first.reward_delta == 10
    assert first.previous_status is None
    assert second.reward_delta == 0
    assert second.previous_status == "done"
    assert user.xp == 10

    rows = await rows_for(db_session, habit.id)
    assert len(rows) == 1
    assert rows[0].status == "done"


@pytest.mark.asyncio
async def test_skip_then_done_grants_reward_once(db_session):
    user, habit = await setup_habit(db_session)

    skipped = await CheckinService.upsert(db_session, user, habit.id, "skip", on_date=DAY)
    done = await CheckinService.upsert(db_session, user, habit.id, "done", on_date=DAY)
    back_to_skip = await CheckinService.upsert(db_session, user, habit.id, "skip", on_date=DAY)

    assert skipped.reward_delta == 0
    assert done.reward_delta == 10
    assert back_to_skip.reward_delta == 0
    # No XP is taken back
    assert user.xp == 10
    assert (await rows_for(db_session, habit.id))[0].status == "skip"


@pytest.mark.asyncio
async def test_undo_deletes_row_and_is_noop_when_missing(db_session):
    user, habit = await setup_habit(db_session)
    await CheckinService.upsert(db_session, user, habit.id, "done", on_date=DAY)

    assert await CheckinService.remove(db_session, user, habit.id, on_date=DAY) == DAY
    assert await rows_for(db_session, habit.id) == []

    # Second undo: nothing to delete
    assert await CheckinService.remove(db_session, user, habit.id, on_date=DAY) == DAY


@pytest.mark.asyncio
async def test_redo_after_undo_rewards_again(db_session):
    user, habit = await setup_habit(db_session)
    await CheckinService.upsert(db_session, user, habit.id, "done", on_date=DAY)
    await CheckinService.remove(db_session, user, habit.id, on_date=DAY)
    outcome = await CheckinService.upsert(db_session, user, habit.id, "done", on_date=DAY)

    assert outcome.previous_status is None
    assert outcome.reward_delta == 10
    assert user.xp == 20


@pytest.mark.asyncio
async def test_level_up_is_reported(db_session):
    user, habit = await setup_habit(db_session)
    user.xp = 95
    user.level = 1

    outcome = await CheckinService.upsert(db_session, user, habit.id, "done", on_date=DAY)

    assert outcome.xp == 105
    assert outcome.level == 2
    assert outcome.leveled_up is True
    response = outcome.to_response()
    assert response["leveledUp"] is True
    assert response["date"] == "2026-03-10"
    assert response["status"] == "done"


@pytest.mark.asyncio
async def test_invalid_status_and_unknown_habit(db_session):
    user, habit = await setup_habit(db_session)

    with pytest.raises(ValueError):
        await CheckinService.upsert(db_session, user, habit.id, "maybe", on_date=DAY)
    with pytest.raises(HabitNotFoundError):
        await CheckinService.upsert(db_session, user, 9999, "done", on_date=DAY)
    with pytest.raises(HabitNotFoundError):
        await CheckinService.remove(db_session, user, 9999, on_date=DAY)


@pytest.mark.asyncio
async def test_upsert_without_date_uses_users_local_day(db_session):
    user, habit = await setup_habit(db_session)
    user.user_timezone = "Asia/Tokyo"
    late_utc = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)

    outcome = await CheckinService.upsert(db_session, user, habit.id, "done", now=late_utc)

    assert outcome.checkin_date == date(2026, 3, 11)
    rows = await rows_for(db_session, habit.id)
    assert [row.checkin_date for row in rows] == [date(2026, 3, 11)]


@pytest.mark.asyncio
async def test_upsert_with_unknown_timezone_lands_on_utc_day(db_session):
    user, habit = await setup_habit(db_session)
    user.user_timezone = "Mars/Olympus"
    late_utc = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)

    outcome = await CheckinService.upsert(db_session, user, habit.id, "done", now=late_utc)

    assert outcome.checkin_date == date(2026, 3, 10)
