import asyncio
import pytest

from webapp_client.actions import ActionType, action
from webapp_client.store import Store
from webapp_client.tickers import FiveMinuteSync, HabitTimerSync, IntervalTicker


def timer_store():
    store = Store()
    store.dispatch(action(ActionType.SET_HABITS, [
        {"id": 1, "title": "Plank", "type": "timer", "timerDuration": 3},
        {"id": 2, "title": "Read", "type": "boolean"},
    ]))
    return store


@pytest.mark.asyncio
async def test_interval_ticker_calls_back_until_stopped():
    calls = []
    ticker = IntervalTicker(lambda: calls.append(1), interval=0.01)
    ticker.start()
    ticker.start()  # idempotent
    await asyncio.sleep(0.055)
    ticker.stop()
    count = len(calls)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(calls) == count
    assert not ticker.running


@pytest.mark.asyncio
async def test_interval_ticker_survives_callback_errors():
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("boom")

    ticker = IntervalTicker(flaky, interval=0.01)
    ticker.start()
    await asyncio.sleep(0.035)
    ticker.stop()
    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_habit_timer_sync_follows_running_timers():
    store = timer_store()
    reached = []
    timers = HabitTimerSync(store, interval=10, on_target=reached.append)
    store.subscribe(timers)

    store.dispatch(action(ActionType.TIMER_START, {"habit_id": 1}))
    await asyncio.sleep(0)
    assert timers.ticker.running

    timers.tick()
    timers.tick()
    assert store.get_state().checkins[1].timer_elapsed == 2
    assert reached == []

    timers.tick()
    timers.tick()
    # Reported once, on the tick that hits the duration; status is left to the server
    assert reached == [1]
    assert store.get_checkin_status(1) == "none"

    store.dispatch(action(ActionType.TIMER_STOP, {"habit_id": 1}))
    await asyncio.sleep(0)
    assert not timers.ticker.running


@pytest.mark.asyncio
async def test_five_minute_sync_counts_down_and_finishes():
    store = Store()
    done = []
    five_min = FiveMinuteSync(store, interval=10, on_done=lambda: done.append(True))
    store.subscribe(five_min)

    store.dispatch(action(ActionType.FIVE_MIN_SHOW, {"habit_id": 7}))
    await asyncio.sleep(0)
    assert not five_min.ticker.running

    store.dispatch(action(ActionType.FIVE_MIN_ACCEPT))
    await asyncio.sleep(0)
    assert five_min.ticker.running

    five_min.tick()
    assert store.get_state().ui.five_min.remaining == 299

    # Jump to the last second
    for _ in range(298):
        store.dispatch(action(ActionType.FIVE_MIN_TICK))
    five_min.tick()
    await asyncio.sleep(0)

    assert done == [True]
    assert store.get_state().ui.five_min.running is False
    assert store.get_state().ui.five_min.habit_id is None
    assert not five_min.ticker.running
