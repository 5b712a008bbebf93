from __future__ import annotations
import asyncio
from typing import Callable, Optional, Sequence
from loguru import logger

from .actions import Action, ActionType, action
from .state import AppState
from .store import Store, five_min_active


class IntervalTicker:
    """Calls `callback` every `interval` seconds on the running loop until stopped."""

    def __init__(self, callback: Callable[[], None], interval: float = 1.0, name: str = "ticker"):
        self.callback = callback
        self.interval = interval
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.callback()
            except Exception as e:
                logger.exception("{} callback failed: {}", self.name, e)


class HabitTimerSync:
    """
    Store listener driving running habit timers.

    One shared ticker runs while any check-in view has `timer_running`;
    each tick advances every running timer by one second. `on_target` is
    called with the habit id on the tick that reaches `timer_duration`.
    """

    def __init__(self, store: Store, interval: float = 1.0, on_target: Optional[Callable[[int], None]] = None):
        self.store = store
        self.on_target = on_target
        self.ticker = IntervalTicker(self.tick, interval, name="habit-timer")

    def __call__(self, state: AppState, prev_state: AppState, actions: Sequence[Action]) -> None:
        self.sync(state)

    def sync(self, state: AppState) -> None:
        if any(view.timer_running for view in state.checkins.values()):
            self.ticker.start()
        else:
            self.ticker.stop()

    def tick(self) -> None:
        state = self.store.get_state()
        for habit in state.habits:
            view = state.checkins.get(habit.id)
            if view is None or not view.timer_running:
                continue
            self.store.dispatch(action(
                ActionType.TIMER_TICK,
                {"habit_id": habit.id, "elapsed": (view.timer_elapsed or 0) + 1},
            ))
            reached = habit.target_reached(self.store.get_state().checkins.get(habit.id))
            if reached and not habit.target_reached(view) and self.on_target is not None:
                self.on_target(habit.id)


class FiveMinuteSync:
    """Counts the five-minute nudge down once the user accepts it."""

    def __init__(self, store: Store, interval: float = 1.0, on_done: Optional[Callable[[], None]] = None):
        self.store = store
        self.on_done = on_done
        self.ticker = IntervalTicker(self.tick, interval, name="five-min")

    def __call__(self, state: AppState, prev_state: AppState, actions: Sequence[Action]) -> None:
        self.sync(state)

    def sync(self, state: AppState) -> None:
        if five_min_active(state):
            self.ticker.start()
        else:
            self.ticker.stop()

    def tick(self) -> None:
        self.store.dispatch(action(ActionType.FIVE_MIN_TICK))
        five_min = self.store.get_state().ui.five_min
        if five_min.running and five_min.remaining > 0:
            return

        self.ticker.stop()
        if five_min.remaining <= 0:
            self.store.dispatch(action(ActionType.FIVE_MIN_DONE))
            logger.info("Five-minute nudge finished")
            if self.on_done is not None:
                self.on_done()
