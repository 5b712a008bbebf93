from __future__ import annotations
import asyncio
from typing import Any, Dict, List, Optional, Set
from loguru import logger

from .actions import ActionType, action
from .api import ApiClient, ApiError
from .config import ClientSettings, client_settings
from .persistence import CachePort, PersistenceSubscriber
from .runner import IntentResult, IntentRunner
from .state import HabitView, SyncFailure
from .store import Store
from .tickers import FiveMinuteSync, HabitTimerSync
from .transitions import next_boolean_intent


def heatmap_percentages(payload: Any) -> Dict[str, int]:
    """`{date: completion%}` from a /stats/heatmap response."""
    rows = payload.get("data") if isinstance(payload, dict) else None
    return {row["date"]: round((row.get("completion") or 0) * 100) for row in rows or ()}


class HabitController:
    """
    Wires one mini-app session together: store, intent runner, cache
    write-through and the timer/five-minute tickers.

    UI code calls the `on_*` handlers and reads `store`; everything that
    talks to the server is awaited here.
    """

    def __init__(
        self,
        api: ApiClient,
        cache: Optional[CachePort] = None,
        store: Optional[Store] = None,
        settings: ClientSettings = client_settings,
        tick_interval: float = 1.0,
    ):
        self.api = api
        self.cache = cache
        self.settings = settings
        self.store = store or Store()
        self.runner = IntentRunner(self.store, api)

        self._pending: Set[asyncio.Task] = set()
        self.timers = HabitTimerSync(self.store, interval=tick_interval, on_target=self._on_timer_target)
        self.five_min = FiveMinuteSync(self.store, interval=tick_interval)
        self._unsubscribe = [self.store.subscribe(self.timers), self.store.subscribe(self.five_min)]

        self.persistence: Optional[PersistenceSubscriber] = None
        if cache is not None:
            self.persistence = PersistenceSubscriber(cache, settings.SAVE_DEBOUNCE_SECONDS)
            self._unsubscribe.append(self.store.subscribe(self.persistence))

    # ---------- boot ----------

    async def boot(self) -> None:
        """Hydrate from cache for an instant UI, then let the server win."""
        cached = self.cache.load() if self.cache is not None else None
        has_cache = bool(cached and cached.get("habits"))
        if has_cache:
            self.store.dispatch(action(ActionType.HYDRATE_FROM_CACHE, cached))
        else:
            self.store.dispatch(action(ActionType.SET_LOADING, {"me": True}))
        self.store.dispatch(action(ActionType.CLEAR_ERROR))

        try:
            data = await self.api.load_bootstrap()
            self.store.dispatch(action(ActionType.SET_ME, data))
            logger.info("Bootstrap loaded: {} habits", len(self.store.get_state().habits))
        except ApiError as e:
            if has_cache:
                logger.warning("Bootstrap failed, working offline from cache: {}", e)
            else:
                logger.error("Bootstrap failed: {}", e)
                self.store.dispatch(action(ActionType.SET_ERROR, e))
            return
        finally:
            self.store.dispatch(action(ActionType.SET_LOADING, {"me": False}))

        # Optional: the board works without it
        try:
            await self.load_heatmap(60)
        except ApiError as e:
            logger.warning("Heatmap load failed: {}", e)

    # ---------- taps ----------

    async def on_habit_tap(self, habit_id: Any) -> Optional[IntentResult]:
        habit = self.store.get_state().find_habit(habit_id)
        if habit is None:
            return None

        if habit.kind == "counter":
            return await self.on_counter_tap(habit_id)
        if habit.kind == "timer":
            return await self.on_timer_toggle(habit_id)

        intent = next_boolean_intent(self.store.get_checkin_status(habit_id))
        if intent == "skip" and self.settings.FIVE_MIN_RULE:
            # Offer five minutes of effort before recording a skip
            self.store.dispatch(action(ActionType.FIVE_MIN_SHOW, {"habit_id": habit_id}))
            return None
        return await self.runner.run(habit_id, intent)

    async def on_counter_tap(self, habit_id: Any) -> Optional[IntentResult]:
        habit = self.store.get_state().find_habit(habit_id)
        if habit is None:
            return None
        self.store.dispatch(action(ActionType.COUNTER_INCREMENT, {"habit_id": habit_id, "step": habit.counter_step or 1}))
        return await self._record_if_reached(habit_id)

    async def on_timer_toggle(self, habit_id: Any) -> Optional[IntentResult]:
        view = self.store.get_state().checkins.get(habit_id)
        if view is None or not view.timer_running:
            self.store.dispatch(action(ActionType.TIMER_START, {"habit_id": habit_id}))
            return None

        self.store.dispatch(action(ActionType.TIMER_STOP, {"habit_id": habit_id}))
        return await self._record_if_reached(habit_id)

    async def _record_if_reached(self, habit_id: Any) -> Optional[IntentResult]:
        # Only the runner sets `done`
        state = self.store.get_state()
        habit = state.find_habit(habit_id)
        view = state.checkins.get(habit_id)
        if habit is None or not habit.target_reached(view) or view.status == "done":
            return None
        return await self.runner.run(habit_id, "done")

    def _on_timer_target(self, habit_id: int) -> None:
        self.store.dispatch(action(ActionType.TIMER_STOP, {"habit_id": habit_id}))
        task = asyncio.get_running_loop().create_task(self._record_if_reached(habit_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def on_five_min_accept(self) -> None:
        self.store.dispatch(action(ActionType.FIVE_MIN_ACCEPT))

    async def on_five_min_skip(self) -> Optional[IntentResult]:
        habit_id = self.store.get_state().ui.five_min.habit_id
        if habit_id is None:
            return None
        self.store.dispatch(action(ActionType.FIVE_MIN_DISMISS))
        return await self.runner.run(habit_id, "skip")

    async def retry_last_failure(self) -> Optional[IntentResult]:
        failure = self.store.get_state().error
        if not isinstance(failure, SyncFailure) or not failure.retryable:
            return None
        return await self.runner.retry(failure)

    # ---------- habit CRUD ----------

    async def add_habit(self, data: dict) -> Optional[HabitView]:
        self.store.dispatch(action(ActionType.SET_LOADING, {"habits": True}))
        try:
            result = await self.api.create_habit(data)
        except ApiError as e:
            logger.warning("Create habit failed: {}", e)
            self.store.dispatch(action(ActionType.SET_ERROR, e))
            return None
        finally:
            self.store.dispatch(action(ActionType.SET_LOADING, {"habits": False}))

        raw = result.get("habit") if isinstance(result, dict) else None
        if not raw:
            logger.warning("Unexpected create habit response: {}", result)
            await self._resync()
            return None

        # Form data fills fields an older server may not echo back
        full = {
            **raw,
            "type": raw.get("type") or data.get("type") or "boolean",
            "counterTarget": raw.get("counterTarget", data.get("counterTarget")),
            "counterStep": raw.get("counterStep") or data.get("counterStep") or 1,
            "timerDuration": raw.get("timerDuration", data.get("timerDuration")),
            "streak": raw.get("streak") or 0,
        }
        habit = HabitView.from_payload(full)
        self.store.dispatch(action(ActionType.ADD_HABIT, habit))
        await self._resync()
        return habit

    async def update_habit(self, habit_id: Any, data: dict) -> None:
        try:
            result = await self.api.update_habit(habit_id, data)
        except ApiError as e:
            logger.warning("Update habit {} failed: {}", habit_id, e)
            self.store.dispatch(action(ActionType.SET_ERROR, e))
            return
        raw = result.get("habit") if isinstance(result, dict) else None
        self.store.dispatch(action(ActionType.UPDATE_HABIT, raw or {"id": habit_id, **data}))

    async def delete_habit(self, habit_id: Any) -> bool:
        if self.store.get_state().find_habit(habit_id) is None:
            return False

        self.store.dispatch(action(ActionType.DELETE_HABIT, habit_id))
        try:
            await self.api.delete_habit(habit_id)
        except ApiError as e:
            # Put the board back the way the server sees it
            logger.warning("Delete habit {} failed: {}", habit_id, e)
            await self.boot()
            self.store.dispatch(action(ActionType.SET_ERROR, e))
            return False
        return True

    async def reorder(self, order: List[dict]) -> bool:
        self.store.dispatch(action(ActionType.REORDER_HABITS, order))
        try:
            return await self.api.reorder_habits(order)
        except ApiError as e:
            logger.warning("Reorder failed: {}", e)
            self.store.dispatch(action(ActionType.SET_ERROR, e))
            return False

    # ---------- stats & settings ----------

    async def load_stats(self, range_days: int = 7) -> Any:
        data = await self.api.load_stats(range_days)
        if isinstance(data, dict):
            self.store.dispatch(action(ActionType.SET_STATS, {"range": data.get("range"), "habits": data.get("stats") or []}))
        return data

    async def load_heatmap(self, days: int = 60) -> Any:
        data = await self.api.load_heatmap(days)
        self.store.dispatch(action(ActionType.SET_STATS, {"heatmap": heatmap_percentages(data)}))
        return data

    async def save_settings(self, timezone_name: str) -> Any:
        return await self.api.save_settings({"timezone": timezone_name})

    async def _resync(self) -> None:
        try:
            data = await self.api.load_bootstrap()
        except ApiError as e:
            logger.warning("Background resync failed: {}", e)
            return
        self.store.dispatch(action(ActionType.SET_ME, data))

    async def close(self) -> None:
        if self._pending:
            results = await asyncio.gather(*self._pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Timer completion write failed: {}", result)
        self.store.flush()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self.timers.ticker.stop()
        self.five_min.ticker.stop()
        if self.persistence is not None:
            self.persistence.flush()
        await self.api.aclose()
