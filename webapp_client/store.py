from __future__ import annotations
import asyncio
from typing import Any, Callable, List, Optional, Sequence
from loguru import logger

from .actions import Action
from .reducer import reduce
from .state import AppState, SideEffect, create_initial_state

Listener = Callable[[AppState, AppState, Sequence[Action]], None]
Middleware = Callable[["Store", Action], Optional[Action]]


class Store:
    """
    Explicit state container for one mini-app session.

    Every dispatch runs the action through the middleware chain and the pure
    reducer. Listeners hear about the result once per event-loop turn: all
    actions dispatched in the same turn are delivered together, with the
    state as it was before the first of them.
    """

    def __init__(self, initial_state: Optional[AppState] = None):
        self._state = initial_state or create_initial_state()
        self._prev_state = self._state
        self._listeners: List[Listener] = []
        self._middleware: List[Middleware] = []
        self._batch: List[Action] = []
        self._notify_scheduled = False

    def get_state(self) -> AppState:
        return self._state

    def get_prev_state(self) -> AppState:
        """State before the latest notified batch."""
        return self._prev_state

    def dispatch(self, action: Action) -> Optional[SideEffect]:
        if action is None or not getattr(action, "type", None):
            raise ValueError("dispatch requires an action with a type")

        current: Optional[Action] = action
        for middleware in self._middleware:
            current = middleware(self, current)
            if current is None:
                return None

        next_state, effect = reduce(self._state, current)
        self._state = next_state
        self._batch.append(current)
        self._schedule_flush()
        return effect

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        if not callable(listener):
            raise TypeError("subscribe expects a callable")
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def use(self, middleware: Middleware) -> "Store":
        if not callable(middleware):
            raise TypeError("middleware must be callable")
        self._middleware.append(middleware)
        return self

    def is_in_flight(self, habit_id: Any) -> bool:
        return bool(self._state.optimistic.in_flight.get(habit_id))

    def get_checkin_status(self, habit_id: Any) -> str:
        view = self._state.checkins.get(habit_id)
        return view.status if view else "none"

    def _schedule_flush(self) -> None:
        if self._notify_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync callers, scripts): notify right away
            self.flush()
            return
        self._notify_scheduled = True
        loop.call_soon(self.flush)

    def flush(self) -> None:
        """Deliver the pending batch now. Safe to call when nothing is pending."""
        self._notify_scheduled = False
        if not self._batch:
            return

        actions, self._batch = self._batch, []
        prev, state = self._prev_state, self._state
        self._prev_state = state
        if prev is state:
            return

        for listener in list(self._listeners):
            try:
                listener(state, prev, actions)
            except Exception as e:
                logger.exception("Store listener failed: {}", e)


# ---------- selectors ----------

def pending_habits(state: AppState) -> list:
    """Active habits with nothing recorded today."""
    out = []
    for habit in state.habits:
        view = state.checkins.get(habit.id)
        if habit.active and (view is None or view.status == "none"):
            out.append(habit)
    return out


def done_count(state: AppState) -> int:
    return sum(1 for h in state.habits if (v := state.checkins.get(h.id)) and v.status == "done")


def five_min_active(state: AppState) -> bool:
    five_min = state.ui.five_min
    return five_min.running and five_min.remaining > 0
