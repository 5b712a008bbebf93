"""Pure reducer for the mini-app state.

`reduce(state, action)` never mutates its input. It returns the next
`AppState` together with an optional `SideEffect` the caller must carry out
(the reducer itself never talks to the network).
"""
from __future__ import annotations
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple
from loguru import logger

from .actions import Action, ActionType
from .state import (
    AppState,
    CheckinView,
    Features,
    FiveMinState,
    HabitView,
    SideEffect,
    Trial,
    create_initial_state,
    habit_key,
)
from .transitions import next_boolean_intent, status_after

Reduction = Tuple[AppState, Optional[SideEffect]]
Handler = Callable[[AppState, Any], Any]

FIVE_MIN_MODAL = "five-min-rule"

_HANDLERS: Dict[str, Handler] = {}


def handles(kind: ActionType):
    def decorator(fn: Handler) -> Handler:
        _HANDLERS[kind.value] = fn
        return fn
    return decorator


def reduce(state: AppState, action: Action) -> Reduction:
    handler = _HANDLERS.get(action.kind)
    if handler is None:
        logger.warning("Store: unknown action {}", action.kind)
        return state, None

    result = handler(state, action.payload)
    if isinstance(result, tuple):
        return result
    return result, None


# ---------- helpers ----------

def _without(mapping: Mapping[Any, Any], key: Any) -> dict:
    return {k: v for k, v in mapping.items() if k != key}


def _with(mapping: Mapping[Any, Any], key: Any, value: Any) -> dict:
    out = dict(mapping)
    out[key] = value
    return out


def sort_habits(habits: Iterable[HabitView]) -> Tuple[HabitView, ...]:
    return tuple(sorted(habits, key=lambda h: (h.sort_order, h.id if isinstance(h.id, int) else 0)))


def coerce_habit(raw: Any) -> HabitView:
    return raw if isinstance(raw, HabitView) else HabitView.from_payload(raw)


def normalize_checkins(raw: Any) -> Dict[Any, CheckinView]:
    """Accepts `{id: "done"}` (bootstrap) and `{id: {status, ...}}` (cache)."""
    if not isinstance(raw, Mapping):
        return {}
    out: Dict[Any, CheckinView] = {}
    for key, value in raw.items():
        view = value if isinstance(value, CheckinView) else CheckinView.from_payload(value)
        if view is not None:
            out[habit_key(key)] = view
    return out


def _set_habit_loading(state: AppState, habit_id: Any, busy: bool) -> AppState:
    loading = replace(state.loading, by_habit=_with(state.loading.by_habit, habit_id, busy))
    return replace(state, loading=loading)


def _apply_intent(checkins: Mapping[Any, CheckinView], habit_id: Any, intent: str) -> dict:
    if intent == "undo":
        return _without(checkins, habit_id)
    current = checkins.get(habit_id)
    view = replace(current, status=status_after(intent)) if current else CheckinView(status=status_after(intent))
    return _with(checkins, habit_id, view)


# ---------- bootstrap ----------

@handles(ActionType.INIT)
def _init(state: AppState, payload: Any) -> AppState:
    return create_initial_state()


@handles(ActionType.HYDRATE_FROM_CACHE)
def _hydrate(state: AppState, cached: Any) -> AppState:
    # Only server-derived data is hydrated; UI and optimistic state are kept
    if not cached:
        return state
    habits = cached.get("habits") or ()
    features = cached.get("features")
    trial = cached.get("trial")
    return replace(
        state,
        me=cached.get("me") or state.me,
        habits=sort_habits(coerce_habit(h) for h in habits) if habits else state.habits,
        checkins=normalize_checkins(cached["checkins"]) if cached.get("checkins") else state.checkins,
        features=Features.from_dict(features) if isinstance(features, Mapping) else (features or state.features),
        trial=Trial.from_dict(trial) if isinstance(trial, Mapping) else (trial or state.trial),
        stats=cached.get("stats") or state.stats,
        from_cache=True,
    )


@handles(ActionType.SET_ME)
def _set_me(state: AppState, me: Any) -> AppState:
    me = me or {}
    habits = me.get("habits")
    today = me.get("todayCheckins")
    return replace(
        state,
        me=me,
        features=Features.from_me(me),
        trial=Trial.from_me(me),
        habits=sort_habits(coerce_habit(h) for h in habits) if isinstance(habits, list) else state.habits,
        checkins=normalize_checkins(today) if isinstance(today, Mapping) else state.checkins,
        from_cache=False,
    )


@handles(ActionType.SET_HABITS)
def _set_habits(state: AppState, habits: Any) -> AppState:
    return replace(state, habits=sort_habits(coerce_habit(h) for h in habits or ()))


@handles(ActionType.SET_CHECKINS)
def _set_checkins(state: AppState, checkins: Any) -> AppState:
    return replace(state, checkins=normalize_checkins(checkins))


# ---------- habit CRUD ----------

@handles(ActionType.ADD_HABIT)
def _add_habit(state: AppState, habit: Any) -> AppState:
    return replace(state, habits=sort_habits(state.habits + (coerce_habit(habit),)))


@handles(ActionType.UPDATE_HABIT)
def _update_habit(state: AppState, patch: Any) -> AppState:
    habit_id = habit_key(patch["id"])
    habits = []
    for habit in state.habits:
        if habit.id == habit_id:
            merged = {**habit.to_dict(), **patch}
            habit = HabitView.from_payload(merged)
        habits.append(habit)
    return replace(state, habits=sort_habits(habits))


@handles(ActionType.DELETE_HABIT)
def _delete_habit(state: AppState, habit_id: Any) -> AppState:
    habit_id = habit_key(habit_id)
    return replace(
        state,
        habits=tuple(h for h in state.habits if h.id != habit_id),
        checkins=_without(state.checkins, habit_id),
    )


@handles(ActionType.REORDER_HABITS)
def _reorder(state: AppState, order: Any) -> AppState:
    new_order = {habit_key(item["id"]): item["sort_order"] for item in order or ()}
    habits = [
        replace(h, sort_order=new_order[h.id]) if h.id in new_order else h
        for h in state.habits
    ]
    return replace(state, habits=sort_habits(habits))


# ---------- boolean tap ----------

@handles(ActionType.HABIT_TAP)
def _habit_tap(state: AppState, payload: Any) -> AppState:
    """Local-only preview of the next boolean status.

    Nothing is sent to the server and no snapshot is taken, so UI code must
    record taps through `IntentRunner.run`. Ignored while a write for the
    habit is in flight.
    """
    habit_id = payload["habit_id"]
    if state.optimistic.in_flight.get(habit_id):
        return state
    current = state.checkins.get(habit_id)
    intent = next_boolean_intent(current.status if current else "none")
    return replace(state, checkins=_apply_intent(state.checkins, habit_id, intent))


# ---------- counter ----------
# Counter and timer actions only move the local value. The status stays
# whatever the server last confirmed until a `done` intent goes through.

@handles(ActionType.COUNTER_INCREMENT)
def _counter_increment(state: AppState, payload: Any) -> AppState:
    habit_id = payload["habit_id"]
    prev = state.checkins.get(habit_id) or CheckinView(counter_value=0)
    value = (prev.counter_value or 0) + (payload.get("step") or 1)
    return replace(state, checkins=_with(state.checkins, habit_id, replace(prev, counter_value=value)))


@handles(ActionType.COUNTER_SET)
def _counter_set(state: AppState, payload: Any) -> AppState:
    habit_id = payload["habit_id"]
    value = max(0, int(payload["value"]))
    prev = state.checkins.get(habit_id) or CheckinView()
    return replace(state, checkins=_with(state.checkins, habit_id, replace(prev, counter_value=value)))


# ---------- timer ----------

@handles(ActionType.TIMER_START)
def _timer_start(state: AppState, payload: Any) -> AppState:
    habit_id = payload["habit_id"]
    prev = state.checkins.get(habit_id) or CheckinView(timer_elapsed=0)
    return replace(state, checkins=_with(state.checkins, habit_id, replace(prev, timer_running=True)))


@handles(ActionType.TIMER_STOP)
def _timer_stop(state: AppState, payload: Any) -> AppState:
    habit_id = payload["habit_id"]
    prev = state.checkins.get(habit_id)
    if prev is None:
        return state
    return replace(state, checkins=_with(state.checkins, habit_id, replace(prev, timer_running=False)))


@handles(ActionType.TIMER_TICK)
def _timer_tick(state: AppState, payload: Any) -> AppState:
    habit_id = payload["habit_id"]
    prev = state.checkins.get(habit_id)
    if prev is None:
        return state
    view = replace(prev, timer_elapsed=payload["elapsed"])
    return replace(state, checkins=_with(state.checkins, habit_id, view))


@handles(ActionType.TIMER_RESET)
def _timer_reset(state: AppState, payload: Any) -> AppState:
    habit_id = payload["habit_id"]
    prev = state.checkins.get(habit_id) or CheckinView()
    view = replace(prev, timer_elapsed=0, timer_running=False)
    return replace(state, checkins=_with(state.checkins, habit_id, view))


# ---------- optimistic sync ----------

@handles(ActionType.OPTIMISTIC_APPLY)
def _optimistic_apply(state: AppState, payload: Any) -> AppState:
    habit_id, intent = payload["habit_id"], payload["intent"]
    opt = state.optimistic
    # None is a real snapshot: rollback must remove the view again
    optimistic = replace(
        opt,
        in_flight=_with(opt.in_flight, habit_id, True),
        snapshots=_with(opt.snapshots, habit_id, state.checkins.get(habit_id)),
    )
    state = replace(state, checkins=_apply_intent(state.checkins, habit_id, intent), optimistic=optimistic)
    return _set_habit_loading(state, habit_id, True)


@handles(ActionType.OPTIMISTIC_ROLLBACK)
def _optimistic_rollback(state: AppState, payload: Any) -> AppState:
    habit_id = payload["habit_id"]
    opt = state.optimistic
    snapshot = opt.snapshots.get(habit_id)
    if snapshot is None:
        checkins = _without(state.checkins, habit_id)
    else:
        checkins = _with(state.checkins, habit_id, snapshot)

    optimistic = replace(
        opt,
        in_flight=_without(opt.in_flight, habit_id),
        snapshots=_without(opt.snapshots, habit_id),
        queued=_without(opt.queued, habit_id),
    )
    state = replace(state, checkins=checkins, optimistic=optimistic)
    return _set_habit_loading(state, habit_id, False)


@handles(ActionType.OPTIMISTIC_FINALIZE)
def _optimistic_finalize(state: AppState, payload: Any) -> Reduction:
    habit_id, server_status = payload["habit_id"], payload.get("server_status")
    opt = state.optimistic

    if server_status in ("done", "skip"):
        current = state.checkins.get(habit_id)
        view = replace(current, status=server_status) if current else CheckinView(status=server_status)
        checkins = _with(state.checkins, habit_id, view)
    else:
        checkins = _without(state.checkins, habit_id)

    queued = opt.queued.get(habit_id)
    optimistic = replace(
        opt,
        in_flight=_without(opt.in_flight, habit_id),
        snapshots=_without(opt.snapshots, habit_id),
        queued=_without(opt.queued, habit_id),
    )
    state = _set_habit_loading(replace(state, checkins=checkins, optimistic=optimistic), habit_id, False)

    effect = SideEffect(kind="queued_intent", habit_id=habit_id, intent=queued) if queued else None
    return state, effect


@handles(ActionType.QUEUE_INTENT)
def _queue_intent(state: AppState, payload: Any) -> AppState:
    habit_id, intent = payload["habit_id"], payload["intent"]
    optimistic = replace(state.optimistic, queued=_with(state.optimistic.queued, habit_id, intent))
    return replace(state, optimistic=optimistic)


# ---------- five-minute nudge ----------

@handles(ActionType.FIVE_MIN_SHOW)
def _five_min_show(state: AppState, payload: Any) -> AppState:
    ui = replace(state.ui, active_modal=FIVE_MIN_MODAL, five_min=FiveMinState(habit_id=payload["habit_id"]))
    return replace(state, ui=ui)


@handles(ActionType.FIVE_MIN_ACCEPT)
def _five_min_accept(state: AppState, payload: Any) -> AppState:
    ui = replace(state.ui, active_modal=None, five_min=replace(state.ui.five_min, running=True))
    return replace(state, ui=ui)


@handles(ActionType.FIVE_MIN_TICK)
def _five_min_tick(state: AppState, payload: Any) -> AppState:
    remaining = max(0, state.ui.five_min.remaining - 1)
    five_min = replace(state.ui.five_min, remaining=remaining, running=remaining > 0)
    return replace(state, ui=replace(state.ui, five_min=five_min))


@handles(ActionType.FIVE_MIN_DONE)
@handles(ActionType.FIVE_MIN_DISMISS)
def _five_min_reset(state: AppState, payload: Any) -> AppState:
    return replace(state, ui=replace(state.ui, active_modal=None, five_min=FiveMinState()))


# ---------- misc ----------

@handles(ActionType.SET_LOADING)
def _set_loading(state: AppState, payload: Any) -> AppState:
    return replace(state, loading=replace(state.loading, **payload))


@handles(ActionType.SET_ERROR)
def _set_error(state: AppState, error: Any) -> AppState:
    return replace(state, error=error)


@handles(ActionType.CLEAR_ERROR)
def _clear_error(state: AppState, payload: Any) -> AppState:
    return replace(state, error=None)


@handles(ActionType.SET_STATS)
def _set_stats(state: AppState, payload: Any) -> AppState:
    return replace(state, stats={**state.stats, **payload})
