from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ActionType(str, Enum):
    # Bootstrap
    INIT = "INIT"
    HYDRATE_FROM_CACHE = "HYDRATE_FROM_CACHE"
    SET_ME = "SET_ME"
    SET_HABITS = "SET_HABITS"
    SET_CHECKINS = "SET_CHECKINS"

    # Habit CRUD
    ADD_HABIT = "ADD_HABIT"
    UPDATE_HABIT = "UPDATE_HABIT"
    DELETE_HABIT = "DELETE_HABIT"
    REORDER_HABITS = "REORDER_HABITS"

    # Boolean tap
    HABIT_TAP = "HABIT_TAP"

    # Counter
    COUNTER_INCREMENT = "COUNTER_INCREMENT"
    COUNTER_SET = "COUNTER_SET"

    # Timer
    TIMER_START = "TIMER_START"
    TIMER_STOP = "TIMER_STOP"
    TIMER_TICK = "TIMER_TICK"
    TIMER_RESET = "TIMER_RESET"

    # Optimistic sync
    OPTIMISTIC_APPLY = "OPTIMISTIC_APPLY"
    OPTIMISTIC_ROLLBACK = "OPTIMISTIC_ROLLBACK"
    OPTIMISTIC_FINALIZE = "OPTIMISTIC_FINALIZE"
    QUEUE_INTENT = "QUEUE_INTENT"

    # Five-minute nudge
    FIVE_MIN_SHOW = "FIVE_MIN_SHOW"
    FIVE_MIN_ACCEPT = "FIVE_MIN_ACCEPT"
    FIVE_MIN_TICK = "FIVE_MIN_TICK"
    FIVE_MIN_DONE = "FIVE_MIN_DONE"
    FIVE_MIN_DISMISS = "FIVE_MIN_DISMISS"

    # Misc
    SET_LOADING = "SET_LOADING"
    SET_ERROR = "SET_ERROR"
    CLEAR_ERROR = "CLEAR_ERROR"
    SET_STATS = "SET_STATS"


@dataclass(frozen=True)
class Action:
    type: Union[ActionType, str]
    payload: Any = None

    @property
    def kind(self) -> str:
        return self.type.value if isinstance(self.type, ActionType) else str(self.type)


def action(type_: Union[ActionType, str], payload: Any = None) -> Action:
    return Action(type=type_, payload=payload)
