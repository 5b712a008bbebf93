from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from math import ceil
from typing import Any, Dict, Mapping, Optional, Tuple


def habit_key(raw: Any) -> Any:
    """JSON object keys arrive as strings; habit ids are ints."""
    if isinstance(raw, str) and raw.lstrip("-").isdigit():
        return int(raw)
    return raw


@dataclass(frozen=True)
class CheckinView:
    """Client-side projection of one habit's check-in for today."""
    status: str = "none"
    counter_value: Optional[int] = None
    timer_elapsed: Optional[int] = None
    timer_running: bool = False

    @classmethod
    def from_payload(cls, value: Any) -> Optional["CheckinView"]:
        # Bootstrap sends "done"; cached state sends the full dict
        if isinstance(value, str):
            return cls(status=value)
        if isinstance(value, Mapping):
            return cls(
                status=value.get("status") or "none",
                counter_value=value.get("counterValue", value.get("counter_value")),
                timer_elapsed=value.get("timerElapsed", value.get("timer_elapsed")),
                timer_running=bool(value.get("timerRunning", value.get("timer_running", False))),
            )
        return None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"status": self.status}
        if self.counter_value is not None:
            data["counterValue"] = self.counter_value
        if self.timer_elapsed is not None:
            data["timerElapsed"] = self.timer_elapsed
        if self.timer_running:
            data["timerRunning"] = True
        return data


@dataclass(frozen=True)
class HabitView:
    id: int
    title: str
    kind: str = "boolean"
    sort_order: int = 0
    counter_target: Optional[int] = None
    counter_step: Optional[int] = None
    timer_duration: Optional[int] = None
    streak: int = 0
    active: bool = True

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "HabitView":
        sort_order = raw.get("sort_order")
        return cls(
            id=habit_key(raw["id"]),
            title=raw.get("title") or "",
            kind=raw.get("type") or raw.get("kind") or "boolean",
            sort_order=sort_order if isinstance(sort_order, int) else 0,
            counter_target=raw.get("counterTarget"),
            counter_step=raw.get("counterStep"),
            timer_duration=raw.get("timerDuration"),
            streak=raw.get("streak") or 0,
            active=raw.get("active", True) is not False,
        )

    def target_reached(self, view: Optional["CheckinView"]) -> bool:
        """True when a counter/timer view has hit its goal (boolean habits never do)."""
        if view is None:
            return False
        if self.kind == "counter" and self.counter_target:
            return (view.counter_value or 0) >= self.counter_target
        if self.kind == "timer" and self.timer_duration:
            return (view.timer_elapsed or 0) >= self.timer_duration
        return False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.kind,
            "sort_order": self.sort_order,
            "counterTarget": self.counter_target,
            "counterStep": self.counter_step,
            "timerDuration": self.timer_duration,
            "streak": self.streak,
            "active": self.active,
        }


@dataclass(frozen=True)
class Features:
    is_premium: bool = False
    unlimited_habits: bool = False
    habit_limit: Optional[int] = 3
    heatmap365: bool = False

    @classmethod
    def from_me(cls, me: Optional[Mapping[str, Any]]) -> "Features":
        me = me or {}
        plan = me.get("plan") or (me.get("user") or {}).get("plan") or "free"
        premium = plan == "premium"
        flags = me.get("features") or {}
        return cls(
            is_premium=bool(flags.get("isPremium", premium)),
            unlimited_habits=bool(flags.get("unlimitedHabits", premium)),
            habit_limit=flags.get("habitLimit", None if premium else 3),
            heatmap365=bool(flags.get("heatmap365", premium)),
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Features":
        return cls(**{k: raw[k] for k in ("is_premium", "unlimited_habits", "habit_limit", "heatmap365") if k in raw})


@dataclass(frozen=True)
class Trial:
    active: bool = False
    days_left: int = 0
    trial_until: Optional[str] = None

    @classmethod
    def from_me(cls, me: Optional[Mapping[str, Any]], now: Optional[datetime] = None) -> "Trial":
        me = me or {}
        raw = me.get("trialUntil") or (me.get("user") or {}).get("trial_until")
        if not raw:
            return cls()
        try:
            until = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            return cls()
        if until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        diff = (until - (now or datetime.now(timezone.utc))).total_seconds()
        return cls(
            active=diff > 0,
            days_left=max(0, ceil(diff / 86400)),
            trial_until=until.isoformat(),
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Trial":
        return cls(**{k: raw[k] for k in ("active", "days_left", "trial_until") if k in raw})


@dataclass(frozen=True)
class OptimisticState:
    in_flight: Mapping[Any, bool] = field(default_factory=dict)
    queued: Mapping[Any, str] = field(default_factory=dict)
    # A snapshot of None means "no view existed" and must be restored as such
    snapshots: Mapping[Any, Optional[CheckinView]] = field(default_factory=dict)


FIVE_MIN_SECONDS = 300


@dataclass(frozen=True)
class FiveMinState:
    habit_id: Any = None
    remaining: int = FIVE_MIN_SECONDS
    running: bool = False


@dataclass(frozen=True)
class UiState:
    active_modal: Optional[str] = None  # "five-min-rule" | None
    five_min: FiveMinState = field(default_factory=FiveMinState)


@dataclass(frozen=True)
class LoadingState:
    me: bool = False
    habits: bool = False
    by_habit: Mapping[Any, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncFailure:
    """A rolled-back intent the user may retry."""
    habit_id: Any
    intent: str
    kind: str  # "network" | "http"
    message: str
    status: Optional[int] = None
    retryable: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SideEffect:
    """Work a reduction asks its caller to perform outside the reducer."""
    kind: str
    habit_id: Any
    intent: str


@dataclass(frozen=True)
class AppState:
    me: Optional[Mapping[str, Any]] = None
    habits: Tuple[HabitView, ...] = ()
    checkins: Mapping[Any, CheckinView] = field(default_factory=dict)
    features: Features = field(default_factory=Features)
    trial: Trial = field(default_factory=Trial)
    optimistic: OptimisticState = field(default_factory=OptimisticState)
    ui: UiState = field(default_factory=UiState)
    stats: Mapping[str, Any] = field(default_factory=dict)
    loading: LoadingState = field(default_factory=LoadingState)
    error: Optional[Any] = None
    from_cache: bool = False

    def find_habit(self, habit_id: Any) -> Optional[HabitView]:
        return next((h for h in self.habits if h.id == habit_id), None)


def create_initial_state() -> AppState:
    return AppState()
