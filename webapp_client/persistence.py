from __future__ import annotations
import asyncio
import json
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence
from loguru import logger

from .actions import Action
from .config import client_settings
from .state import AppState

CACHE_VERSION = 1

# Shape handed to HYDRATE_FROM_CACHE: me, habits, checkins, features, trial, stats
CachedState = Dict[str, Any]


class CachePort(Protocol):
    def save(self, state: AppState) -> None: ...

    def load(self) -> Optional[CachedState]: ...

    def clear(self) -> None: ...


def serialize_state(state: AppState, now: Optional[datetime] = None) -> dict:
    return {
        "version": CACHE_VERSION,
        "savedAt": (now or datetime.now(timezone.utc)).isoformat(),
        "bootstrapSnapshot": dict(state.me) if state.me else None,
        "habits": [h.to_dict() for h in state.habits],
        "checkins": {str(k): v.to_dict() for k, v in state.checkins.items()},
        "derivedFeatures": asdict(state.features),
        "trial": asdict(state.trial),
        "statsCache": dict(state.stats),
    }


def record_to_cached_state(
    record: Any,
    max_age: timedelta,
    now: Optional[datetime] = None,
) -> Optional[CachedState]:
    """None when the record is from another version or older than `max_age`."""
    if not isinstance(record, dict) or record.get("version") != CACHE_VERSION:
        return None
    try:
        saved_at = datetime.fromisoformat(record["savedAt"])
    except (KeyError, TypeError, ValueError):
        return None
    if saved_at.tzinfo is None:
        saved_at = saved_at.replace(tzinfo=timezone.utc)
    if (now or datetime.now(timezone.utc)) - saved_at > max_age:
        return None

    habits = record.get("habits")
    return {
        "me": record.get("bootstrapSnapshot"),
        "habits": habits if isinstance(habits, list) else [],
        "checkins": record.get("checkins") or {},
        "features": record.get("derivedFeatures"),
        "trial": record.get("trial"),
        "stats": record.get("statsCache") or {},
        "saved_at": saved_at,
    }


class JsonFileCache:
    """Single versioned JSON record on disk."""

    def __init__(self, path: Optional[str] = None, max_age_days: Optional[int] = None):
        self.path = Path(path or client_settings.CACHE_PATH)
        days = client_settings.CACHE_MAX_AGE_DAYS if max_age_days is None else max_age_days
        self.max_age = timedelta(days=days)

    def save(self, state: AppState) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(serialize_state(state)), encoding="utf-8")
            tmp.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Cache save failed: {}", e)

    def load(self) -> Optional[CachedState]:
        if not self.path.exists():
            return None
        try:
            record = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Cache load failed, ignoring {}: {}", self.path, e)
            return None

        cached = record_to_cached_state(record, self.max_age)
        if cached is None:
            logger.info("Dropping stale or foreign cache record at {}", self.path)
            self.clear()
        return cached

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class MemoryCache:
    """In-process cache with the same rules as JsonFileCache."""

    def __init__(self, max_age_days: int = 7):
        self.max_age = timedelta(days=max_age_days)
        self.record: Optional[dict] = None

    def save(self, state: AppState) -> None:
        # Round-trip through JSON so both caches store the same thing
        self.record = json.loads(json.dumps(serialize_state(state)))

    def load(self) -> Optional[CachedState]:
        if self.record is None:
            return None
        cached = record_to_cached_state(self.record, self.max_age)
        if cached is None:
            self.clear()
        return cached

    def clear(self) -> None:
        self.record = None


class PersistenceSubscriber:
    """
    Store listener that writes state through to a cache, debounced.

    Nothing is saved until bootstrap data and at least one habit are present,
    so a loading screen never overwrites a good cache.
    """

    def __init__(self, cache: CachePort, debounce_seconds: Optional[float] = None):
        self.cache = cache
        self.debounce = client_settings.SAVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self._pending: Optional[AppState] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    def __call__(self, state: AppState, prev_state: AppState, actions: Sequence[Action]) -> None:
        if not (state.me and state.habits):
            return
        self._pending = state

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return

        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.debounce, self.flush)

    def flush(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        state, self._pending = self._pending, None
        if state is not None:
            self.cache.save(state)
