import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from webapp_client.actions import ActionType, action
from webapp_client.persistence import (
    CACHE_VERSION,
    JsonFileCache,
    MemoryCache,
    PersistenceSubscriber,
    record_to_cached_state,
    serialize_state,
)
from webapp_client.reducer import reduce
from webapp_client.state import CheckinView, create_initial_state
from webapp_client.store import Store

ME = {
    "plan": "premium",
    "habits": [{"id": 1, "title": "Read", "type": "boolean", "sort_order": 1}],
    "todayCheckins": {"1": "done"},
}


def booted_state():
    state, _ = reduce(create_initial_state(), action(ActionType.SET_ME, ME))
    return state


def test_record_has_versioned_shape():
    now = datetime(2026, 3, 10, tzinfo=timezone.utc)
    record = serialize_state(booted_state(), now=now)

    assert set(record) == {
        "version", "savedAt", "bootstrapSnapshot", "habits", "checkins",
        "derivedFeatures", "trial", "statsCache",
    }
    assert record["version"] == CACHE_VERSION
    assert record["checkins"] == {"1": {"status": "done"}}
    assert record["derivedFeatures"]["is_premium"] is True


def test_file_cache_round_trip_hydrates_store(tmp_path):
    cache = JsonFileCache(str(tmp_path / "cache.json"))
    cache.save(booted_state())

    cached = cache.load()
    store = Store()
    store.dispatch(action(ActionType.HYDRATE_FROM_CACHE, cached))
    state = store.get_state()

    assert state.from_cache is True
    assert [h.title for h in state.habits] == ["Read"]
    assert state.checkins == {1: CheckinView(status="done")}
    assert state.features.is_premium is True


def test_stale_record_is_dropped(tmp_path):
    path = tmp_path / "cache.json"
    cache = JsonFileCache(str(path))
    old = datetime.now(timezone.utc) - timedelta(days=8)
    path.write_text(json.dumps(serialize_state(booted_state(), now=old)))

    assert cache.load() is None
    assert not path.exists()


def test_other_version_is_dropped(tmp_path):
    path = tmp_path / "cache.json"
    record = serialize_state(booted_state())
    record["version"] = CACHE_VERSION + 1
    path.write_text(json.dumps(record))

    assert JsonFileCache(str(path)).load() is None
    assert not path.exists()


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json")
    assert JsonFileCache(str(path)).load() is None


def test_record_to_cached_state_checks_age():
    now = datetime(2026, 3, 10, tzinfo=timezone.utc)
    record = serialize_state(booted_state(), now=now - timedelta(days=6))
    assert record_to_cached_state(record, timedelta(days=7), now=now) is not None
    assert record_to_cached_state(record, timedelta(days=5), now=now) is None
    assert record_to_cached_state("garbage", timedelta(days=7), now=now) is None


def test_memory_cache_clear():
    cache = MemoryCache()
    cache.save(booted_state())
    assert cache.load()["habits"][0]["title"] == "Read"
    cache.clear()
    assert cache.load() is None


def test_subscriber_skips_until_bootstrap_and_habits():
    cache = MemoryCache()
    subscriber = PersistenceSubscriber(cache, debounce_seconds=0)

    subscriber(create_initial_state(), create_initial_state(), [])
    assert cache.record is None

    state = booted_state()
    subscriber(state, create_initial_state(), [])
    assert cache.record is not None


@pytest.mark.asyncio
async def test_subscriber_debounces_writes():
    saves = []

    class CountingCache(MemoryCache):
        def save(self, state):
            saves.append(state)
            super().save(state)

    store = Store(booted_state())
    subscriber = PersistenceSubscriber(CountingCache(), debounce_seconds=0.05)
    store.subscribe(subscriber)

    for _ in range(3):
        store.dispatch(action(ActionType.HABIT_TAP, {"habit_id": 1}))
        await asyncio.sleep(0)

    assert saves == []
    await asyncio.sleep(0.1)

    assert len(saves) == 1
    assert saves[0] is store.get_state()
