from datetime import date, timedelta

from habitsync.services.streak import (
    build_status_map,
    calculate_current_streak,
    calculate_completion_for_range,
)
from habitsync.services.stats_service import build_heatmap, clamp_heatmap_days, completion_level

TODAY = date(2026, 3, 10)


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


# ======================================================================
# Streak
# ======================================================================

def test_streak_counts_consecutive_done_days():
    checkins = [(days_ago(0), "done"), (days_ago(1), "done"), (days_ago(2), "skip")]
    assert calculate_current_streak(checkins, TODAY) == 2


def test_streak_breaks_when_today_is_missing():
    checkins = [(days_ago(1), "done"), (days_ago(2), "done")]
    assert calculate_current_streak(checkins, TODAY) == 0


def test_streak_stops_at_skip():
    checkins = [(days_ago(0), "done"), (days_ago(1), "skip"), (days_ago(2), "done")]
    assert calculate_current_streak(checkins, TODAY) == 1


def test_streak_stops_at_gap():
    checkins = [(days_ago(0), "done"), (days_ago(2), "done")]
    assert calculate_current_streak(checkins, TODAY) == 1


def test_status_map_accepts_iso_strings():
    status_map = build_status_map([("2026-03-10", "done")])
    assert status_map == {TODAY: "done"}


def test_completion_for_range_rounds_percentage():
    checkins = [(days_ago(0), "done"), (days_ago(3), "done"), (days_ago(4), "skip")]
    assert calculate_completion_for_range(checkins, 7, TODAY) == 29  # 2/7
    # Outside of the window
    assert calculate_completion_for_range([(days_ago(10), "done")], 7, TODAY) == 0
    assert calculate_completion_for_range(checkins, 0, TODAY) == 0


# ======================================================================
# Heatmap
# ======================================================================

def test_completion_levels():
    assert completion_level(3, 3) == 3
    assert completion_level(2, 3) == 2
    assert completion_level(1, 3) == 1
    assert completion_level(0, 3) == 0
    assert completion_level(0, 0) == 0


def test_heatmap_has_one_row_per_day_without_checkins():
    cells = build_heatmap(days_ago(6), TODAY, [days_ago(30)], {})
    assert len(cells) == 7
    assert [c.date for c in cells] == [days_ago(n) for n in range(6, -1, -1)]
    assert all(c.level == 0 and c.total == 1 for c in cells)


def test_heatmap_total_counts_habits_created_by_that_day():
    created = [days_ago(10), days_ago(10), days_ago(1)]
    cells = build_heatmap(days_ago(2), TODAY, created, {days_ago(2): 2, TODAY: 2})

    by_day = {c.date: c for c in cells}
    assert by_day[days_ago(2)].total == 2
    assert by_day[days_ago(2)].level == 3
    assert by_day[TODAY].total == 3
    assert by_day[TODAY].level == 2
    assert by_day[days_ago(1)].level == 0


def test_heatmap_without_habits_is_level_zero():
    cells = build_heatmap(days_ago(1), TODAY, [], {TODAY: 1})
    assert all(c.total == 0 and c.completion == 0 and c.level == 0 for c in cells)


def test_heatmap_cell_serializes_iso_date():
    cell = build_heatmap(TODAY, TODAY, [TODAY], {TODAY: 1})[0]
    assert cell.to_dict() == {"date": "2026-03-10", "done": 1, "total": 1, "completion": 1.0, "level": 3}


def test_clamp_heatmap_days():
    assert clamp_heatmap_days(None) == 365
    assert clamp_heatmap_days(1) == 7
    assert clamp_heatmap_days(90) == 90
    assert clamp_heatmap_days(1000) == 365
