from datetime import date

import pytest

from app.fasts import FastService
from app.schemas import FastIn, UpdateProfileIn
from app.users import UserService, fasting_streaks, percent, week_bounds

from .conftest import bearer, register


def log(fasts, user, day, observed=True):
    fast = fasts.create(user.id, FastIn(fast_date=date(2024, 3, day)))
    if not observed:
        fasts.set_status(fast.id, user.id, False)
    return fast


@pytest.mark.parametrize("observed, expected", [
    ([], (0, 0)),
    ([True], (1, 1)),
    ([True, True, False, True], (1, 2)),
    ([True, True, True, False], (0, 3)),
    ([False, True, True], (2, 2)),
])
def test_fasting_streaks(observed, expected):
    assert fasting_streaks(observed) == expected


def test_percent_rounds_half_up():
    assert percent(0, 0) == 0
    assert percent(1, 8) == 13
    assert percent(5, 6) == 83
    assert percent(3, 2) == 150


@pytest.mark.parametrize("today, start, end", [
    (date(2024, 3, 10), date(2024, 3, 10), date(2024, 3, 16)),   # Sunday
    (date(2024, 3, 11), date(2024, 3, 10), date(2024, 3, 16)),
    (date(2024, 3, 16), date(2024, 3, 10), date(2024, 3, 16)),   # Saturday
    (date(2024, 3, 17), date(2024, 3, 17), date(2024, 3, 23)),
])
def test_week_runs_sunday_to_saturday(today, start, end):
    assert week_bounds(today) == (start, end)


def test_stats_and_weekly_goal(db, clock, user):
    fasts = FastService(db, clock)
    svc = UserService(db, clock)
    for day in (1, 2):
        log(fasts, user, day)
    log(fasts, user, 3, observed=False)
    for day in (9, 10, 11):
        log(fasts, user, day)

    stats = svc.stats(user.id)
    assert stats.total_fasts == 6
    assert stats.completed_fasts == 5
    assert stats.remaining_fasts == 1
    assert stats.completion_rate == 83
    assert stats.current_streak == 3
    assert stats.longest_streak == 3
    assert stats.last_fast_date == date(2024, 3, 11)

    goal = svc.goal_progress(user)
    assert goal.weekly_goal == 2
    assert goal.current_week_completed == 2
    assert goal.week_progress == 100

    # a missed fast ends the current run but not the longest
    log(fasts, user, 12, observed=False)
    stats = svc.stats(user.id)
    assert stats.current_streak == 0
    assert stats.longest_streak == 3
    assert svc.goal_progress(user).current_week_completed == 2


def test_stats_for_new_user(db, clock, user):
    stats = UserService(db, clock).stats(user.id)
    assert stats.total_fasts == 0
    assert stats.completion_rate == 0
    assert stats.last_fast_date is None


def test_update_profile_skips_nulls_but_clears_avatar(db, clock, user):
    svc = UserService(db, clock)
    svc.update_profile(user, UpdateProfileIn(avatar_url="https://cdn.example.com/a.png", fast_goal_per_week=5))

    out = svc.update_profile(user, UpdateProfileIn(first_name=None, avatar_url=None))
    assert out.first_name == "Amina"
    assert out.avatar_url is None
    assert out.fast_goal_per_week == 5
    assert out.goal.weekly_goal == 5


# ---- routes ----
def test_profile_defaults(client):
    auth = bearer(register(client))
    me = client.get("/api/users/me", headers=auth)
    assert me.status_code == 200
    body = me.json()
    assert body["timezone"] == "UTC"
    assert body["preferred_language"] == "en"
    assert body["fast_goal_per_week"] == 2
    assert body["notification_enabled"] is True
    assert body["stats"]["total_fasts"] == 0
    assert body["goal"] == {"weekly_goal": 2, "current_week_completed": 0, "week_progress": 0}


def test_profile_update_and_alias(client):
    auth = bearer(register(client))
    res = client.patch("/api/users/profile", headers=auth, json={
        "first_name": "Aminah",
        "timezone": "Asia/Riyadh",
        "preferred_language": "ar",
        "fast_goal_per_week": 4,
        "notification_enabled": False,
        "avatar_url": "https://cdn.example.com/a.png",
    })
    assert res.status_code == 200, res.text

    # the fixed clock puts "today" in the current week
    assert client.post("/api/fasts", headers=auth, json={}).status_code == 201

    body = client.get("/api/users/profile", headers=auth).json()
    assert body["first_name"] == "Aminah"
    assert body["timezone"] == "Asia/Riyadh"
    assert body["preferred_language"] == "ar"
    assert body["notification_enabled"] is False
    assert body["avatar_url"] == "https://cdn.example.com/a.png"
    assert body["stats"]["last_fast_date"] == "2024-03-11"
    assert body["goal"] == {"weekly_goal": 4, "current_week_completed": 1, "week_progress": 25}
    assert client.get("/api/users/me", headers=auth).json() == body


@pytest.mark.parametrize("body", [
    {"fast_goal_per_week": 0},
    {"fast_goal_per_week": 8},
    {"preferred_language": "de"},
    {"avatar_url": "not a url"},
    {"first_name": "A"},
])
def test_profile_validation(client, body):
    auth = bearer(register(client))
    assert client.patch("/api/users/me", headers=auth, json=body).status_code == 422


def test_profile_needs_a_token(client):
    assert client.get("/api/users/me").status_code == 401
