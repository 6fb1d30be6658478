import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from seed_sample_data import seed
from settings_schema import SettingsSchema
from tracker_service import TrackerService

UTC = datetime.timezone.utc


def at(day: datetime.date, hour: int = 15) -> datetime.datetime:
    return datetime.datetime(day.year, day.month, day.day, hour, tzinfo=UTC)


async def add_session(service: TrackerService, user: str, day: datetime.date) -> int:
    return await service.sessions.create_with_exercises(user, 1, day, at(day), [])


@pytest.mark.asyncio
async def test_streaks(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    today = service.today()
    for offset in (1, 2, 4):
        await add_session(service, "alice", today - datetime.timedelta(days=offset))
    await service.log_diet("alice", 150.0)
    await service.log_diet("alice", 130.0, logged_on=today - datetime.timedelta(days=1))

    streaks = await service.statistics.streaks("alice")
    assert streaks["workout"] == {"streak": 2, "last_date": "2024-03-03"}
    assert streaks["diet"] == {"streak": 2, "last_date": "2024-03-04"}

    empty = await service.statistics.streaks("bob")
    assert empty["workout"] == {"streak": 0, "last_date": None}


@pytest.mark.asyncio
async def test_weight_progress(db_file, clock):
    service = TrackerService(db_file, SettingsSchema(), clock)
    missing = await service.statistics.weight_progress("alice")
    assert missing["latest_weight"] is None
    assert missing["progress_to_goal"] is None

    await service.save_profile("alice", 200.0, 180.0)
    await service.log_bodyweight("alice", 195.0, logged_on=datetime.date(2024, 3, 1))
    await service.log_bodyweight("alice", 190.0)
    progress = await service.statistics.weight_progress("alice")
    assert progress["latest_weight"] == 190.0
    assert progress["latest_date"] == "2024-03-04"
    assert progress["total_change"] == 10.0
    assert progress["progress_to_goal"] == 50.0

    await service.log_bodyweight("alice", 175.0)
    assert (await service.statistics.weight_progress("alice"))["progress_to_goal"] == 100.0

    await service.log_bodyweight("alice", 205.0)
    result = await service.statistics.weight_progress("alice")
    assert result["progress_to_goal"] == 0.0
    assert result["total_change"] == -5.0


@pytest.mark.asyncio
async def test_weight_progress_without_goal(db_file, clock):
    service = TrackerService(db_file, SettingsSchema(), clock)
    await service.save_profile("alice", 200.0)
    await service.log_bodyweight("alice", 198.5)
    result = await service.statistics.weight_progress("alice")
    assert result["total_change"] == 1.5
    assert result["progress_to_goal"] is None


@pytest.mark.asyncio
async def test_user_stats(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    today = service.today()
    sid = await add_session(service, "alice", today)
    await service.sets.add(sid, 1, 20.0, 10, is_warmup=True)
    await service.sets.add(sid, 1, 50.0, 10)
    await service.sets.add(sid, 1, 50.0, 9)
    await add_session(service, "alice", today - datetime.timedelta(days=10))
    await service.log_diet("alice", 150.0, calories=2000.0)
    await service.log_diet("alice", 100.0, logged_on=today - datetime.timedelta(days=1))

    stats = await service.statistics.user_stats("alice")
    assert stats["workout_days"] == 2
    assert stats["total_workouts"] == 2
    assert stats["total_sets"] == 2
    assert stats["diet_days"] == 2
    assert stats["total_protein"] == 250.0
    assert stats["total_calories"] == 2000.0
    assert stats["days_with_calories"] == 1

    week = await service.statistics.user_stats(
        "alice", today - datetime.timedelta(days=6), today
    )
    assert week["workout_days"] == 1


@pytest.mark.asyncio
async def test_monthly_breakdown(db_file, clock):
    await seed(db_file)
    clock.now = datetime.datetime(2024, 3, 15, 15, 0, tzinfo=UTC)
    service = TrackerService(db_file, SettingsSchema(), clock)
    await add_session(service, "alice", datetime.date(2024, 3, 5))
    await add_session(service, "alice", datetime.date(2024, 3, 6))
    await add_session(service, "alice", datetime.date(2024, 1, 20))
    await service.log_diet("alice", 150.0, calories=2000.0, logged_on=datetime.date(2024, 3, 1))
    await service.log_diet("alice", 0.0, calories=1800.0, logged_on=datetime.date(2024, 3, 2))
    await service.log_diet("alice", 120.0, logged_on=datetime.date(2024, 2, 10))
    await service.log_bodyweight("alice", 200.0, logged_on=datetime.date(2024, 3, 10))
    await service.log_bodyweight("alice", 202.0, logged_on=datetime.date(2024, 3, 2))

    rows = await service.statistics.monthly_breakdown("alice", months=2)
    assert [r["month_label"] for r in rows] == ["Mar 2024", "Feb 2024"]
    march, february = rows
    assert march["month_start"] == "2024-03-01"
    assert march["workout_days"] == 2
    assert march["diet_days"] == 2
    assert march["total_protein"] == 150.0
    assert march["total_calories"] == 3800.0
    assert march["days_with_protein"] == 1
    assert march["days_with_calories"] == 2
    assert march["start_weight"] == 202.0
    assert march["end_weight"] == 200.0

    assert february["workout_days"] == 0
    assert february["diet_days"] == 1
    assert february["total_calories"] == 0.0
    assert february["days_with_calories"] == 0
    assert february["start_weight"] is None


@pytest.mark.asyncio
async def test_monthly_breakdown_without_data(db_file, clock):
    service = TrackerService(db_file, SettingsSchema(), clock)
    rows = await service.statistics.monthly_breakdown("alice", months=3)
    assert len(rows) == 3
    assert all(r["workout_days"] == 0 and r["end_weight"] is None for r in rows)
    with pytest.raises(ValueError):
        await service.statistics.monthly_breakdown("alice", months=0)
