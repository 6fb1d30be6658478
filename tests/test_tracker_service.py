import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.cadence_engine import REST_DAY, WORKOUT_DAY
from errors import NotFoundError
from seed_sample_data import seed
from settings_schema import SettingsSchema
from tracker_service import TrackerService


@pytest.mark.asyncio
async def test_anonymous_preview_serves_first_template(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    view = await service.today_view(None)
    assert view["date"] == "2024-03-04"
    assert view["cadence"] is None
    assert view["template"]["cycle_order"] == 1
    assert len(view["items"]) == 4
    assert "progression" not in view["items"][0]
    assert view["session"] is None


@pytest.mark.asyncio
async def test_no_templates_gives_empty_view(db_file, clock):
    service = TrackerService(db_file, SettingsSchema(), clock)
    view = await service.today_view("alice")
    assert view["template"] is None
    assert view["items"] == []
    assert view["cadence"]["today_type"] == WORKOUT_DAY
    with pytest.raises(ValueError):
        await service.start_workout("alice")


@pytest.mark.asyncio
async def test_unknown_template_is_rejected(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    with pytest.raises(NotFoundError):
        await service.start_workout("alice", template_id=99)


@pytest.mark.asyncio
async def test_three_day_training_cycle(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)

    view = await service.today_view("alice")
    assert view["cadence"]["today_type"] == WORKOUT_DAY
    assert view["template"]["cycle_order"] == 1
    chest = view["items"][0]
    assert chest["exercise"]["name"] == "Chest Press Machine"
    assert chest["progression"] == {"weight": 50.0, "reason": "first time", "status": "maintain"}

    session, is_new = await service.start_workout("alice", bodyweight=185.0)
    assert is_new
    assert session.template_id == view["template"]["id"]

    view = await service.today_view("alice")
    # the open session keeps serving its own template
    assert view["template"]["cycle_order"] == 1
    assert view["cadence"]["today_session_id"] == session.id
    assert view["session"]["id"] == session.id
    assert len(view["exercises"]) == 4
    assert view["progress"]["total"] == 4

    chest_id = chest["exercise"]["id"]
    for _ in range(3):
        await service.lifecycle.log_set(session.id, chest_id, 50.0, 12, 2)
    for record in view["exercises"]:
        await service.lifecycle.toggle_exercise(record["id"], True)
    assert (await service.lifecycle.progress(session.id))["all_completed"]
    await service.lifecycle.finish(session.id)

    # day two alternates to the second template
    clock.advance(days=1)
    view = await service.today_view("alice")
    assert view["cadence"]["today_type"] == WORKOUT_DAY
    assert view["cadence"]["worked_out_yesterday"]
    assert view["template"]["cycle_order"] == 2
    assert view["session"] is None

    item = await service.items.fetch_detail(chest["id"])
    suggestion = await service.suggest_progression("alice", item)
    assert suggestion.weight == 55.0
    assert suggestion.status == "increase"

    second, _ = await service.start_workout("alice")
    assert second.template_id == view["template"]["id"]
    await service.lifecycle.finish(second.id)

    # day three is a rest day, the next template is still offered
    clock.advance(days=1)
    view = await service.today_view("alice")
    assert view["cadence"]["today_type"] == REST_DAY
    assert view["template"]["cycle_order"] == 1
    assert view["items"][0]["progression"]["weight"] == 55.0


@pytest.mark.asyncio
async def test_daily_logs_default_to_local_today(db_file, clock):
    service = TrackerService(db_file, SettingsSchema(), clock)
    # 02:00 UTC is still the previous evening in Chicago
    clock.now = datetime.datetime(2024, 3, 5, 2, 0, tzinfo=datetime.timezone.utc)
    day = await service.log_diet("alice", 140.0, calories=2100.0)
    assert day == datetime.date(2024, 3, 4)
    assert await service.log_bodyweight("alice", 190.0) == datetime.date(2024, 3, 4)
    await service.save_profile("alice", 200.0, 180.0)
    profile = await service.profiles.fetch("alice")
    assert profile.starting_date == datetime.date(2024, 3, 4)
    assert profile.goal_weight == 180.0
