import asyncio
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from errors import DuplicateEntryError, NotFoundError, SessionClosedError
from seed_sample_data import seed
from settings_schema import SettingsSchema
from tracker_service import TrackerService


@pytest.mark.asyncio
async def test_start_is_idempotent(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    session, is_new = await service.lifecycle.start("alice", 1)
    assert is_new
    clock.advance(hours=2)
    again, is_new = await service.lifecycle.start("alice", 2)
    assert not is_new
    assert again.id == session.id
    assert again.template_id == 1
    records = await service.lifecycle.exercises(session.id)
    assert len(records) == 4


@pytest.mark.asyncio
async def test_concurrent_start_creates_one_session(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    results = await asyncio.gather(
        service.lifecycle.start("alice", 1),
        service.lifecycle.start("alice", 1),
    )
    ids = {session.id for session, _ in results}
    assert len(ids) == 1
    assert sum(1 for _, is_new in results if is_new) == 1
    assert len(await service.lifecycle.exercises(ids.pop())) == 4


@pytest.mark.asyncio
async def test_progress_and_toggle(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    session, _ = await service.lifecycle.start("alice", 1)
    progress = await service.lifecycle.progress(session.id)
    assert progress == {"completed": 0, "total": 4, "fraction": 0.0, "all_completed": False}

    records = await service.lifecycle.exercises(session.id)
    for record in records:
        toggled = await service.lifecycle.toggle_exercise(record.id, True)
        assert toggled.completed_at == clock.now
    progress = await service.lifecycle.progress(session.id)
    assert progress["all_completed"]
    assert progress["fraction"] == 1.0

    await service.lifecycle.toggle_exercise(records[0].id, False)
    progress = await service.lifecycle.progress(session.id)
    assert progress["completed"] == 3
    assert progress["fraction"] == 0.75


@pytest.mark.asyncio
async def test_progress_without_exercises(db_file, clock):
    service = TrackerService(db_file, SettingsSchema(), clock)
    progress = await service.lifecycle.progress(42)
    assert progress["total"] == 0
    assert progress["fraction"] == 0.0
    assert not progress["all_completed"]


@pytest.mark.asyncio
async def test_finished_session_rejects_changes(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    session, _ = await service.lifecycle.start("alice", 1)
    records = await service.lifecycle.exercises(session.id)
    logged = await service.lifecycle.log_set(session.id, records[0].exercise_id, 50.0, 12, 2)
    assert logged.set_number == 1

    clock.advance(hours=1)
    finished = await service.lifecycle.finish(session.id)
    assert finished.ended_at == clock.now
    assert not finished.is_open

    with pytest.raises(SessionClosedError):
        await service.lifecycle.finish(session.id)
    with pytest.raises(SessionClosedError):
        await service.lifecycle.toggle_exercise(records[0].id, True)
    with pytest.raises(SessionClosedError):
        await service.lifecycle.log_set(session.id, records[0].exercise_id, 50.0, 10)
    with pytest.raises(SessionClosedError):
        await service.lifecycle.update_set(logged.id, reps=11)
    with pytest.raises(SessionClosedError):
        await service.lifecycle.start("alice", 1)

    # the next local day starts fresh
    clock.advance(days=1)
    tomorrow, is_new = await service.lifecycle.start("alice", 2)
    assert is_new
    assert tomorrow.id != session.id


@pytest.mark.asyncio
async def test_unknown_ids_raise_not_found(db_file, clock):
    service = TrackerService(db_file, SettingsSchema(), clock)
    with pytest.raises(NotFoundError):
        await service.lifecycle.finish(99)
    with pytest.raises(NotFoundError):
        await service.lifecycle.toggle_exercise(99, True)
    with pytest.raises(NotFoundError):
        await service.lifecycle.update_set(99, reps=5)


@pytest.mark.asyncio
async def test_update_set_while_open(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    session, _ = await service.lifecycle.start("alice", 1)
    records = await service.lifecycle.exercises(session.id)
    logged = await service.lifecycle.log_set(session.id, records[0].exercise_id, 50.0, 10)
    updated = await service.lifecycle.update_set(logged.id, weight=55.0, rir=2)
    assert updated.weight == 55.0
    assert updated.reps == 10
    assert updated.rir == 2


@pytest.mark.asyncio
async def test_unknown_exercise_is_not_a_duplicate(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    session, _ = await service.lifecycle.start("alice", 1)
    with pytest.raises(NotFoundError) as excinfo:
        await service.lifecycle.log_set(session.id, 999, 50.0, 10)
    assert not isinstance(excinfo.value, DuplicateEntryError)


@pytest.mark.asyncio
async def test_start_with_unknown_template_raises_not_found(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    with pytest.raises(NotFoundError):
        await service.lifecycle.start("alice", 99)
    assert await service.sessions.fetch_for_day("alice", service.today()) is None


@pytest.mark.asyncio
async def test_update_set_can_clear_rir(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    session, _ = await service.lifecycle.start("alice", 1)
    records = await service.lifecycle.exercises(session.id)
    logged = await service.lifecycle.log_set(session.id, records[0].exercise_id, 50.0, 12, 0)

    kept = await service.lifecycle.update_set(logged.id, reps=11)
    assert kept.rir == 0
    cleared = await service.lifecycle.update_set(logged.id, rir=None)
    assert cleared.rir is None
    assert cleared.reps == 11


@pytest.mark.asyncio
async def test_concurrent_sets_get_distinct_numbers(db_file, clock):
    await seed(db_file)
    service = TrackerService(db_file, SettingsSchema(), clock)
    session, _ = await service.lifecycle.start("alice", 1)
    exercise_id = (await service.lifecycle.exercises(session.id))[0].exercise_id
    logged = await asyncio.gather(
        *(service.lifecycle.log_set(session.id, exercise_id, 50.0, 10) for _ in range(3))
    )
    assert sorted(s.set_number for s in logged) == [1, 2, 3]
