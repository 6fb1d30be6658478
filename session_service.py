from __future__ import annotations

import datetime
import logging
from typing import Callable, Optional

from algorithms.local_date import DEFAULT_TIMEZONE, local_today, utc_now
from db import (
    AsyncSessionExerciseRepository,
    AsyncSessionRepository,
    AsyncSetRepository,
    AsyncTemplateItemRepository,
    UNSET,
)
from errors import DuplicateEntryError, SessionClosedError
from models import SessionExerciseRecord, WorkoutSession, WorkoutSet

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """Create, resume, track and finish the day's workout session.

    A user has at most one session per local calendar day. It starts open,
    collects exercise completions and sets, and is closed exactly once.
    Closed sessions reject every further mutation.
    """

    def __init__(
        self,
        session_repo: AsyncSessionRepository,
        session_exercise_repo: AsyncSessionExerciseRepository,
        item_repo: AsyncTemplateItemRepository,
        set_repo: AsyncSetRepository,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.sessions = session_repo
        self.session_exercises = session_exercise_repo
        self.items = item_repo
        self.sets = set_repo
        self.timezone = timezone
        self.clock = clock

    async def start(
        self,
        user_id: str,
        template_id: int,
        bodyweight: Optional[float] = None,
    ) -> tuple[WorkoutSession, bool]:
        """Return today's open session, creating it if needed.

        The second element tells whether the session was created by this
        call. Retrying after a lost race or a double submit returns the
        existing session.
        """
        now = self.clock()
        today = local_today(now, self.timezone)
        existing = await self.sessions.fetch_for_day(user_id, today)
        if existing is not None:
            return self._resume(existing), False

        items = await self.items.fetch_items(template_id)
        try:
            session_id = await self.sessions.create_with_exercises(
                user_id, template_id, today, now, items, bodyweight
            )
        except DuplicateEntryError:
            logger.info("Session for %s on %s created concurrently", user_id, today)
            existing = await self.sessions.fetch_for_day(user_id, today)
            if existing is None:
                raise
            return self._resume(existing), False
        logger.info(
            "Started session %s for %s on %s with %s exercises",
            session_id,
            user_id,
            today,
            len(items),
        )
        return await self.sessions.fetch_detail(session_id), True

    @staticmethod
    def _resume(session: WorkoutSession) -> WorkoutSession:
        if not session.is_open:
            raise SessionClosedError("today's workout is already finished")
        return session

    async def _open_session(self, session_id: int) -> WorkoutSession:
        session = await self.sessions.fetch_detail(session_id)
        if not session.is_open:
            raise SessionClosedError("session is already finished")
        return session

    async def exercises(self, session_id: int) -> list[SessionExerciseRecord]:
        return await self.session_exercises.fetch_for_session(session_id)

    async def toggle_exercise(
        self, record_id: int, completed: bool
    ) -> SessionExerciseRecord:
        record = await self.session_exercises.fetch_detail(record_id)
        await self._open_session(record.session_id)
        await self.session_exercises.set_completion(record_id, completed, self.clock())
        return await self.session_exercises.fetch_detail(record_id)

    async def finish(self, session_id: int) -> WorkoutSession:
        await self._open_session(session_id)
        await self.sessions.close(session_id, self.clock())
        logger.info("Finished session %s", session_id)
        return await self.sessions.fetch_detail(session_id)

    async def progress(self, session_id: int) -> dict:
        records = await self.session_exercises.fetch_for_session(session_id)
        total = len(records)
        completed = sum(1 for r in records if r.is_completed)
        return {
            "completed": completed,
            "total": total,
            "fraction": completed / total if total else 0.0,
            "all_completed": total > 0 and completed == total,
        }

    async def log_set(
        self,
        session_id: int,
        exercise_id: int,
        weight: float,
        reps: int,
        rir: Optional[int] = None,
        is_warmup: bool = False,
    ) -> WorkoutSet:
        await self._open_session(session_id)
        set_id = await self.sets.add(
            session_id, exercise_id, weight, reps, rir, is_warmup, self.clock()
        )
        return await self.sets.fetch_detail(set_id)

    async def update_set(
        self,
        set_id: int,
        weight: Optional[float] = None,
        reps: Optional[int] = None,
        rir=UNSET,
        is_warmup: Optional[bool] = None,
    ) -> WorkoutSet:
        current = await self.sets.fetch_detail(set_id)
        await self._open_session(current.session_id)
        await self.sets.update(set_id, weight, reps, rir, is_warmup)
        return await self.sets.fetch_detail(set_id)
