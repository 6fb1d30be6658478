from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Callable, Optional

from algorithms.cadence_engine import CadenceEngine, CadenceInfo
from algorithms.local_date import local_today, utc_now
from algorithms.progression_calculator import Progression, ProgressionCalculator
from db import (
    AsyncBodyWeightRepository,
    AsyncDietRepository,
    AsyncExerciseRepository,
    AsyncProfileRepository,
    AsyncSessionExerciseRepository,
    AsyncSessionRepository,
    AsyncSetRepository,
    AsyncTemplateItemRepository,
    AsyncTemplateRepository,
)
from models import SessionExerciseRecord, TemplateItem, WorkoutSession, WorkoutTemplate
from session_service import SessionLifecycle
from settings_schema import SettingsSchema
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


def template_dict(template: Optional[WorkoutTemplate]) -> Optional[dict]:
    if template is None:
        return None
    return {
        "id": template.id,
        "name": template.name,
        "cycle_order": template.cycle_order,
        "description": template.description,
    }


def item_dict(item: TemplateItem) -> dict:
    ex = item.exercise
    return {
        "id": item.id,
        "sort_order": item.sort_order,
        "sets": item.sets,
        "rep_min": item.rep_min,
        "rep_max": item.rep_max,
        "rest_seconds": item.rest_seconds,
        "start_weight": item.start_weight,
        "increment": item.increment,
        "notes": item.notes,
        "exercise": {
            "id": ex.id,
            "name": ex.name,
            "category": ex.category,
            "equipment": ex.equipment,
            "demo_url": ex.demo_url,
            "form_cues": ex.form_cues,
        },
    }


def session_dict(session: WorkoutSession) -> dict:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "template_id": session.template_id,
        "started_at": session.started_at.isoformat(),
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
        "workout_day": session.workout_day.isoformat(),
        "bodyweight": session.bodyweight,
        "notes": session.notes,
    }


def record_dict(record: SessionExerciseRecord) -> dict:
    return {
        "id": record.id,
        "exercise_id": record.exercise_id,
        "template_item_id": record.template_item_id,
        "is_completed": record.is_completed,
        "completed_at": record.completed_at.isoformat() if record.completed_at else None,
    }


class TrackerService:
    """Answer "what should the user see or do right now".

    Owns the repositories and sequences calls into the cadence,
    progression, session and statistics components. It makes no decisions
    of its own.
    """

    def __init__(
        self,
        db_path: str = "tracker.db",
        settings: SettingsSchema | None = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.settings = settings or SettingsSchema()
        self.clock = clock
        tz = self.settings.timezone
        self.exercises = AsyncExerciseRepository(db_path)
        self.templates = AsyncTemplateRepository(db_path)
        self.items = AsyncTemplateItemRepository(db_path)
        self.sessions = AsyncSessionRepository(db_path)
        self.session_exercises = AsyncSessionExerciseRepository(db_path)
        self.sets = AsyncSetRepository(db_path)
        self.body_weights = AsyncBodyWeightRepository(db_path)
        self.diet = AsyncDietRepository(db_path)
        self.profiles = AsyncProfileRepository(db_path)
        self.cadence_engine = CadenceEngine(tz)
        self.lifecycle = SessionLifecycle(
            self.sessions,
            self.session_exercises,
            self.items,
            self.sets,
            timezone=tz,
            clock=clock,
        )
        self.statistics = StatisticsService(
            self.sessions,
            self.sets,
            self.diet,
            self.body_weights,
            self.profiles,
            timezone=tz,
            clock=clock,
            streak_lookback=self.settings.streak_lookback,
        )

    def today(self) -> datetime.date:
        return local_today(self.clock(), self.settings.timezone)

    async def cadence(self, user_id: str) -> CadenceInfo:
        recent = await self.sessions.fetch_recent(user_id, self.settings.cadence_lookback)
        return self.cadence_engine.evaluate(recent, self.clock())

    async def recommended_template(
        self, user_id: Optional[str]
    ) -> tuple[Optional[WorkoutTemplate], Optional[CadenceInfo]]:
        """Return the template to serve next; anonymous users preview cycle 1."""
        templates = await self.templates.list_templates()
        if user_id is None:
            return CadenceEngine.select_template(templates, 1), None
        info = await self.cadence(user_id)
        return CadenceEngine.select_template(templates, info.next_cycle_order), info

    async def suggest_progression(
        self,
        user_id: str,
        item: TemplateItem,
        exclude_session_id: Optional[int] = None,
    ) -> Progression:
        history = await self.sets.fetch_working_history(
            user_id,
            item.exercise.id,
            self.settings.progression_sessions,
            exclude_session_id,
        )
        return ProgressionCalculator.suggest(
            [h.sets for h in history],
            item.rep_min,
            item.rep_max,
            item.increment,
            item.start_weight or 0.0,
        )

    async def today_view(self, user_id: Optional[str]) -> dict:
        """Everything the workout screen needs for today."""
        template, info = await self.recommended_template(user_id)
        view: dict = {
            "date": self.today().isoformat(),
            "cadence": info.as_dict() if info else None,
            "template": template_dict(template),
            "items": [],
            "session": None,
            "exercises": [],
            "progress": None,
        }
        session = None
        if info is not None and info.today_session_id is not None:
            session = await self.sessions.fetch_detail(info.today_session_id)
            # an open session keeps the template it was started with
            if template is None or session.template_id != template.id:
                template = await self.templates.fetch_detail(session.template_id)
                view["template"] = template_dict(template)
        if template is None:
            return view

        items = await self.items.fetch_items(template.id)
        if session is not None:
            records, progress = await asyncio.gather(
                self.lifecycle.exercises(session.id),
                self.lifecycle.progress(session.id),
            )
            view["session"] = session_dict(session)
            view["exercises"] = [record_dict(r) for r in records]
            view["progress"] = progress

        entries = []
        for item in items:
            entry = item_dict(item)
            if user_id is not None:
                suggestion = await self.suggest_progression(
                    user_id, item, session.id if session else None
                )
                entry["progression"] = suggestion.as_dict()
            entries.append(entry)
        view["items"] = entries
        return view

    async def start_workout(
        self,
        user_id: str,
        template_id: Optional[int] = None,
        bodyweight: Optional[float] = None,
    ) -> tuple[WorkoutSession, bool]:
        if template_id is None:
            template, _info = await self.recommended_template(user_id)
            if template is None:
                raise ValueError("no workout templates configured")
            template_id = template.id
            logger.debug("Recommended template %s for %s", template_id, user_id)
        else:
            await self.templates.fetch_detail(template_id)
        return await self.lifecycle.start(user_id, template_id, bodyweight)

    async def log_bodyweight(
        self,
        user_id: str,
        weight: float,
        waist: Optional[float] = None,
        notes: Optional[str] = None,
        logged_on: Optional[datetime.date] = None,
    ) -> datetime.date:
        day = logged_on or self.today()
        await self.body_weights.upsert(user_id, day, weight, waist, notes)
        return day

    async def log_diet(
        self,
        user_id: str,
        protein_g: float,
        calories: Optional[float] = None,
        steps: Optional[int] = None,
        notes: Optional[str] = None,
        logged_on: Optional[datetime.date] = None,
    ) -> datetime.date:
        day = logged_on or self.today()
        await self.diet.upsert(user_id, day, protein_g, calories, steps, notes)
        return day

    async def save_profile(
        self,
        user_id: str,
        starting_weight: float,
        goal_weight: Optional[float] = None,
        starting_date: Optional[datetime.date] = None,
    ) -> None:
        await self.profiles.upsert(
            user_id, starting_weight, starting_date or self.today(), goal_weight
        )
