import datetime
import logging
import os
from dataclasses import asdict
from typing import Optional

from fastapi import (
    FastAPI,
    HTTPException,
    APIRouter,
    Header,
    Depends,
)

from config import APP_VERSION, database_path, load_settings
from db import UNSET
from errors import NotFoundError, SessionClosedError, StoreWriteError
from settings_schema import SettingsSchema
from tracker_service import (
    TrackerService,
    item_dict,
    record_dict,
    session_dict,
    template_dict,
)

logger = logging.getLogger(__name__)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, SessionClosedError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, StoreWriteError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _set_dict(s) -> dict:
    return {
        "id": s.id,
        "session_id": s.session_id,
        "exercise_id": s.exercise_id,
        "set_number": s.set_number,
        "weight": s.weight,
        "reps": s.reps,
        "rir": s.rir,
        "is_warmup": s.is_warmup,
    }


class TrackerAPI:
    """Provides REST endpoints for the training tracker."""

    def __init__(
        self,
        db_path: str = "tracker.db",
        yaml_path: str = "settings.yaml",
        *,
        settings: SettingsSchema | None = None,
        clock=None,
    ) -> None:
        self.db_path = db_path
        self.settings = settings or load_settings(yaml_path)
        if clock is None:
            self.service = TrackerService(db_path, self.settings)
        else:
            self.service = TrackerService(db_path, self.settings, clock)
        self.app = FastAPI(
            title="Training Tracker API",
            description="Workout cadence, session tracking and progression",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _check_token(self, x_api_key: Optional[str] = Header(default=None)) -> None:
        token = self.settings.api_token
        if token and x_api_key != token:
            raise HTTPException(status_code=401, detail="invalid api key")

    def _setup_routes(self) -> None:
        auth = [Depends(self._check_token)]
        sessions_router = APIRouter(prefix="/sessions", tags=["Sessions"], dependencies=auth)
        logs_router = APIRouter(tags=["Logs"], dependencies=auth)
        stats_router = APIRouter(prefix="/stats", tags=["Statistics"], dependencies=auth)
        service = self.service

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        async def health():
            try:
                await service.templates.list_templates()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/templates", dependencies=auth)
        async def list_templates():
            return [template_dict(t) for t in await service.templates.list_templates()]

        @self.app.get("/templates/{template_id}/items", dependencies=auth)
        async def list_template_items(template_id: int):
            try:
                await service.templates.fetch_detail(template_id)
            except ValueError as e:
                raise _http_error(e)
            return [item_dict(i) for i in await service.items.fetch_items(template_id)]

        @self.app.get("/exercises", dependencies=auth)
        async def list_exercises():
            return [asdict(e) for e in await service.exercises.fetch_all_exercises()]

        @self.app.get("/exercises/{exercise_id}", dependencies=auth)
        async def get_exercise(exercise_id: int):
            try:
                exercise = await service.exercises.fetch_detail(exercise_id)
            except ValueError as e:
                raise _http_error(e)
            return asdict(exercise)

        @self.app.get("/cadence", dependencies=auth)
        async def cadence(user_id: str):
            info = await service.cadence(user_id)
            return info.as_dict()

        @self.app.get("/today", dependencies=auth)
        async def today(user_id: Optional[str] = None):
            try:
                return await service.today_view(user_id)
            except ValueError as e:
                raise _http_error(e)

        @self.app.get("/progression", dependencies=auth)
        async def progression(user_id: str, template_item_id: int):
            try:
                item = await service.items.fetch_detail(template_item_id)
            except ValueError as e:
                raise _http_error(e)
            suggestion = await service.suggest_progression(user_id, item)
            return suggestion.as_dict()

        @sessions_router.post("")
        async def start_session(
            user_id: str,
            template_id: Optional[int] = None,
            bodyweight: Optional[float] = None,
        ):
            try:
                session, is_new = await service.start_workout(user_id, template_id, bodyweight)
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return {"session": session_dict(session), "is_new": is_new}

        @sessions_router.get("/{session_id}")
        async def get_session(session_id: int):
            try:
                session = await service.sessions.fetch_detail(session_id)
            except ValueError as e:
                raise _http_error(e)
            progress = await service.lifecycle.progress(session_id)
            return {"session": session_dict(session), "progress": progress}

        @sessions_router.get("/{session_id}/exercises")
        async def list_session_exercises(session_id: int):
            return [record_dict(r) for r in await service.lifecycle.exercises(session_id)]

        @sessions_router.put("/exercises/{record_id}")
        async def toggle_exercise(record_id: int, completed: bool):
            try:
                record = await service.lifecycle.toggle_exercise(record_id, completed)
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return record_dict(record)

        @sessions_router.post("/{session_id}/finish")
        async def finish_session(session_id: int):
            try:
                session = await service.lifecycle.finish(session_id)
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return session_dict(session)

        @sessions_router.post("/{session_id}/sets")
        async def add_set(
            session_id: int,
            exercise_id: int,
            weight: float,
            reps: int,
            rir: Optional[int] = None,
            warmup: bool = False,
        ):
            try:
                logged = await service.lifecycle.log_set(
                    session_id, exercise_id, weight, reps, rir, warmup
                )
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return _set_dict(logged)

        @sessions_router.get("/{session_id}/sets")
        async def list_sets(session_id: int, exercise_id: int):
            rows = await service.sets.fetch_for_exercise(session_id, exercise_id)
            return [_set_dict(s) for s in rows]

        @sessions_router.put("/sets/{set_id}")
        async def update_set(
            set_id: int,
            weight: Optional[float] = None,
            reps: Optional[int] = None,
            rir: Optional[int] = None,
            warmup: Optional[bool] = None,
            clear_rir: bool = False,
        ):
            if clear_rir and rir is not None:
                raise HTTPException(status_code=400, detail="rir and clear_rir are exclusive")
            if clear_rir:
                new_rir = None
            else:
                new_rir = UNSET if rir is None else rir
            try:
                updated = await service.lifecycle.update_set(
                    set_id, weight, reps, new_rir, warmup
                )
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return _set_dict(updated)

        @logs_router.post("/bodyweight")
        async def log_bodyweight(
            user_id: str,
            weight: float,
            waist: Optional[float] = None,
            notes: Optional[str] = None,
            date: Optional[datetime.date] = None,
        ):
            try:
                day = await service.log_bodyweight(user_id, weight, waist, notes, date)
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return {"logged_on": day.isoformat()}

        @logs_router.get("/bodyweight")
        async def bodyweight_history(
            user_id: str,
            start_date: Optional[datetime.date] = None,
            end_date: Optional[datetime.date] = None,
        ):
            rows = await service.body_weights.fetch_history(user_id, start_date, end_date)
            return [
                {
                    "id": r.id,
                    "logged_on": r.logged_on.isoformat(),
                    "weight": r.weight,
                    "waist": r.waist,
                    "notes": r.notes,
                }
                for r in rows
            ]

        @logs_router.post("/diet")
        async def log_diet(
            user_id: str,
            protein_g: float,
            calories: Optional[float] = None,
            steps: Optional[int] = None,
            notes: Optional[str] = None,
            date: Optional[datetime.date] = None,
        ):
            try:
                day = await service.log_diet(user_id, protein_g, calories, steps, notes, date)
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return {"logged_on": day.isoformat()}

        @logs_router.get("/diet")
        async def diet_history(
            user_id: str,
            start_date: Optional[datetime.date] = None,
            end_date: Optional[datetime.date] = None,
            limit: Optional[int] = None,
        ):
            rows = await service.diet.fetch_history(user_id, start_date, end_date, limit)
            return [
                {
                    "id": r.id,
                    "logged_on": r.logged_on.isoformat(),
                    "protein_g": r.protein_g,
                    "calories": r.calories,
                    "steps": r.steps,
                    "notes": r.notes,
                }
                for r in rows
            ]

        @logs_router.put("/profile")
        async def save_profile(
            user_id: str,
            starting_weight: float,
            goal_weight: Optional[float] = None,
            starting_date: Optional[datetime.date] = None,
        ):
            try:
                await service.save_profile(user_id, starting_weight, goal_weight, starting_date)
            except (ValueError, StoreWriteError) as e:
                raise _http_error(e)
            return {"status": "saved"}

        @stats_router.get("/streaks")
        async def streaks(user_id: str):
            return await service.statistics.streaks(user_id)

        @stats_router.get("/weight")
        async def weight_progress(user_id: str):
            return await service.statistics.weight_progress(user_id)

        @stats_router.get("/summary")
        async def user_stats(
            user_id: str,
            start_date: Optional[datetime.date] = None,
            end_date: Optional[datetime.date] = None,
        ):
            return await service.statistics.user_stats(user_id, start_date, end_date)

        @stats_router.get("/monthly")
        async def monthly_breakdown(user_id: str, months: int = 6):
            try:
                return await service.statistics.monthly_breakdown(user_id, months)
            except ValueError as e:
                raise _http_error(e)

        self.app.include_router(sessions_router)
        self.app.include_router(logs_router)
        self.app.include_router(stats_router)


def create_app() -> FastAPI:
    yaml_path = os.environ.get("TRACKER_SETTINGS", "settings.yaml")
    settings = load_settings(yaml_path)
    logging.basicConfig(level=settings.log_level)
    db_path = database_path()
    logger.info("Serving tracker API from %s", db_path)
    return TrackerAPI(db_path, yaml_path, settings=settings).app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app())
