"""Plain records passed between the repositories and the decision logic."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Optional

CATEGORIES = ("upper", "lower", "core")
EQUIPMENT_KINDS = ("machine", "barbell", "dumbbell", "cable", "bodyweight")


@dataclass(frozen=True)
class Exercise:
    id: int
    name: str
    category: str
    equipment: str
    demo_url: Optional[str] = None
    form_cues: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class WorkoutTemplate:
    id: int
    name: str
    cycle_order: int
    description: Optional[str] = None


@dataclass(frozen=True)
class TemplateItem:
    id: int
    template_id: int
    exercise: Exercise
    sort_order: int
    sets: int
    rep_min: int
    rep_max: int
    rest_seconds: int = 90
    start_weight: Optional[float] = None
    increment: float = 5.0
    notes: Optional[str] = None


@dataclass(frozen=True)
class WorkoutSession:
    id: int
    user_id: str
    template_id: int
    started_at: datetime.datetime
    ended_at: Optional[datetime.datetime]
    workout_day: datetime.date
    bodyweight: Optional[float] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


@dataclass(frozen=True)
class SessionSummary:
    """Recent session as seen by the cadence rule."""

    id: int
    started_at: datetime.datetime
    ended_at: Optional[datetime.datetime]
    cycle_order: Optional[int]


@dataclass(frozen=True)
class SessionExerciseRecord:
    id: int
    session_id: int
    exercise_id: int
    template_item_id: int
    is_completed: bool
    completed_at: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class WorkoutSet:
    id: int
    session_id: int
    exercise_id: int
    set_number: int
    weight: float
    reps: int
    rir: Optional[int] = None
    is_warmup: bool = False


@dataclass(frozen=True)
class SessionSets:
    """Working sets one exercise received in one finished session."""

    session_id: int
    started_at: datetime.datetime
    sets: list[WorkoutSet] = field(default_factory=list)


@dataclass(frozen=True)
class BodyweightLog:
    id: int
    user_id: str
    logged_on: datetime.date
    weight: float
    waist: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class DietLog:
    id: int
    user_id: str
    logged_on: datetime.date
    protein_g: float
    calories: Optional[float] = None
    steps: Optional[int] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    starting_weight: float
    starting_date: datetime.date
    goal_weight: Optional[float] = None
