from .local_date import LocalDate, to_local_date, local_today, recent_dates
from .streak_calculator import StreakCalculator
from .cadence_engine import CadenceEngine, CadenceInfo
from .progression_calculator import Progression, ProgressionCalculator

__all__ = [
    "LocalDate",
    "to_local_date",
    "local_today",
    "recent_dates",
    "StreakCalculator",
    "CadenceEngine",
    "CadenceInfo",
    "Progression",
    "ProgressionCalculator",
]
