import logging
from dataclasses import dataclass
from typing import Sequence

from models import WorkoutSet

logger = logging.getLogger(__name__)

INCREASE = "increase"
MAINTAIN = "maintain"
DECREASE = "decrease"

# Average reps lost between two sessions at the same weight that blocks an increase.
REP_DROP_THRESHOLD = 2


@dataclass(frozen=True)
class Progression:
    weight: float
    reason: str
    status: str

    def as_dict(self) -> dict:
        return {"weight": self.weight, "reason": self.reason, "status": self.status}


class ProgressionCalculator:
    """Double progression with hysteresis.

    Weight goes up only after every working set reaches the top of the rep
    range with reps in reserve left on the final set, and goes down only
    after two sessions in a row fall short of the bottom of the range.
    """

    @staticmethod
    def session_weight(sets: Sequence[WorkoutSet]) -> float:
        return max(s.weight for s in sets)

    @staticmethod
    def average_reps(sets: Sequence[WorkoutSet]) -> float:
        return sum(s.reps for s in sets) / len(sets)

    @staticmethod
    def min_reps(sets: Sequence[WorkoutSet]) -> int:
        return min(s.reps for s in sets)

    @classmethod
    def suggest(
        cls,
        history: Sequence[Sequence[WorkoutSet]],
        rep_min: int,
        rep_max: int,
        increment: float,
        fallback_weight: float,
    ) -> Progression:
        """Return the next prescription for one exercise.

        ``history`` holds each recent session's working sets, most recent
        session first.
        """
        logger.debug(
            "Suggesting progression: sessions=%s range=%s-%s increment=%s",
            len(history),
            rep_min,
            rep_max,
            increment,
        )
        if not history:
            return Progression(fallback_weight, "first time", MAINTAIN)
        latest = list(history[0])
        if not latest:
            return Progression(fallback_weight, "no sets logged", MAINTAIN)

        last_weight = cls.session_weight(latest)
        previous = list(history[1]) if len(history) > 1 else []

        if previous and cls.session_weight(previous) == last_weight:
            drop = cls.average_reps(previous) - cls.average_reps(latest)
            if drop >= REP_DROP_THRESHOLD:
                return Progression(last_weight, "reps dropped - recovery", MAINTAIN)

        final_rir = latest[-1].rir
        if all(s.reps >= rep_max for s in latest) and (final_rir is None or final_rir >= 1):
            return Progression(
                last_weight + increment,
                f"hit {rep_max} reps on every set",
                INCREASE,
            )

        if (
            previous
            and cls.min_reps(latest) < rep_min
            and cls.min_reps(previous) < rep_min
        ):
            return Progression(
                max(last_weight - increment, 0.0),
                f"below {rep_min} reps two sessions in a row",
                DECREASE,
            )

        if cls.min_reps(latest) >= rep_max:
            reason = f"at {rep_max} reps, no reps in reserve"
        else:
            reason = f"below {rep_max} reps, keep building"
        return Progression(last_weight, reason, MAINTAIN)
