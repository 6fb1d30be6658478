import datetime
from dataclasses import dataclass
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from models import SessionSummary, WorkoutTemplate
from .local_date import DEFAULT_TIMEZONE, recent_dates, to_local_date

WORKOUT_DAY = "workout"
REST_DAY = "rest"
CYCLE_POSITIONS = (1, 2)


@dataclass(frozen=True)
class CadenceInfo:
    today_type: str
    next_cycle_order: int
    worked_out_today: bool
    worked_out_yesterday: bool
    worked_out_day_before: bool
    last_cycle_order: Optional[int]
    today_session_id: Optional[int]

    def as_dict(self) -> dict:
        return {
            "today_type": self.today_type,
            "next_cycle_order": self.next_cycle_order,
            "worked_out_today": self.worked_out_today,
            "worked_out_yesterday": self.worked_out_yesterday,
            "worked_out_day_before": self.worked_out_day_before,
            "last_cycle_order": self.last_cycle_order,
            "today_session_id": self.today_session_id,
        }


class CadenceEngine:
    """Fixed two-on/one-off schedule alternating two templates.

    Today is a rest day only when the user trained on each of the two
    preceding local days. A day counts as trained if any session started
    on it, finished or not.
    """

    def __init__(self, timezone: str | ZoneInfo = DEFAULT_TIMEZONE) -> None:
        self.timezone = timezone

    @staticmethod
    def next_cycle_order(last_cycle_order: Optional[int]) -> int:
        if last_cycle_order == 1:
            return 2
        if last_cycle_order == 2:
            return 1
        return CYCLE_POSITIONS[0]

    def evaluate(
        self, sessions: Sequence[SessionSummary], now: datetime.datetime
    ) -> CadenceInfo:
        """Classify today from ``sessions`` ordered most recent first."""
        today, yesterday, day_before = recent_dates(now, self.timezone)
        trained = {to_local_date(s.started_at, self.timezone) for s in sessions}
        last = sessions[0].cycle_order if sessions else None
        open_today = next(
            (
                s.id
                for s in sessions
                if s.ended_at is None
                and to_local_date(s.started_at, self.timezone) == today
            ),
            None,
        )
        worked_yesterday = yesterday in trained
        worked_day_before = day_before in trained
        return CadenceInfo(
            today_type=REST_DAY if worked_yesterday and worked_day_before else WORKOUT_DAY,
            next_cycle_order=self.next_cycle_order(last),
            worked_out_today=today in trained,
            worked_out_yesterday=worked_yesterday,
            worked_out_day_before=worked_day_before,
            last_cycle_order=last,
            today_session_id=open_today,
        )

    @staticmethod
    def select_template(
        templates: Sequence[WorkoutTemplate], cycle_order: int
    ) -> Optional[WorkoutTemplate]:
        """Pick the template for ``cycle_order``; ``None`` when none exist."""
        if not templates:
            return None
        for template in templates:
            if template.cycle_order == cycle_order:
                return template
        return templates[0]
