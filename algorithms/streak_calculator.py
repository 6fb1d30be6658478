import datetime
from typing import Iterable
from zoneinfo import ZoneInfo

from .local_date import DEFAULT_TIMEZONE, LocalDate, to_local_date


class StreakCalculator:
    """Count consecutive logged days ending today or yesterday."""

    @staticmethod
    def unique_days(
        entries: Iterable[datetime.datetime | datetime.date],
        timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
    ) -> list[LocalDate]:
        """Return the distinct local dates of ``entries``, most recent first."""
        return sorted({to_local_date(e, timezone) for e in entries}, reverse=True)

    @classmethod
    def calculate(
        cls,
        entries: Iterable[datetime.datetime | datetime.date],
        today: LocalDate,
        timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
    ) -> int:
        """Return the length of the streak that is still alive on ``today``.

        A streak survives until a whole day is skipped, so a run ending
        yesterday still counts while today has no entry yet. Entries dated
        after ``today`` are ignored.
        """
        days = [d for d in cls.unique_days(entries, timezone) if d <= today]
        if not days:
            return 0
        one = datetime.timedelta(days=1)
        if days[0] not in (today, today - one):
            return 0
        streak = 1
        expected = days[0] - one
        for day in days[1:]:
            if day != expected:
                break
            streak += 1
            expected -= one
        return streak
