from __future__ import annotations

import asyncio
import datetime
from typing import Callable, Optional

import pandas as pd

from algorithms.local_date import DEFAULT_TIMEZONE, local_today, utc_now
from algorithms.streak_calculator import StreakCalculator
from db import (
    AsyncBodyWeightRepository,
    AsyncDietRepository,
    AsyncProfileRepository,
    AsyncSessionRepository,
    AsyncSetRepository,
)


class StatisticsService:
    """Compute streaks, weight progress and logging statistics."""

    def __init__(
        self,
        session_repo: AsyncSessionRepository,
        set_repo: AsyncSetRepository,
        diet_repo: AsyncDietRepository,
        body_weight_repo: AsyncBodyWeightRepository,
        profile_repo: AsyncProfileRepository,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[], datetime.datetime] = utc_now,
        streak_lookback: int = 60,
    ) -> None:
        self.sessions = session_repo
        self.sets = set_repo
        self.diet = diet_repo
        self.body_weights = body_weight_repo
        self.profiles = profile_repo
        self.timezone = timezone
        self.clock = clock
        self.streak_lookback = streak_lookback

    def today(self) -> datetime.date:
        return local_today(self.clock(), self.timezone)

    async def workout_streak(self, user_id: str) -> dict:
        starts = await self.sessions.fetch_start_times(user_id, self.streak_lookback)
        return self._streak(starts)

    async def diet_streak(self, user_id: str) -> dict:
        logs = await self.diet.fetch_history(user_id, limit=self.streak_lookback)
        return self._streak([log.logged_on for log in logs])

    def _streak(self, entries: list) -> dict:
        days = StreakCalculator.unique_days(entries, self.timezone)
        return {
            "streak": StreakCalculator.calculate(entries, self.today(), self.timezone),
            "last_date": days[0].isoformat() if days else None,
        }

    async def streaks(self, user_id: str) -> dict:
        workout, diet = await asyncio.gather(
            self.workout_streak(user_id), self.diet_streak(user_id)
        )
        return {"workout": workout, "diet": diet}

    async def weight_progress(self, user_id: str) -> dict:
        """Latest weight against the profile's starting and goal weights.

        ``total_change`` is positive when weight was lost. Progress to goal
        is a percentage clamped to [0, 100].
        """
        profile, latest = await asyncio.gather(
            self.profiles.fetch(user_id), self.body_weights.fetch_latest(user_id)
        )
        latest_weight = latest.weight if latest else None
        result: dict[str, Optional[float] | Optional[str]] = {
            "starting_weight": profile.starting_weight if profile else None,
            "goal_weight": profile.goal_weight if profile else None,
            "latest_weight": latest_weight,
            "latest_date": latest.logged_on.isoformat() if latest else None,
            "total_change": None,
            "progress_to_goal": None,
        }
        if profile is None or latest_weight is None:
            return result
        result["total_change"] = round(profile.starting_weight - latest_weight, 1)
        goal = profile.goal_weight
        if goal is not None and goal != profile.starting_weight:
            pct = (profile.starting_weight - latest_weight) / (profile.starting_weight - goal) * 100
            result["progress_to_goal"] = round(min(100.0, max(0.0, pct)), 1)
        return result

    async def user_stats(
        self,
        user_id: str,
        start_day: Optional[datetime.date] = None,
        end_day: Optional[datetime.date] = None,
    ) -> dict:
        days, total_sets, diet = await asyncio.gather(
            self.sessions.fetch_days(user_id, start_day, end_day),
            self.sets.count_working_sets(user_id, start_day, end_day),
            self.diet.fetch_history(user_id, start_day, end_day),
        )
        return {
            "workout_days": len(set(days)),
            "total_workouts": len(days),
            "total_sets": total_sets,
            "diet_days": len({log.logged_on for log in diet}),
            "total_protein": round(sum(log.protein_g for log in diet), 1),
            "total_calories": round(sum(log.calories or 0 for log in diet), 1),
            "days_with_calories": sum(1 for log in diet if log.calories is not None),
        }

    async def monthly_breakdown(self, user_id: str, months: int = 6) -> list[dict]:
        """Per-month totals for the last ``months`` months, newest first."""
        if months < 1:
            raise ValueError("months must be positive")
        today = self.today()
        current = pd.Period(today.isoformat(), freq="M")
        first_day = (current - (months - 1)).start_time.date()
        days, diet, weights = await asyncio.gather(
            self.sessions.fetch_days(user_id, first_day, today),
            self.diet.fetch_history(user_id, first_day, today),
            self.body_weights.fetch_history(user_id, first_day, today),
        )

        workouts = pd.DataFrame({"day": pd.to_datetime(pd.Series(days, dtype="object"))})
        workouts["month"] = workouts["day"].dt.to_period("M")
        workout_days = workouts.groupby("month")["day"].nunique()

        meals = pd.DataFrame(
            [(d.logged_on, d.protein_g, d.calories) for d in diet],
            columns=["day", "protein", "calories"],
        )
        meals["day"] = pd.to_datetime(meals["day"])
        meals["protein"] = pd.to_numeric(meals["protein"])
        meals["calories"] = pd.to_numeric(meals["calories"])
        meals["month"] = meals["day"].dt.to_period("M")
        diet_totals = meals.groupby("month").agg(
            diet_days=("day", "nunique"),
            total_protein=("protein", "sum"),
            days_with_protein=("protein", lambda s: int((s > 0).sum())),
            total_calories=("calories", "sum"),
            days_with_calories=("calories", "count"),
        )

        scale = pd.DataFrame(
            [(w.logged_on, w.weight) for w in weights], columns=["day", "weight"]
        )
        scale["day"] = pd.to_datetime(scale["day"])
        scale["weight"] = pd.to_numeric(scale["weight"])
        scale["month"] = scale["day"].dt.to_period("M")
        scale = scale.sort_values("day")
        weight_bounds = scale.groupby("month")["weight"].agg(["first", "last"])

        breakdown: list[dict] = []
        for offset in range(months):
            period = current - offset
            row = {
                "month_start": period.start_time.date().isoformat(),
                "month_label": period.strftime("%b %Y"),
                "workout_days": int(workout_days.get(period, 0)),
                "diet_days": 0,
                "total_protein": 0.0,
                "total_calories": 0.0,
                "days_with_protein": 0,
                "days_with_calories": 0,
                "start_weight": None,
                "end_weight": None,
            }
            if period in diet_totals.index:
                totals = diet_totals.loc[period]
                row["diet_days"] = int(totals["diet_days"])
                row["total_protein"] = round(float(totals["total_protein"]), 1)
                row["total_calories"] = round(float(totals["total_calories"]), 1)
                row["days_with_protein"] = int(totals["days_with_protein"])
                row["days_with_calories"] = int(totals["days_with_calories"])
            if period in weight_bounds.index:
                row["start_weight"] = float(weight_bounds.loc[period, "first"])
                row["end_weight"] = float(weight_bounds.loc[period, "last"])
            breakdown.append(row)
        return breakdown

