from pydantic import BaseModel, ValidationError, field_validator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class SettingsSchema(BaseModel):
    timezone: str = "America/Chicago"
    weight_unit: str = "lbs"
    cadence_lookback: int = 10
    streak_lookback: int = 60
    progression_sessions: int = 3
    log_level: str = "INFO"
    api_token: str | None = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value}")
        return value

    @field_validator("weight_unit")
    @classmethod
    def _known_unit(cls, value: str) -> str:
        if value not in {"lbs", "kg"}:
            raise ValueError("weight_unit must be 'lbs' or 'kg'")
        return value

    @field_validator("cadence_lookback", "streak_lookback", "progression_sessions")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("lookback values must be positive")
        return value


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
