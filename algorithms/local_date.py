import datetime
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Chicago"

LocalDate = datetime.date


def zone(timezone: str | ZoneInfo = DEFAULT_TIMEZONE) -> ZoneInfo:
    if isinstance(timezone, ZoneInfo):
        return timezone
    return ZoneInfo(timezone)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    ts = datetime.datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


def to_local_date(
    value: datetime.datetime | datetime.date,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> LocalDate:
    """Return the civil date ``value`` falls on in ``timezone``.

    Plain dates are already local and pass through unchanged.
    """
    if not isinstance(value, datetime.datetime):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(zone(timezone)).date()


def local_today(
    now: datetime.datetime | None = None,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> LocalDate:
    return to_local_date(now or utc_now(), timezone)


def recent_dates(
    now: datetime.datetime | None = None,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> tuple[LocalDate, LocalDate, LocalDate]:
    """Return today, yesterday and the day before as local dates."""
    today = local_today(now, timezone)
    one = datetime.timedelta(days=1)
    return today, today - one, today - 2 * one


def date_key(day: LocalDate) -> str:
    return day.isoformat()


def parse_date_key(value: str) -> LocalDate:
    return datetime.date.fromisoformat(value)
