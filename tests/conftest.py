import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))


class FakeClock:
    """Callable clock returning a settable UTC instant."""

    def __init__(self, now: datetime.datetime) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now += datetime.timedelta(days=days, hours=hours)


@pytest.fixture
def clock() -> FakeClock:
    # 09:00 in Chicago
    return FakeClock(datetime.datetime(2024, 3, 4, 15, 0, tzinfo=datetime.timezone.utc))


@pytest.fixture
def db_file(tmp_path) -> str:
    return str(tmp_path / "tracker.db")
