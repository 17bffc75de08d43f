from datetime import date, datetime, time, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def wall_clock(tz: ZoneInfo) -> Clock:
    """Return a clock producing naive local wall-clock time in `tz`."""

    def now() -> datetime:
        return datetime.now(tz).replace(tzinfo=None)

    return now


def hour_instant(day: date, hour: int) -> datetime:
    # hour may be 24, which lands on midnight of the next day
    return datetime.combine(day, time.min) + timedelta(hours=hour)
