"""Slot generation over the local business calendar."""

from datetime import date, datetime, time, timedelta
from typing import Iterable

from clinic_scheduler.config import BusinessHours
from clinic_scheduler.core.scheduling.errors import InvalidArgumentError
from clinic_scheduler.core.scheduling.types import TimeRange


def validate_duration(duration: object, allowed: Iterable[int]) -> int:
    """Coerce and check a duration in minutes against the allowed set."""
    allowed = list(allowed)
    message = "Duration must be one of: " + ", ".join(f"{d}" for d in allowed) + " minutes"
    if duration is None or duration == "" or isinstance(duration, bool):
        raise InvalidArgumentError(message)
    try:
        minutes = int(duration)
    except (TypeError, ValueError):
        raise InvalidArgumentError(message)
    if isinstance(duration, float) and duration != minutes:
        raise InvalidArgumentError(message)
    if minutes not in allowed:
        raise InvalidArgumentError(message)
    return minutes


def day_window(day: date) -> TimeRange:
    """The whole calendar day [00:00, next day 00:00)."""
    start = datetime.combine(day, time.min)
    return TimeRange(start, start + timedelta(days=1))


def generate_slots(day: date, duration: int, hours: BusinessHours) -> list[TimeRange]:
    """
    Enumerate candidate windows for one day.

    One candidate per granularity step from open to close; windows ending
    after close are dropped. Ordered by start time.
    """
    open_at = datetime.combine(day, time(hour=hours.open_hour))
    close_at = datetime.combine(day, time.min) + timedelta(hours=hours.close_hour)
    step = timedelta(minutes=hours.granularity_minutes)
    length = timedelta(minutes=duration)

    slots = []
    start = open_at
    while start < close_at:
        end = start + length
        if end <= close_at:
            slots.append(TimeRange(start, end))
        start += step
    return slots
