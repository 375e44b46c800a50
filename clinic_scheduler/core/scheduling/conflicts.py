"""
Conflict detection.

One rule everywhere: [s, e) conflicts with [bs, be) iff s < be and e > bs.
Touching endpoints do not conflict. Availability filtering, create and
reschedule all go through this module (the SQL form lives in
``overlap_clause``).
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from clinic_scheduler.core.scheduling.types import AppointmentRecord, TimeRange


def overlaps(
    start: datetime,
    end: datetime,
    other_start: datetime,
    other_end: datetime,
) -> bool:
    """Half-open interval overlap test."""
    return start < other_end and end > other_start


def find_conflicts(
    interval: TimeRange,
    appointments: Iterable[AppointmentRecord],
    exclude_id: Optional[int] = None,
) -> list[AppointmentRecord]:
    """Return scheduled appointments overlapping ``interval``.

    Cancelled rows never conflict. ``exclude_id`` skips the row being moved
    during a reschedule.
    """
    return [
        appt
        for appt in appointments
        if appt.is_scheduled
        and appt.id != exclude_id
        and overlaps(interval.start, interval.end, appt.start_time, appt.end_time)
    ]


def is_free(
    interval: TimeRange,
    appointments: Iterable[AppointmentRecord],
    exclude_id: Optional[int] = None,
) -> bool:
    return not find_conflicts(interval, appointments, exclude_id)


def overlap_clause(start_column: Any, end_column: Any, interval: TimeRange) -> ColumnElement[bool]:
    """SQL rendering of ``overlaps`` for a row's (start, end) columns."""
    return and_(start_column < interval.end, end_column > interval.start)
