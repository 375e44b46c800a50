"""Tests for the half-open conflict rule and timestamp parsing."""

from datetime import datetime

import pytest

from clinic_scheduler.core.scheduling.conflicts import find_conflicts, is_free, overlaps
from clinic_scheduler.core.scheduling.errors import InvalidArgumentError
from clinic_scheduler.core.scheduling.types import AppointmentRecord, TimeRange, parse_timestamp
from clinic_scheduler.models.database import AppointmentStatus, AppointmentType


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 12, 24, hour, minute)


def appointment(
    id: int,
    start: datetime,
    end: datetime,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
) -> AppointmentRecord:
    return AppointmentRecord(
        id=id,
        patient_id=1,
        doctor_id=1,
        start_time=start,
        end_time=end,
        type=AppointmentType.CONSULTATION,
        status=status,
    )


class TestOverlaps:
    """Test the single overlap predicate."""

    def test_touching_endpoints_do_not_conflict(self):
        """[10:00,10:30) vs [10:30,11:00) is not a conflict."""
        assert not overlaps(at(10), at(10, 30), at(10, 30), at(11))
        assert not overlaps(at(10, 30), at(11), at(10), at(10, 30))

    def test_one_minute_overlap_conflicts(self):
        """[10:00,10:31) vs [10:30,11:00) is a conflict."""
        assert overlaps(at(10), at(10, 31), at(10, 30), at(11))

    def test_containment_conflicts(self):
        """Containment reduces to the same inequality."""
        assert overlaps(at(10), at(12), at(10, 30), at(11))
        assert overlaps(at(10, 30), at(11), at(10), at(12))

    def test_identical_intervals_conflict(self):
        assert overlaps(at(11), at(11, 30), at(11), at(11, 30))

    def test_disjoint(self):
        assert not overlaps(at(8), at(9), at(14), at(15))


class TestFindConflicts:
    """Test conflict lookup over appointment records."""

    def test_cancelled_rows_never_conflict(self):
        """Only scheduled appointments block."""
        rows = [appointment(1, at(10), at(11), AppointmentStatus.CANCELLED)]

        assert is_free(TimeRange(at(10), at(10, 30)), rows)

    def test_exclude_id_skips_row_being_moved(self):
        """Rescheduling onto an overlapping part of itself is allowed."""
        rows = [appointment(1, at(10), at(10, 30)), appointment(2, at(11), at(11, 30))]

        conflicts = find_conflicts(TimeRange(at(10, 15), at(10, 45)), rows, exclude_id=1)
        assert conflicts == []

        conflicts = find_conflicts(TimeRange(at(10, 15), at(11, 15)), rows, exclude_id=1)
        assert [c.id for c in conflicts] == [2]


class TestTimeRange:
    """Test interval construction and parsing."""

    def test_end_must_follow_start(self):
        with pytest.raises(InvalidArgumentError, match="end_time must be after start_time"):
            TimeRange(at(10), at(10))

    def test_parse_local_timestamp(self):
        interval = TimeRange.parse("2025-12-24T11:00:00", "2025-12-24T11:30:00")

        assert interval.to_dict() == {
            "start_time": "2025-12-24T11:00:00",
            "end_time": "2025-12-24T11:30:00",
        }

    @pytest.mark.parametrize(
        "value",
        ["2025-12-24T11:00:00+00:00", "2025-12-24T11:00:00-08:00", "not-a-time", ""],
    )
    def test_offsets_and_garbage_rejected(self, value):
        """Offsets are never silently converted."""
        with pytest.raises(InvalidArgumentError):
            parse_timestamp(value, "start_time")
