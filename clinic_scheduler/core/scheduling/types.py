"""
Value types shared by the scheduling engine, the store and the tools.

All datetimes are naive local-calendar values. Inputs carrying a UTC
offset are rejected rather than converted.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from clinic_scheduler.core.scheduling.errors import InvalidArgumentError
from clinic_scheduler.models.database import AppointmentStatus, AppointmentType

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def format_timestamp(value: datetime) -> str:
    """Render a local timestamp as YYYY-MM-DDTHH:MM:SS."""
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Any, field_name: str) -> datetime:
    """Parse a local-calendar ISO timestamp.

    Raises:
        InvalidArgumentError: missing, malformed, or carrying an offset
    """
    if value is None or value == "":
        raise InvalidArgumentError(f"{field_name} is required")
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            raise InvalidArgumentError(
                f"{field_name} must be a local timestamp (YYYY-MM-DDTHH:MM:SS)"
            )
    if parsed.tzinfo is not None:
        raise InvalidArgumentError(
            f"{field_name} must not carry a UTC offset; use local clinic time"
        )
    return parsed.replace(microsecond=0)


def parse_date(value: Any, field_name: str = "date") -> date:
    if value is None or value == "":
        raise InvalidArgumentError(f"{field_name} is required")
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidArgumentError(f"{field_name} must be in YYYY-MM-DD format")


def parse_id(value: Any, field_name: str) -> int:
    if value is None or value == "":
        raise InvalidArgumentError(f"{field_name} is required")
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{field_name} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"{field_name} must be an integer")
    if isinstance(value, float) and value != parsed:
        raise InvalidArgumentError(f"{field_name} must be an integer")
    return parsed


@dataclass(frozen=True)
class TimeRange:
    """Half-open interval [start, end)."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvalidArgumentError("end_time must be after start_time")

    @classmethod
    def parse(cls, start: Any, end: Any) -> "TimeRange":
        return cls(
            start=parse_timestamp(start, "start_time"),
            end=parse_timestamp(end, "end_time"),
        )

    def to_dict(self) -> dict:
        return {
            "start_time": format_timestamp(self.start),
            "end_time": format_timestamp(self.end),
        }


@dataclass
class AppointmentRecord:
    """Detached view of one appointment row."""

    id: int
    patient_id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    type: AppointmentType
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    summary: str = ""
    created_at: Optional[datetime] = None
    extra: dict = field(default_factory=dict)

    @property
    def interval(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)

    @property
    def is_scheduled(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED

    @classmethod
    def from_row(cls, row: Any, **extra: Any) -> "AppointmentRecord":
        """Create from an Appointment ORM row."""
        return cls(
            id=row.id,
            patient_id=row.patient_id,
            doctor_id=row.doctor_id,
            start_time=row.start_time,
            end_time=row.end_time,
            type=AppointmentType(row.type),
            status=AppointmentStatus(row.status),
            summary=row.summary or "",
            created_at=row.created_at,
            extra={k: v for k, v in extra.items() if v is not None},
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API and tool responses."""
        result = {
            "id": self.id,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "start_time": format_timestamp(self.start_time),
            "end_time": format_timestamp(self.end_time),
            "type": self.type.value,
            "status": self.status.value,
            "summary": self.summary,
        }
        if self.created_at is not None:
            result["created_at"] = format_timestamp(self.created_at)
        result.update(self.extra)
        return result
